"""Initial business schema with multi-tenancy and RLS.

- tenants
- roles
- users (manager_id reporting hierarchy)
- modules
- role_modules (permission flags and listing_criteria)
- inquiries, orders, marketing_leads, delivery_challans

Also creates helper function set_tenant_id(uuid) to set the app.tenant_id GUC.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1d5e7a9b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TENANT_DEFAULT = sa.text("current_setting('app.tenant_id', true)::uuid")


def _id_column() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True)


def _tenant_column() -> sa.Column:
    return sa.Column("tenant_id", sa.UUID(), nullable=False, server_default=TENANT_DEFAULT)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _deleted_at() -> sa.Column:
    return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


TENANT_SCOPED_TABLES = [
    "roles",
    "users",
    "modules",
    "role_modules",
    "inquiries",
    "orders",
    "marketing_leads",
    "delivery_challans",
]


def upgrade() -> None:
    # Extensions
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp";')

    # Helper function to set tenant in the current session
    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_tenant_id(p_tenant_id uuid)
        RETURNS void AS $$
        BEGIN
            PERFORM set_config('app.tenant_id', p_tenant_id::text, false);
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    # Tenants
    op.create_table(
        "tenants",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("uuid_generate_v4()")),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        *_timestamps(),
    )

    # Roles
    op.create_table(
        "roles",
        _id_column(),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )

    # Users
    op.create_table(
        "users",
        _id_column(),
        _tenant_column(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("role_id", sa.BigInteger(), nullable=True),
        sa.Column("manager_id", sa.BigInteger(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["manager_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    op.create_index("ix_users_tenant_manager", "users", ["tenant_id", "manager_id"])

    # Modules
    op.create_table(
        "modules",
        _id_column(),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("route", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default=sa.text("'active'"), nullable=False),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "key", name="uq_modules_tenant_key"),
    )
    op.create_index("ix_modules_tenant_route", "modules", ["tenant_id", "route"])

    # Role modules
    op.create_table(
        "role_modules",
        _id_column(),
        _tenant_column(),
        sa.Column("role_id", sa.BigInteger(), nullable=False),
        sa.Column("module_id", sa.BigInteger(), nullable=False),
        sa.Column("can_create", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("can_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("can_update", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("can_delete", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("listing_criteria", sa.Text(), server_default=sa.text("'my_team'"), nullable=False),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "role_id", "module_id", name="uq_role_modules_tenant_role_module"),
    )

    # Inquiries
    op.create_table(
        "inquiries",
        _id_column(),
        _tenant_column(),
        sa.Column("inquiry_number", sa.Text(), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("date_of_inquiry", sa.Date(), nullable=True),
        sa.Column("handled_by", sa.BigInteger(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["handled_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_inquiries_tenant_handled_by", "inquiries", ["tenant_id", "handled_by"])

    # Orders
    op.create_table(
        "orders",
        _id_column(),
        _tenant_column(),
        sa.Column("order_number", sa.Text(), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("handled_by", sa.BigInteger(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["handled_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_orders_tenant_handled_by", "orders", ["tenant_id", "handled_by"])

    # Marketing leads
    op.create_table(
        "marketing_leads",
        _id_column(),
        _tenant_column(),
        sa.Column("lead_name", sa.Text(), nullable=False),
        sa.Column("mobile_number", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.BigInteger(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_marketing_leads_tenant_assigned_to", "marketing_leads", ["tenant_id", "assigned_to"])

    # Delivery challans
    op.create_table(
        "delivery_challans",
        _id_column(),
        _tenant_column(),
        sa.Column("challan_number", sa.Text(), nullable=False),
        sa.Column("challan_date", sa.Date(), nullable=True),
        sa.Column("order_id", sa.BigInteger(), nullable=True),
        sa.Column("created_by", sa.BigInteger(), nullable=True),
        *_timestamps(),
        _deleted_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_delivery_challans_tenant_created_by", "delivery_challans", ["tenant_id", "created_by"])
    op.create_index("ix_delivery_challans_order_id", "delivery_challans", ["order_id"])

    # Enable RLS and add policies
    op.execute("ALTER TABLE tenants ENABLE ROW LEVEL SECURITY;")
    op.execute(
        """
        CREATE POLICY tenant_row_access ON tenants
        USING (id = current_setting('app.tenant_id', true)::uuid)
        WITH CHECK (id = current_setting('app.tenant_id', true)::uuid);
        """
    )

    # FORCE applies the policies to the table owner as well. tenants stays
    # unforced so seeding can look a tenant up by slug before the GUC is set.
    for tbl in TENANT_SCOPED_TABLES:
        op.execute(f"ALTER TABLE {tbl} ENABLE ROW LEVEL SECURITY;")
        op.execute(f"ALTER TABLE {tbl} FORCE ROW LEVEL SECURITY;")
        op.execute(
            f"""
            CREATE POLICY {tbl}_tenant_isolation ON {tbl}
            USING (tenant_id = current_setting('app.tenant_id', true)::uuid)
            WITH CHECK (tenant_id = current_setting('app.tenant_id', true)::uuid);
            """
        )


def downgrade() -> None:
    for tbl in reversed(TENANT_SCOPED_TABLES):
        op.execute(f"ALTER TABLE {tbl} NO FORCE ROW LEVEL SECURITY;")
        op.execute(f"DROP POLICY IF EXISTS {tbl}_tenant_isolation ON {tbl};")
    op.execute("DROP POLICY IF EXISTS tenant_row_access ON tenants;")

    op.drop_index("ix_delivery_challans_order_id", table_name="delivery_challans")
    op.drop_index("ix_delivery_challans_tenant_created_by", table_name="delivery_challans")
    op.drop_table("delivery_challans")
    op.drop_index("ix_marketing_leads_tenant_assigned_to", table_name="marketing_leads")
    op.drop_table("marketing_leads")
    op.drop_index("ix_orders_tenant_handled_by", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_inquiries_tenant_handled_by", table_name="inquiries")
    op.drop_table("inquiries")
    op.drop_table("role_modules")
    op.drop_index("ix_modules_tenant_route", table_name="modules")
    op.drop_table("modules")
    op.drop_index("ix_users_tenant_manager", table_name="users")
    op.drop_table("users")
    op.drop_table("roles")
    op.drop_table("tenants")

    op.execute("DROP FUNCTION IF EXISTS set_tenant_id(uuid);")
