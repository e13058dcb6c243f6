"""
Database seeding utilities for minimal reference data.

Seeds:
- Base tenant (Acme Trading)
- Roles: admin, sales_manager, sales_executive
- Modules for every business and admin screen
- Role-module rows: admin sees everything ('all'); sales roles are team-scoped
- An admin user at the top of the reporting hierarchy

Usage:
  python -m src.db.run_migrations upgrade head
  python -m src.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.security import get_password_hash
from src.core.settings import get_app_settings
from src.db.session import get_async_session, tenant_context
from src.services import modules as business_modules
from src.services.policy import Policy

logger = logging.getLogger(__name__)

# (name, ModuleRef)
MODULES = [
    ("Home", business_modules.HOME),
    ("Inquiry", business_modules.INQUIRIES),
    ("Pending Orders", business_modules.ORDERS),
    ("Marketing Leads", business_modules.MARKETING_LEADS),
    ("Delivery Challans", business_modules.DELIVERY_CHALLANS),
    ("User Master", business_modules.USERS),
    ("Role Module", business_modules.ROLE_MODULES),
]

ADMIN_MODULE_KEYS = {business_modules.USERS.key, business_modules.ROLE_MODULES.key}

# role name -> (description, (create, read, update, delete), listing criteria)
ROLES: Dict[str, Tuple[str, Tuple[bool, bool, bool, bool], Policy]] = {
    "admin": ("Administrator", (True, True, True, True), Policy.ALL),
    "sales_manager": ("Sales manager", (True, True, True, False), Policy.MY_TEAM),
    "sales_executive": ("Sales executive", (True, True, False, False), Policy.MY_TEAM),
}


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with minimal reference data.

    This function:
      - Creates or retrieves a base tenant
      - Seeds roles, modules and role-module permissions
      - Seeds an admin user
    """
    settings = get_app_settings()
    async for session in get_async_session():
        tenant_id = await _ensure_base_tenant(session, name="Acme Trading", slug=settings.DEFAULT_TENANT_SLUG)
        async with tenant_context(session, tenant_id):
            role_ids = await _seed_roles(session)
            module_ids = await _seed_modules(session)
            await _seed_role_modules(session, role_ids, module_ids)
            await _seed_admin_user(session, role_ids["admin"], settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD)

        await session.commit()
        logger.info("Seeded tenant %s", tenant_id)


async def _ensure_base_tenant(session: AsyncSession, name: str, slug: str) -> UUID:
    """
    Ensure a tenant row exists. RLS on tenants requires setting app.tenant_id
    to the same id being inserted (WITH CHECK id = current_setting()).
    """
    res = await session.execute(text("SELECT id FROM tenants WHERE slug = :slug"), {"slug": slug})
    row = res.first()
    if row:
        return row[0]

    tenant_id = uuid4()
    await session.execute(text("SELECT set_config('app.tenant_id', :tid, false)"), {"tid": str(tenant_id)})
    await session.execute(
        text("INSERT INTO tenants (id, name, slug) VALUES (:id, :name, :slug) ON CONFLICT (slug) DO NOTHING"),
        {"id": str(tenant_id), "name": name, "slug": slug},
    )
    res = await session.execute(text("SELECT id FROM tenants WHERE slug = :slug"), {"slug": slug})
    row = res.first()
    if not row:
        raise RuntimeError("Failed to create or load base tenant")
    return row[0]


async def _seed_roles(session: AsyncSession) -> Dict[str, int]:
    """Upsert the default roles and return a mapping name->id."""
    ids: Dict[str, int] = {}
    for name, (description, _, _) in ROLES.items():
        await session.execute(
            text(
                """
                INSERT INTO roles (tenant_id, name, description)
                VALUES (current_setting('app.tenant_id', true)::uuid, :name, :desc)
                ON CONFLICT ON CONSTRAINT uq_roles_tenant_name DO NOTHING
                """
            ),
            {"name": name, "desc": description},
        )
        res = await session.execute(text("SELECT id FROM roles WHERE name = :name"), {"name": name})
        ids[name] = res.scalar_one()
    return ids


async def _seed_modules(session: AsyncSession) -> Dict[str, int]:
    """Upsert the module registry and return a mapping key->id."""
    ids: Dict[str, int] = {}
    for name, ref in MODULES:
        await session.execute(
            text(
                """
                INSERT INTO modules (tenant_id, name, key, route, status)
                VALUES (current_setting('app.tenant_id', true)::uuid, :name, :key, :route, 'active')
                ON CONFLICT ON CONSTRAINT uq_modules_tenant_key DO NOTHING
                """
            ),
            {"name": name, "key": ref.key, "route": ref.route},
        )
        res = await session.execute(text("SELECT id FROM modules WHERE key = :key"), {"key": ref.key})
        ids[ref.key] = res.scalar_one()
    return ids


async def _seed_role_modules(
    session: AsyncSession, role_ids: Dict[str, int], module_ids: Dict[str, int]
) -> None:
    """
    Grant every role its default flags and listing criteria on each module.

    Sales roles get no row for the admin screens, so they are denied there.
    """
    rows: List[dict] = []
    for role_name, (_, flags, criteria) in ROLES.items():
        for key, module_id in module_ids.items():
            if role_name != "admin" and key in ADMIN_MODULE_KEYS:
                continue
            can_create, can_read, can_update, can_delete = flags
            rows.append(
                {
                    "rid": role_ids[role_name],
                    "mid": module_id,
                    "c": can_create,
                    "r": can_read,
                    "u": can_update,
                    "d": can_delete,
                    "lc": criteria.value,
                }
            )

    for params in rows:
        await session.execute(
            text(
                """
                INSERT INTO role_modules
                    (tenant_id, role_id, module_id, can_create, can_read, can_update, can_delete, listing_criteria)
                VALUES
                    (current_setting('app.tenant_id', true)::uuid, :rid, :mid, :c, :r, :u, :d, :lc)
                ON CONFLICT ON CONSTRAINT uq_role_modules_tenant_role_module DO NOTHING
                """
            ),
            params,
        )


async def _seed_admin_user(session: AsyncSession, role_id: int, email: str, password: str) -> None:
    """Create the admin user if missing; it has no manager."""
    res = await session.execute(text("SELECT id FROM users WHERE lower(email) = lower(:email)"), {"email": email})
    if res.first():
        return
    await session.execute(
        text(
            """
            INSERT INTO users (tenant_id, email, full_name, hashed_password, role_id)
            VALUES (current_setting('app.tenant_id', true)::uuid, :email, 'Administrator', :pwd, :rid)
            """
        ),
        {"email": email.lower(), "pwd": get_password_hash(password), "rid": role_id},
    )


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
