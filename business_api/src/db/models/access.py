from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntPkMixin, SoftDeleteMixin, TenantMixin, TimestampMixin


class Module(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Navigable business module (inquiries, orders, ...) addressed by route or key."""
    __tablename__ = "modules"
    __table_args__ = (
        UniqueConstraint("tenant_id", "key", name="uq_modules_tenant_key"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    route: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active")


class RoleModule(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """
    Per role and module permission flags plus the listing criteria.

    listing_criteria is free text in storage; only the policy normalizer in
    src.services.policy interprets it.
    """
    __tablename__ = "role_modules"
    __table_args__ = (
        UniqueConstraint("tenant_id", "role_id", "module_id", name="uq_role_modules_tenant_role_module"),
    )

    role_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    module_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    can_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    can_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    can_update: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    can_delete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    listing_criteria: Mapped[str] = mapped_column(
        Text, nullable=False, default="my_team", server_default="my_team"
    )
