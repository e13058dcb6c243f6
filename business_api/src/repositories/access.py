from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import or_, select

from src.db.models.access import Module, RoleModule
from .base import BaseRepository


class AccessRepository(BaseRepository):
    """Repository for modules and role-module permission rows within a tenant."""

    # Modules
    async def find_module_id(
        self, *, routes: Sequence[str] = (), key: Optional[str] = None
    ) -> Optional[int]:
        """
        Return the id of the first non-deleted module matching any route or the key.

        Ties are broken by the lowest id so repeated lookups agree.
        """
        clauses = []
        if routes:
            clauses.append(Module.route.in_(list(routes)))
        if key:
            clauses.append(Module.key == key)
        if not clauses:
            return None
        stmt = (
            select(Module.id)
            .where(Module.deleted_at.is_(None), or_(*clauses))
            .order_by(Module.id)
            .limit(1)
        )
        return await self.scalar_one_or_none(self.in_tenant(stmt, Module))

    async def list_modules(self) -> List[Module]:
        stmt = self.in_tenant(select(Module).where(Module.deleted_at.is_(None)), Module).order_by(Module.id)
        return list(await self.scalars(stmt))

    # Role modules
    async def get_role_module(self, role_id: int, module_id: int) -> Optional[RoleModule]:
        stmt = select(RoleModule).where(
            RoleModule.role_id == role_id,
            RoleModule.module_id == module_id,
            RoleModule.deleted_at.is_(None),
        )
        return await self.scalar_one_or_none(self.in_tenant(stmt, RoleModule))

    async def list_role_modules(
        self, *, role_id: Optional[int] = None, limit: int = 100, offset: int = 0
    ) -> List[RoleModule]:
        stmt = self.in_tenant(select(RoleModule).where(RoleModule.deleted_at.is_(None)), RoleModule)
        if role_id is not None:
            stmt = stmt.where(RoleModule.role_id == role_id)
        stmt = stmt.order_by(RoleModule.role_id, RoleModule.module_id).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def upsert_role_module(
        self,
        *,
        role_id: int,
        module_id: int,
        can_create: bool,
        can_read: bool,
        can_update: bool,
        can_delete: bool,
        listing_criteria: str,
    ) -> RoleModule:
        row = await self.get_role_module(role_id, module_id)
        if row is None:
            row = RoleModule(role_id=role_id, module_id=module_id)
            if self.tenant_id is not None:
                row.tenant_id = self.tenant_id
            await self.add(row)
        row.can_create = can_create
        row.can_read = can_read
        row.can_update = can_update
        row.can_delete = can_delete
        row.listing_criteria = listing_criteria
        await self.commit()
        return (await self.get_role_module(role_id, module_id))  # type: ignore
