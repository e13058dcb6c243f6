from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import select

from src.db.models.security import User
from src.services.hierarchy import OrgNode
from .base import BaseRepository


class DirectoryRepository(BaseRepository):
    """
    Read-only view of the reporting graph of one tenant.

    The tenant is required: the snapshot query always carries an explicit
    tenant predicate in addition to RLS.
    """

    def __init__(self, session, tenant_id: UUID | str) -> None:
        super().__init__(session, tenant_id)

    def org_nodes_statement(self):
        return self.in_tenant(
            select(User.id, User.manager_id).where(User.deleted_at.is_(None)), User
        )

    async def list_org_nodes(self) -> List[OrgNode]:
        """Return (id, manager_id) for every non-deleted user of the tenant."""
        result = await self.execute(self.org_nodes_statement())
        return [OrgNode(user_id=row.id, manager_id=row.manager_id) for row in result]
