from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import Executable, Select, false, or_
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from src.services.visibility import VisibilityDecision


# PUBLIC_INTERFACE
def owner_scope(stmt: Select, columns: Sequence[Any], decision: Optional[VisibilityDecision]) -> Select:
    """
    Restrict a select to rows owned by the decision's enforced ids.

    An unrestricted decision leaves the statement untouched. An empty id set
    matches nothing. With several owner columns, a row matches if any of them
    is in the set.
    """
    if decision is None or decision.unrestricted:
        return stmt
    if not decision.enforced_ids:
        return stmt.where(false())
    ids = sorted(decision.enforced_ids)
    return stmt.where(or_(*[column.in_(ids) for column in columns]))


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Note:
      Tenant isolation is enforced by Postgres RLS using the `app.tenant_id` GUC.
      Ensure the session you're using has tenant context set via tenant_context.
      Repositories bound to a tenant_id also add an explicit tenant predicate
      through in_tenant, so reads stay scoped when the connecting role bypasses RLS.
      Owner scoping within a tenant is applied explicitly with owner_scope.
    """

    def __init__(self, session: AsyncSession, tenant_id: UUID | str | None = None) -> None:
        self.session = session
        self.tenant_id = UUID(str(tenant_id)) if tenant_id is not None else None

    def in_tenant(self, stmt, model):
        """Restrict a select/update on a tenant-scoped model to the bound tenant."""
        if self.tenant_id is None:
            return stmt
        return stmt.where(model.tenant_id == self.tenant_id)

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def add_all(self, entities: Iterable[Any]) -> None:
        """Add multiple entities to session."""
        self.session.add_all(list(entities))

    async def add(self, entity: Any) -> None:
        """Add a single entity to session."""
        self.session.add(entity)
