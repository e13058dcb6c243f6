from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.access import AccessRepository
from src.repositories.directory import DirectoryRepository
from src.services.base import BaseService
from src.services.hierarchy import OrgNode, TeamSet, compute_team, normalize_id
from src.services.policy import ModuleRef, Policy, PolicyResolver, PolicyStore
from src.services.visibility_cache import VisibilityCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilityDecision:
    """
    Outcome of a visibility resolution for one request.

    enforced_ids is None when the caller is unrestricted. An empty set means the
    caller resolved to no team at all and must see nothing.
    """
    policy: Policy
    enforced_ids: Optional[FrozenSet[int]]

    @property
    def unrestricted(self) -> bool:
        return self.policy is Policy.ALL or self.enforced_ids is None

    @classmethod
    def allow_all(cls) -> "VisibilityDecision":
        return cls(policy=Policy.ALL, enforced_ids=None)

    @classmethod
    def lockout(cls) -> "VisibilityDecision":
        return cls(policy=Policy.MY_TEAM, enforced_ids=frozenset())


class OrgGraphStore(Protocol):
    """Collaborator returning the tenant's current org snapshot (see DirectoryRepository)."""

    async def list_org_nodes(self) -> List[OrgNode]:
        ...


class VisibilityContext(BaseService):
    """
    Per-request composition of policy, hierarchy and cache.

    The same resolve() serves list endpoints and single-record endpoints of
    every module; modules differ only by the ModuleRef they pass.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: UUID | str,
        cache: VisibilityCache,
        *,
        policy_store: Optional[PolicyStore] = None,
        directory: Optional[OrgGraphStore] = None,
    ) -> None:
        super().__init__(session)
        self.tenant_id = tenant_id
        self.cache = cache
        self.policy_store = policy_store
        self.directory = directory

    def _policy_resolver(self, transaction: Optional[AsyncSession]) -> PolicyResolver:
        if transaction is not None:
            return PolicyResolver(AccessRepository(transaction, self.tenant_id))
        return PolicyResolver(self.policy_store or AccessRepository(self.session, self.tenant_id))

    def _directory(self, transaction: Optional[AsyncSession]) -> OrgGraphStore:
        if transaction is not None:
            return DirectoryRepository(transaction, self.tenant_id)
        return self.directory or DirectoryRepository(self.session, self.tenant_id)

    # PUBLIC_INTERFACE
    async def team_for(self, user_id: Any, *, transaction: Optional[AsyncSession] = None) -> TeamSet:
        """
        Return the team rooted at user_id.

        With an explicit transaction the snapshot is read through it and the
        cache is neither consulted nor populated.
        """
        directory = self._directory(transaction)

        async def _compute() -> TeamSet:
            snapshot = await directory.list_org_nodes()
            return compute_team(user_id, snapshot)

        return await self.cache.get_team(
            self.tenant_id, user_id, _compute, bypass=transaction is not None
        )

    # PUBLIC_INTERFACE
    async def permission_for(self, user: Any, module_ref: ModuleRef) -> Any:
        """Return the role-module row of the user's role for a module, or None."""
        return await self._policy_resolver(None).get_permission(getattr(user, "role_id", None), module_ref)

    # PUBLIC_INTERFACE
    async def resolve(
        self,
        user: Any,
        module_ref: ModuleRef,
        *,
        transaction: Optional[AsyncSession] = None,
    ) -> VisibilityDecision:
        """
        Decide which owners' records the user may see in a module.

        Parameters:
            user: object exposing id and role_id
            module_ref: module being accessed
            transaction: session holding an explicit transaction, if any
        Returns:
            VisibilityDecision; enforced_ids None means do not filter
        """
        role_id = getattr(user, "role_id", None)
        user_id = getattr(user, "id", None)

        policy = await self._policy_resolver(transaction).resolve_policy(role_id, module_ref)
        if policy is Policy.ALL:
            logger.debug("Visibility %s role_id=%r: all", module_ref, role_id)
            return VisibilityDecision.allow_all()

        if normalize_id(user_id) is None:
            logger.warning("Visibility %s: invalid user id %r, locking out", module_ref, user_id)
            return VisibilityDecision.lockout()

        team = await self.team_for(user_id, transaction=transaction)
        logger.debug("Visibility %s user_id=%s: my_team (%d ids)", module_ref, user_id, len(team))
        return VisibilityDecision(policy=Policy.MY_TEAM, enforced_ids=team)


# PUBLIC_INTERFACE
async def resolve_visibility(
    session: AsyncSession,
    tenant_id: UUID | str,
    cache: VisibilityCache,
    user: Any,
    module_ref: ModuleRef,
    *,
    transaction: Optional[AsyncSession] = None,
) -> VisibilityDecision:
    """Convenience wrapper building a VisibilityContext for a single resolution."""
    ctx = VisibilityContext(session, tenant_id, cache)
    return await ctx.resolve(user, module_ref, transaction=transaction)
