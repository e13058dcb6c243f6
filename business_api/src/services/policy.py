"""
Listing policy resolution per role and module.

Every ambiguity resolves to MY_TEAM: an invalid role, an unknown module, a
missing role-module row or an unrecognized stored value all restrict the
caller to their own team instead of surfacing an error.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, Tuple

from src.core.errors import Forbidden
from src.services.hierarchy import normalize_id

logger = logging.getLogger(__name__)


class Policy(str, enum.Enum):
    """Listing policy stored in role_modules.listing_criteria."""
    ALL = "all"
    MY_TEAM = "my_team"


# PUBLIC_INTERFACE
def normalize_listing_criteria(value: Any) -> Policy:
    """
    Interpret a stored listing_criteria value.

    Only "all" (trimmed, any case) grants ALL. This is the single interpreter of
    the stored string; writers store its result so reads and writes agree.
    """
    if isinstance(value, Policy):
        return value
    if value is None:
        return Policy.MY_TEAM
    if str(value).strip().lower() == Policy.ALL.value:
        return Policy.ALL
    return Policy.MY_TEAM


def normalize_route(value: Optional[str]) -> Optional[str]:
    """Trim a module route and force a single leading slash."""
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    return "/" + trimmed.lstrip("/")


def normalize_key(value: Optional[str]) -> Optional[str]:
    """Trim and lower-case a module key."""
    if value is None:
        return None
    trimmed = str(value).strip().lower()
    return trimmed or None


@dataclass(frozen=True)
class ModuleRef:
    """
    Reference to a module: a direct id, or a route/key pair to look it up by.

    A valid module_id always wins over route and key.
    """
    module_id: Optional[int] = None
    route: Optional[str] = None
    key: Optional[str] = None

    def route_variants(self) -> Tuple[str, ...]:
        route = normalize_route(self.route)
        if route is None:
            return ()
        bare = route.lstrip("/")
        return (route, bare) if bare else (route,)

    def __str__(self) -> str:
        if self.module_id is not None:
            return f"module#{self.module_id}"
        return f"module(route={self.route!r}, key={self.key!r})"


class PolicyStore(Protocol):
    """Collaborator reading modules and role-module rows (see AccessRepository)."""

    async def find_module_id(
        self, *, routes: Sequence[str] = (), key: Optional[str] = None
    ) -> Optional[int]:
        ...

    async def get_role_module(self, role_id: int, module_id: int) -> Any:
        ...


_ACTION_FLAGS = {
    "read": "can_read",
    "create": "can_create",
    "update": "can_update",
    "delete": "can_delete",
}


class PolicyResolver:
    """Resolve listing policies and module permissions for a role."""

    def __init__(self, store: PolicyStore) -> None:
        self.store = store

    async def resolve_module_id(self, module_ref: ModuleRef) -> Optional[int]:
        """Return the concrete module id for a reference, or None when unresolvable."""
        direct = normalize_id(module_ref.module_id)
        if direct is not None:
            return direct
        routes = module_ref.route_variants()
        key = normalize_key(module_ref.key)
        if not routes and key is None:
            return None
        return await self.store.find_module_id(routes=routes, key=key)

    async def _role_module(self, role_id: Any, module_ref: ModuleRef) -> Any:
        role = normalize_id(role_id)
        if role is None:
            return None
        module_id = await self.resolve_module_id(module_ref)
        if module_id is None:
            return None
        return await self.store.get_role_module(role, module_id)

    # PUBLIC_INTERFACE
    async def resolve_policy(self, role_id: Any, module_ref: ModuleRef) -> Policy:
        """
        Return the listing policy for a role on a module.

        Never raises for configuration problems; any missing or invalid input
        resolves to Policy.MY_TEAM.
        """
        row = await self._role_module(role_id, module_ref)
        if row is None:
            logger.debug("No listing policy for role_id=%r %s; defaulting to my_team", role_id, module_ref)
            return Policy.MY_TEAM
        return normalize_listing_criteria(getattr(row, "listing_criteria", None))

    # PUBLIC_INTERFACE
    async def assert_module_permission(
        self, role_id: Any, module_ref: ModuleRef, action: str = "read"
    ) -> Any:
        """
        Require that the role may perform action on the module.

        Raises:
            Forbidden: invalid role, unresolvable module, no role-module row, or
                the action flag is not set.
        Returns:
            The role-module row granting the action.
        """
        flag = _ACTION_FLAGS.get(action, _ACTION_FLAGS["read"])
        row = await self._role_module(role_id, module_ref)
        if row is None:
            logger.info("Module access denied role_id=%r %s: not assigned", role_id, module_ref)
            raise Forbidden("Forbidden: module access not assigned to role")
        if not getattr(row, flag, False):
            logger.info("Module access denied role_id=%r %s action=%s", role_id, module_ref, action)
            raise Forbidden("Forbidden: insufficient permissions for this action")
        return row

    # PUBLIC_INTERFACE
    async def get_permission(self, role_id: Any, module_ref: ModuleRef) -> Any:
        """Return the role-module row for a role and module, or None."""
        return await self._role_module(role_id, module_ref)

    # PUBLIC_INTERFACE
    async def assert_module_permission_any(
        self, role_id: Any, module_refs: Sequence[ModuleRef], action: str = "read"
    ) -> Any:
        """
        Require that the role may perform action on at least one of the modules.

        Modules that cannot be resolved or are not assigned to the role are
        skipped. Returns the first granting row; raises Forbidden when none grants.
        """
        flag = _ACTION_FLAGS.get(action, _ACTION_FLAGS["read"])
        for module_ref in module_refs:
            row = await self._role_module(role_id, module_ref)
            if row is not None and getattr(row, flag, False):
                return row
        logger.info(
            "Module access denied role_id=%r action=%s on any of %s",
            role_id,
            action,
            ", ".join(str(ref) for ref in module_refs),
        )
        raise Forbidden("Forbidden: insufficient permissions for this action")
