from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import (
    get_current_active_user,
    get_tenant_id,
    get_tenant_session,
    get_visibility_cache,
    get_visibility_context,
    require_module_permission,
)
from src.repositories.access import AccessRepository
from src.repositories.security import SecurityRepository
from src.schemas.access import CacheClearResponse, RoleModuleRead, RoleModuleUpsert, VisibilityRead
from src.services.modules import ROLE_MODULES
from src.services.policy import ModuleRef
from src.services.visibility import VisibilityContext
from src.services.visibility_cache import VisibilityCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Access"])

_PERMISSION_FLAGS = ("can_create", "can_read", "can_update", "can_delete")


# PUBLIC_INTERFACE
@router.get(
    "/admin/role-modules",
    response_model=List[RoleModuleRead],
    summary="List role-module permissions",
    dependencies=[Depends(require_module_permission(ROLE_MODULES, "read"))],
)
async def list_role_modules(
    role_id: Optional[int] = Query(None, gt=0),
    limit: int = 100,
    offset: int = 0,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[RoleModuleRead]:
    repo = AccessRepository(session, tenant_id)
    rows = await repo.list_role_modules(role_id=role_id, limit=limit, offset=offset)
    return [RoleModuleRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.put(
    "/admin/role-modules",
    response_model=RoleModuleRead,
    summary="Upsert role-module permission",
    description=(
        "Create or replace the permission row of a role for a module. listing_criteria is "
        "stored in canonical form: 'all', or 'my_team' for any other value."
    ),
    dependencies=[Depends(require_module_permission(ROLE_MODULES, "update"))],
)
async def upsert_role_module(
    payload: RoleModuleUpsert,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> RoleModuleRead:
    if not await SecurityRepository(session, tenant_id).get_role_by_id(payload.role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    repo = AccessRepository(session, tenant_id)
    row = await repo.upsert_role_module(
        role_id=payload.role_id,
        module_id=payload.module_id,
        can_create=payload.can_create,
        can_read=payload.can_read,
        can_update=payload.can_update,
        can_delete=payload.can_delete,
        listing_criteria=payload.listing_criteria.value,
    )
    logger.info(
        "Role %s module %s listing_criteria=%s",
        payload.role_id,
        payload.module_id,
        payload.listing_criteria.value,
    )
    return RoleModuleRead.model_validate(row)


# PUBLIC_INTERFACE
@router.post(
    "/admin/visibility-cache/clear",
    response_model=CacheClearResponse,
    summary="Clear team cache",
    description="Drop cached teams of one user (user_id given) or of everyone.",
    dependencies=[Depends(require_module_permission(ROLE_MODULES, "update"))],
)
async def clear_visibility_cache(
    user_id: Optional[int] = Query(None, gt=0),
    cache: VisibilityCache = Depends(get_visibility_cache),
) -> CacheClearResponse:
    if user_id is not None:
        return CacheClearResponse(evicted=cache.invalidate_user(user_id))
    return CacheClearResponse(evicted=cache.clear_all())


# PUBLIC_INTERFACE
@router.get(
    "/visibility",
    response_model=VisibilityRead,
    summary="Resolve own visibility",
    description=(
        "Return the current user's listing policy, team and permission flags for a module "
        "route, key or id. Flags are false when the role has no row for the module."
    ),
)
async def read_visibility(
    route: Optional[str] = Query(None, description="Module route, e.g. /order"),
    key: Optional[str] = Query(None, description="Module key, e.g. pending_orders"),
    module_id: Optional[int] = Query(None, gt=0),
    user=Depends(get_current_active_user),
    ctx: VisibilityContext = Depends(get_visibility_context),
) -> VisibilityRead:
    if route is None and key is None and module_id is None:
        raise HTTPException(status_code=400, detail="One of route, key or module_id is required")
    module_ref = ModuleRef(module_id=module_id, route=route, key=key)
    decision = await ctx.resolve(user, module_ref)
    permission = await ctx.permission_for(user, module_ref)
    enforced = None if decision.enforced_ids is None else sorted(decision.enforced_ids)
    flags = {name: bool(getattr(permission, name, False)) for name in _PERMISSION_FLAGS}
    return VisibilityRead(module=str(module_ref), policy=decision.policy, enforced_ids=enforced, **flags)
