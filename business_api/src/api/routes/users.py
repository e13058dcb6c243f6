from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_id, get_tenant_session, get_visibility_cache, require_module_permission
from src.core.security import get_password_hash
from src.repositories.security import SecurityRepository
from src.schemas.auth import UserCreate, UserRead, UserUpdate
from src.services.modules import USERS
from src.services.visibility_cache import VisibilityCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["Users"])


async def _check_links(repo: SecurityRepository, *, role_id=None, manager_id=None) -> None:
    """Reject role or manager ids that do not exist in the current tenant."""
    if role_id is not None and not await repo.get_role_by_id(role_id):
        raise HTTPException(status_code=400, detail="Role not found")
    if manager_id is not None and not await repo.get_user_by_id(manager_id):
        raise HTTPException(status_code=400, detail="Manager not found")


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[UserRead],
    summary="List users",
    description="List users for the current tenant.",
    dependencies=[Depends(require_module_permission(USERS, "read"))],
)
async def list_users(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = 100,
    offset: int = 0,
) -> List[UserRead]:
    repo = SecurityRepository(session, tenant_id)
    return [UserRead.model_validate(u) for u in await repo.list_users(limit=limit, offset=offset)]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Create a user, optionally placing them under a manager.",
    dependencies=[Depends(require_module_permission(USERS, "create"))],
)
async def create_user(
    payload: UserCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    cache: VisibilityCache = Depends(get_visibility_cache),
) -> UserRead:
    repo = SecurityRepository(session, tenant_id)
    if await repo.get_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")
    await _check_links(repo, role_id=payload.role_id, manager_id=payload.manager_id)

    user = await repo.create_user(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        full_name=payload.full_name,
        is_active=payload.is_active,
        role_id=payload.role_id,
        manager_id=payload.manager_id,
    )
    cache.invalidate_user(user.id)
    return UserRead.model_validate(user)


# PUBLIC_INTERFACE
@router.get(
    "/{user_id}/reports",
    response_model=List[UserRead],
    summary="List direct reports",
    dependencies=[Depends(require_module_permission(USERS, "read"))],
)
async def list_direct_reports(
    user_id: int = Path(..., gt=0),
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[UserRead]:
    repo = SecurityRepository(session, tenant_id)
    return [UserRead.model_validate(u) for u in await repo.list_direct_reports(user_id)]


# PUBLIC_INTERFACE
@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Update user",
    description=(
        "Update a user. Changing role_id or manager_id evicts the cached team of this user "
        "in every tenant."
    ),
    dependencies=[Depends(require_module_permission(USERS, "update"))],
)
async def update_user(
    user_id: int = Path(..., gt=0),
    payload: UserUpdate = ...,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    cache: VisibilityCache = Depends(get_visibility_cache),
) -> UserRead:
    repo = SecurityRepository(session, tenant_id)
    changes = {}
    for field in ("role_id", "manager_id"):
        if field in payload.model_fields_set:
            changes[field] = getattr(payload, field)
    if changes.get("manager_id") == user_id:
        raise HTTPException(status_code=400, detail="A user cannot manage themselves")
    await _check_links(repo, role_id=changes.get("role_id"), manager_id=changes.get("manager_id"))

    updated = await repo.update_user(
        user_id,
        full_name=payload.full_name,
        is_active=payload.is_active,
        **changes,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")

    if changes:
        evicted = cache.invalidate_user(user_id)
        logger.info("User %s hierarchy fields changed, evicted %d team entries", user_id, evicted)
    return UserRead.model_validate(updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete user",
    dependencies=[Depends(require_module_permission(USERS, "delete"))],
)
async def delete_user(
    user_id: int = Path(..., gt=0),
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    cache: VisibilityCache = Depends(get_visibility_cache),
) -> None:
    repo = SecurityRepository(session, tenant_id)
    user = await repo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    await repo.soft_delete_user(user_id)
    cache.invalidate_user(user_id)
