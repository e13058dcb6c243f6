from __future__ import annotations

import logging
from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import user_id_var
from src.core.security import decode_token
from src.db.session import get_async_session, tenant_context
from src.repositories.access import AccessRepository
from src.repositories.security import SecurityRepository
from src.services.hierarchy import normalize_id
from src.services.policy import ModuleRef, PolicyResolver
from src.services.visibility import VisibilityContext, VisibilityDecision
from src.services.visibility_cache import VisibilityCache

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


# PUBLIC_INTERFACE
async def get_tenant_id(x_tenant_id: str | None = Header(default=None, alias="X-Tenant-ID")) -> UUID:
    """
    Extract and validate the tenant id from the X-Tenant-ID header.

    Raises:
        HTTPException: 400 Bad Request if header missing or invalid UUID.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required.",
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header must be a valid UUID string.",
        )


# PUBLIC_INTERFACE
async def get_tenant_session(
    tenant_id: UUID = Depends(get_tenant_id),
    session_dep=Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession with Row-Level Security (RLS) configured for the given tenant.
    """
    async for session in session_dep:
        async with tenant_context(session, tenant_id):
            yield session


# PUBLIC_INTERFACE
async def get_current_user(
    tenant_id: UUID = Depends(get_tenant_id),
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_tenant_session),
):
    """
    Resolve and return the current user from the Authorization bearer token.

    Validates the token, ensures the tenant claim matches the tenant header, and
    loads the user through the RLS-scoped session.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    tok_tenant = payload.get("tenant_id")
    if not tok_tenant or str(tok_tenant) != str(tenant_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant mismatch")

    user_id = normalize_id(payload.get("sub"))
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    repo = SecurityRepository(session, tenant_id)
    user = await repo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    user_id_var.set(str(user.id))
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user=Depends(get_current_user)):
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
def get_visibility_cache(request: Request) -> VisibilityCache:
    """Return the process-wide team cache created at application startup."""
    return request.app.state.visibility_cache


# PUBLIC_INTERFACE
async def get_visibility_context(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    cache: VisibilityCache = Depends(get_visibility_cache),
) -> VisibilityContext:
    """Build the per-request visibility context."""
    return VisibilityContext(session, tenant_id, cache)


def _require_role_id(user) -> int:
    """Return the user's role id, or answer 401 when the user has none."""
    role_id = normalize_id(getattr(user, "role_id", None))
    if role_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return role_id


# PUBLIC_INTERFACE
def require_module_permission(module_ref: ModuleRef, action: str = "read"):
    """
    Create a dependency that requires the current user's role to grant action
    on the module.

    Raises HTTP 401 when the user has no role and Forbidden (403) when the role
    lacks the module or the action flag.
    """

    async def _dep(
        user=Depends(get_current_active_user),
        tenant_id: UUID = Depends(get_tenant_id),
        session: AsyncSession = Depends(get_tenant_session),
    ) -> bool:
        role_id = _require_role_id(user)
        resolver = PolicyResolver(AccessRepository(session, tenant_id))
        await resolver.assert_module_permission(role_id, module_ref, action)
        return True

    return _dep


# PUBLIC_INTERFACE
def require_module_permission_any(*module_refs: ModuleRef, action: str = "read"):
    """
    Create a dependency that passes when the user's role grants action on any
    of the modules. Used by endpoints shared by several menu entries.
    """

    async def _dep(
        user=Depends(get_current_active_user),
        tenant_id: UUID = Depends(get_tenant_id),
        session: AsyncSession = Depends(get_tenant_session),
    ) -> bool:
        role_id = _require_role_id(user)
        resolver = PolicyResolver(AccessRepository(session, tenant_id))
        await resolver.assert_module_permission_any(role_id, module_refs, action)
        return True

    return _dep


# PUBLIC_INTERFACE
def visibility_for(module_ref: ModuleRef, *, transactional: bool = False):
    """
    Create a dependency resolving the current user's VisibilityDecision for a module.

    FastAPI caches the dependency per request, so a list filter and any record
    guard in the same request share one decision. With transactional=True the
    decision is computed through the request session's transaction and skips
    the team cache; write endpoints use it so they never act on a stale team.
    """

    async def _dep(
        user=Depends(get_current_active_user),
        ctx: VisibilityContext = Depends(get_visibility_context),
    ) -> VisibilityDecision:
        transaction = ctx.session if transactional else None
        return await ctx.resolve(user, module_ref, transaction=transaction)

    return _dep
