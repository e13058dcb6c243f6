from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_tenant_id, get_tenant_session
from src.core.security import create_access_token, verify_password
from src.repositories.security import SecurityRepository
from src.schemas.auth import Token, UserRead

router = APIRouter(prefix="/auth", tags=["Auth"])


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=Token,
    summary="Login",
    description="Authenticate using OAuth2 password form and receive an access token.",
)
async def login_for_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> Token:
    """Authenticate user and issue an access token carrying the role id."""
    repo = SecurityRepository(session, tenant_id)
    user = await repo.get_user_by_email(form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="User is inactive")

    access = create_access_token(subject=user.id, tenant_id=str(tenant_id), role_id=user.role_id)
    return Token(access_token=access)


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserRead,
    summary="Read current user",
    description="Return the current authenticated user.",
)
async def read_current_user(user=Depends(get_current_active_user)) -> UserRead:
    """Return current user profile."""
    return UserRead.model_validate(user)
