from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    """Access token response."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")


class UserRead(BaseModel):
    """User read model."""
    id: int = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    full_name: Optional[str] = Field(None)
    is_active: bool = Field(..., description="Active flag")
    role_id: Optional[int] = Field(None, description="Role used for listing-criteria lookups")
    manager_id: Optional[int] = Field(None, description="Direct manager in the reporting hierarchy")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """
    Admin update user payload.

    Fields left out of the request body are not changed; an explicit null for
    role_id or manager_id clears the link.
    """
    full_name: Optional[str] = Field(None)
    is_active: Optional[bool] = Field(None)
    role_id: Optional[int] = Field(None, gt=0)
    manager_id: Optional[int] = Field(None, gt=0)


class UserCreate(BaseModel):
    """Admin create user payload."""
    email: EmailStr = Field(..., description="Email")
    password: str = Field(..., min_length=8, description="Password")
    full_name: Optional[str] = Field(None)
    is_active: bool = Field(True)
    role_id: Optional[int] = Field(None, gt=0)
    manager_id: Optional[int] = Field(None, gt=0)
