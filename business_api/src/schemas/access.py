from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.services.policy import Policy, normalize_listing_criteria


class RoleModuleRead(BaseModel):
    """Role-module permission row."""
    id: int = Field(..., description="Role-module ID")
    role_id: int = Field(..., description="Role")
    module_id: int = Field(..., description="Module")
    can_create: bool = Field(...)
    can_read: bool = Field(...)
    can_update: bool = Field(...)
    can_delete: bool = Field(...)
    listing_criteria: Policy = Field(..., description="'all' or 'my_team'")

    class Config:
        from_attributes = True

    @field_validator("listing_criteria", mode="before")
    @classmethod
    def _normalize(cls, v):
        return normalize_listing_criteria(v)


class RoleModuleUpsert(BaseModel):
    """Create or replace the permission row for a role and module."""
    role_id: int = Field(..., gt=0)
    module_id: int = Field(..., gt=0)
    can_create: bool = Field(False)
    can_read: bool = Field(True)
    can_update: bool = Field(False)
    can_delete: bool = Field(False)
    listing_criteria: Policy = Field(Policy.MY_TEAM, description="Anything other than 'all' is stored as 'my_team'")

    @field_validator("listing_criteria", mode="before")
    @classmethod
    def _normalize(cls, v):
        return normalize_listing_criteria(v)


class VisibilityRead(BaseModel):
    """Visibility decision and module permission flags of the current user."""
    module: str = Field(..., description="Module reference")
    policy: Policy = Field(...)
    enforced_ids: Optional[List[int]] = Field(
        None, description="Owner ids the user may see; null means unrestricted"
    )
    can_create: bool = Field(False)
    can_read: bool = Field(False)
    can_update: bool = Field(False)
    can_delete: bool = Field(False)


class CacheClearResponse(BaseModel):
    """Result of a visibility cache maintenance call."""
    evicted: int = Field(..., description="Number of evicted team entries")
