from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select, update

from src.db.models.security import Role, User
from .base import BaseRepository

_UNSET = object()


class SecurityRepository(BaseRepository):
    """Repository for user and role management within a tenant."""

    # Users
    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower(), User.deleted_at.is_(None))
        return await self.scalar_one_or_none(self.in_tenant(stmt, User))

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        stmt = select(User).where(User.id == user_id, User.deleted_at.is_(None))
        return await self.scalar_one_or_none(self.in_tenant(stmt, User))

    async def list_users(self, limit: int = 100, offset: int = 0) -> List[User]:
        stmt = (
            self.in_tenant(select(User).where(User.deleted_at.is_(None)), User)
            .order_by(User.id)
            .offset(offset)
            .limit(limit)
        )
        return list(await self.scalars(stmt))

    async def create_user(
        self,
        *,
        email: str,
        hashed_password: str,
        full_name: Optional[str] = None,
        is_active: bool = True,
        role_id: Optional[int] = None,
        manager_id: Optional[int] = None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            hashed_password=hashed_password,
            full_name=full_name,
            is_active=is_active,
            role_id=role_id,
            manager_id=manager_id,
        )
        if self.tenant_id is not None:
            user.tenant_id = self.tenant_id
        await self.add(user)
        await self.commit()
        await self.session.refresh(user)
        return user

    async def list_direct_reports(self, manager_id: int) -> List[User]:
        stmt = select(User).where(User.manager_id == manager_id, User.deleted_at.is_(None)).order_by(User.id)
        stmt = self.in_tenant(stmt, User)
        return list(await self.scalars(stmt))

    async def update_user(
        self,
        user_id: int,
        *,
        full_name: Optional[str] = None,
        is_active: Optional[bool] = None,
        role_id=_UNSET,
        manager_id=_UNSET,
    ) -> Optional[User]:
        """
        Update a user. role_id and manager_id accept None to clear the link, so
        they default to a sentinel rather than None.
        """
        values = {}
        if full_name is not None:
            values["full_name"] = full_name
        if is_active is not None:
            values["is_active"] = is_active
        if role_id is not _UNSET:
            values["role_id"] = role_id
        if manager_id is not _UNSET:
            values["manager_id"] = manager_id

        if not values:
            return await self.get_user_by_id(user_id)

        stmt = (
            update(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(self.in_tenant(stmt, User))
        await self.commit()
        return await self.get_user_by_id(user_id)

    async def soft_delete_user(self, user_id: int) -> None:
        stmt = update(User).where(User.id == user_id).values(deleted_at=func.now(), is_active=False)
        await self.execute(self.in_tenant(stmt, User))
        await self.commit()

    # Roles
    async def get_role_by_id(self, role_id: int) -> Optional[Role]:
        stmt = select(Role).where(Role.id == role_id)
        return await self.scalar_one_or_none(self.in_tenant(stmt, Role))
