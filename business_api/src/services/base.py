from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Base class for services. Holds the tenant-scoped session shared by the
    repositories a service composes.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
