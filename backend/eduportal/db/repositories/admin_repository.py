# backend/eduportal/db/repositories/admin_repository.py
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.db.models.admin import PortalAdmin
from eduportal.db.repositories.base import BaseRepository


class AdminRepository(BaseRepository[PortalAdmin]):
    """Repository for portal admin accounts"""

    def __init__(self, session: AsyncSession):
        super().__init__(PortalAdmin, session)

    async def get_by_email(self, email: str) -> Optional[PortalAdmin]:
        """Get admin by email"""
        result = await self.session.execute(
            select(PortalAdmin).where(PortalAdmin.email == email.lower())
        )
        return result.scalar_one_or_none()
