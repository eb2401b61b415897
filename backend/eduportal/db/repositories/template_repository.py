# backend/eduportal/db/repositories/template_repository.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.exceptions import NotFoundError, ValidationError
from eduportal.db.models.template import DocumentTemplate, SchoolTemplateAccess
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[DocumentTemplate]):
    """Document templates and per-school grants"""

    def __init__(self, session: AsyncSession):
        super().__init__(DocumentTemplate, session)

    async def list_templates(self, active_only: bool = False) -> List[DocumentTemplate]:
        query = select(DocumentTemplate).order_by(DocumentTemplate.created_at.desc(), DocumentTemplate.id.desc())
        if active_only:
            query = query.where(DocumentTemplate.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_template(self, data: Dict[str, Any], created_by: Optional[int] = None) -> DocumentTemplate:
        if not data.get("name") or not data.get("type"):
            raise ValidationError("Template name and type are required")
        if data.get("required_credits", 1) < 0:
            raise ValidationError("required_credits cannot be negative", field="required_credits")
        return await self.create({**data, "created_by": created_by})

    async def _get_grant(self, school_instance_id: int, template_id: int) -> Optional[SchoolTemplateAccess]:
        result = await self.session.execute(
            select(SchoolTemplateAccess)
            .where(SchoolTemplateAccess.school_instance_id == school_instance_id)
            .where(SchoolTemplateAccess.template_id == template_id)
        )
        return result.scalar_one_or_none()

    async def grant_access(
        self,
        school_instance_id: int,
        template_id: int,
        granted_by: Optional[int] = None,
        custom_config: Optional[Dict[str, Any]] = None,
    ) -> SchoolTemplateAccess:
        """
        Grant a template to a school. An existing grant for the same pair is
        re-enabled rather than duplicated.
        """
        if await self.session.get(SchoolInstance, school_instance_id) is None:
            raise NotFoundError("School", school_instance_id)
        if await self.get(template_id) is None:
            raise NotFoundError("Template", template_id)

        grant = await self._get_grant(school_instance_id, template_id)
        if grant is None:
            grant = SchoolTemplateAccess(
                school_instance_id=school_instance_id,
                template_id=template_id,
                granted_by=granted_by,
                custom_config=custom_config or {},
            )
            self.session.add(grant)
        else:
            grant.is_enabled = True
            grant.granted_by = granted_by
            grant.granted_at = datetime.utcnow()
            if custom_config is not None:
                grant.custom_config = custom_config

        await self.session.commit()
        await self.session.refresh(grant)
        return grant

    async def revoke_access(self, school_instance_id: int, template_id: int) -> bool:
        grant = await self._get_grant(school_instance_id, template_id)
        if grant is None:
            return False
        grant.is_enabled = False
        await self.session.commit()
        return True

    async def list_access(self, school_instance_id: int) -> List[SchoolTemplateAccess]:
        result = await self.session.execute(
            select(SchoolTemplateAccess)
            .where(SchoolTemplateAccess.school_instance_id == school_instance_id)
            .order_by(SchoolTemplateAccess.granted_at.desc(), SchoolTemplateAccess.id.desc())
        )
        return list(result.scalars().all())

    async def has_access(self, school_instance_id: int, template_id: int) -> bool:
        grant = await self._get_grant(school_instance_id, template_id)
        return bool(grant and grant.is_enabled)
