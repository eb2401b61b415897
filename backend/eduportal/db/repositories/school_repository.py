# backend/eduportal/db/repositories/school_repository.py
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.config import settings
from eduportal.core.constants import PlanType, SchoolStatus, ResetInterval, DEFAULT_SCHOOL_LIMITS
from eduportal.core.exceptions import ValidationError
from eduportal.core.identifiers import (
    SchoolIdentifiers,
    generate_school_identifiers,
    generate_api_key,
    generate_secret_key,
)
from eduportal.db.models.school import SchoolInstance
from eduportal.db.models.credit import CreditBalance, CreditTransaction
from eduportal.db.models.template import SchoolTemplateAccess
from eduportal.db.models.subscription import SchoolSubscription, BillingInvoice
from eduportal.db.models.usage import UsageRecord
from eduportal.db.repositories.base import BaseRepository, is_missing_table_error

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_ATTEMPTS = 3

# Fields a caller may never set through a generic update
PROTECTED_FIELDS = {"id", "school_id", "api_key", "secret_key", "created_at"}

CREATE_FIELDS = {
    "name", "contact_email", "contact_phone", "address", "custom_domain", "plan_type",
    "remote_project_id", "remote_url", "database_url", "remote_anon_key", "remote_service_key",
    "max_students", "max_teachers", "max_documents", "features", "metadata",
}

UPDATE_FIELDS = CREATE_FIELDS | {"status", "trial_expires_at", "used_documents", "subdomain"}


def _to_columns(data: Dict[str, Any]) -> Dict[str, Any]:
    values = dict(data)
    if "metadata" in values:
        values["extra_metadata"] = values.pop("metadata")
    return values


class SchoolInstanceRepository(BaseRepository[SchoolInstance]):
    """Tenant registry: schools, their credentials and lifecycle state"""

    def __init__(self, session: AsyncSession):
        super().__init__(SchoolInstance, session)

    async def create(
        self,
        data: Dict[str, Any],
        trial_days: Optional[int] = None,
        identifiers: Optional[SchoolIdentifiers] = None,
    ) -> SchoolInstance:
        """
        Register a new school in trial status and seed its credit balance.

        Both rows are written in the same commit. Identifiers are regenerated
        when a uniqueness collision is detected.

        Raises:
            ValidationError: name or contact_email missing, unknown plan or field
        """
        if not data.get("name"):
            raise ValidationError("School name is required", field="name")
        if not data.get("contact_email"):
            raise ValidationError("Contact email is required", field="contact_email")

        unknown = set(data) - CREATE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        plan_type = data.get("plan_type") or PlanType.BASIC.value
        if plan_type not in {p.value for p in PlanType}:
            raise ValidationError(f"Unknown plan type: {plan_type}", field="plan_type")

        days = settings.TRIAL_DAYS if trial_days is None else trial_days
        values = {**DEFAULT_SCHOOL_LIMITS, **_to_columns({k: v for k, v in data.items() if v is not None})}
        values["plan_type"] = plan_type

        ids = identifiers or generate_school_identifiers(data["name"])
        for attempt in range(1, MAX_IDENTIFIER_ATTEMPTS + 1):
            now = datetime.utcnow()
            school = SchoolInstance(
                **values,
                school_id=ids.school_id,
                subdomain=ids.subdomain,
                api_key=ids.api_key,
                secret_key=ids.secret_key,
                status=SchoolStatus.TRIAL.value,
                trial_expires_at=now + timedelta(days=days),
                used_documents=0,
            )
            self.session.add(school)
            try:
                await self.session.flush()
                self.session.add(CreditBalance(
                    school_instance_id=school.id,
                    total_credits=settings.TRIAL_CREDITS,
                    used_credits=0,
                    available_credits=settings.TRIAL_CREDITS,
                    reset_interval=ResetInterval.MONTHLY.value,
                    last_reset_date=now,
                ))
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.warning(
                    "Identifier collision while registering school, regenerating",
                    extra={"attempt": attempt},
                )
                ids = generate_school_identifiers(data["name"])
                continue

            await self.session.refresh(school)
            logger.info("Registered school", extra={"school_id": school.school_id})
            return school

        raise ValidationError("Could not allocate unique school identifiers")

    async def _first(self, *criteria) -> Optional[SchoolInstance]:
        try:
            result = await self.session.execute(
                select(SchoolInstance).where(*criteria).execution_options(populate_existing=True)
            )
        except (OperationalError, ProgrammingError) as exc:
            if not is_missing_table_error(exc):
                raise
            await self.session.rollback()
            logger.warning("School registry table missing, treating lookup as empty")
            return None
        return result.scalar_one_or_none()

    async def get(self, id: int) -> Optional[SchoolInstance]:
        return await self._first(SchoolInstance.id == id)

    async def get_by_school_id(self, school_id: str) -> Optional[SchoolInstance]:
        return await self._first(SchoolInstance.school_id == school_id)

    async def get_by_subdomain(self, subdomain: str) -> Optional[SchoolInstance]:
        return await self._first(SchoolInstance.subdomain == subdomain)

    async def get_by_api_key(self, api_key: str) -> Optional[SchoolInstance]:
        return await self._first(SchoolInstance.api_key == api_key)

    async def list_all(self) -> List[SchoolInstance]:
        """All schools, newest first"""
        try:
            result = await self.session.execute(
                select(SchoolInstance).order_by(SchoolInstance.created_at.desc(), SchoolInstance.id.desc())
            )
        except (OperationalError, ProgrammingError) as exc:
            if not is_missing_table_error(exc):
                raise
            await self.session.rollback()
            logger.warning("School registry table missing, returning empty list")
            return []
        return list(result.scalars().all())

    async def update(self, id: int, fields: Dict[str, Any]) -> Optional[SchoolInstance]:
        """
        Merge fields into a school record.

        Credentials are never changed here; use rotate_keys.
        """
        protected = set(fields) & PROTECTED_FIELDS
        if protected:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(protected))}",
                details={"fields": sorted(protected)},
            )
        unknown = set(fields) - UPDATE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if "plan_type" in fields and fields["plan_type"] not in {p.value for p in PlanType}:
            raise ValidationError(f"Unknown plan type: {fields['plan_type']}", field="plan_type")
        if "status" in fields and fields["status"] not in {s.value for s in SchoolStatus}:
            raise ValidationError(f"Unknown status: {fields['status']}", field="status")

        if await self.get(id) is None:
            return None

        values = _to_columns(fields)
        values["updated_at"] = datetime.utcnow()
        return await super().update(id, values)

    async def rotate_keys(self, id: int) -> Optional[SchoolInstance]:
        """Issue a fresh API/secret key pair"""
        if await self.get(id) is None:
            return None
        return await super().update(id, {
            "api_key": generate_api_key(),
            "secret_key": generate_secret_key(),
            "updated_at": datetime.utcnow(),
        })

    async def increment_used_documents(self, id: int, amount: int = 1, commit: bool = True) -> None:
        await self.session.execute(
            update(SchoolInstance)
            .where(SchoolInstance.id == id)
            .values(used_documents=SchoolInstance.used_documents + amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if commit:
            await self.session.commit()

    async def delete(self, id: int) -> bool:
        """
        Hard-delete a school together with its ledger, grants, subscriptions,
        invoices and usage rows. Audit entries are kept.
        """
        school = await self.get(id)
        if school is None:
            return False

        for model in (
            BillingInvoice,
            SchoolSubscription,
            UsageRecord,
            SchoolTemplateAccess,
            CreditTransaction,
            CreditBalance,
        ):
            await self.session.execute(delete(model).where(model.school_instance_id == id))

        await self.session.execute(delete(SchoolInstance).where(SchoolInstance.id == id))
        await self.session.commit()

        logger.info("Deleted school", extra={"school_id": school.school_id})
        return True
