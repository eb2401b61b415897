# backend/eduportal/provisioning/onboarding.py
"""
School onboarding and lifecycle.

Onboarding runs as a list of named steps. Steps marked required abort the
run with ProvisioningError; best-effort steps record their failure and the
run continues. Completed steps are never rolled back: a school whose remote
setup failed stays registered and can be retried with ``setup_remote``.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.audit_log import AuditAction, AuditLogger
from eduportal.core.config import settings
from eduportal.core.constants import RemoteStatus, SchoolStatus
from eduportal.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    PortalError,
    ProvisioningError,
    ValidationError,
)
from eduportal.core.identifiers import generate_school_identifiers, generate_temporary_password
from eduportal.core.security import get_password_hash
from eduportal.db.models.school import SchoolInstance
from eduportal.db.models.subscription import SchoolSubscription
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.provisioning.schema import SchemaProvisioner, SchemaSetupResult
from eduportal.schemas.provisioning import OnboardSchoolRequest
from eduportal.services.connection_manager import TenantConnectionManager
from eduportal.services.credit_ledger import CreditLedger
from eduportal.services.email_service import EmailService
from eduportal.services.remote_store import RemoteStoreError
from eduportal.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    name: str
    required: bool
    status: StepStatus
    detail: Optional[str] = None


@dataclass
class OnboardingResult:
    school: SchoolInstance
    subscription: SchoolSubscription
    access_url: str
    remote_setup: Optional[SchemaSetupResult] = None
    admin_user: Optional[Dict[str, Any]] = None
    steps: List[StepResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(s.status == StepStatus.SUCCEEDED for s in self.steps if s.required)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "school_id": self.school.school_id,
            "subdomain": self.school.subdomain,
            "api_key": self.school.api_key,
            "secret_key": self.school.secret_key,
            "subscription": self.subscription,
            "remote_setup": self.remote_setup.to_dict() if self.remote_setup else None,
            "admin_user": self.admin_user,
            "access_url": self.access_url,
            "trial_expires_at": self.school.trial_expires_at,
            "steps": [
                {"name": s.name, "required": s.required, "status": s.status.value, "detail": s.detail}
                for s in self.steps
            ],
        }


# Failures a best-effort step absorbs
_RECOVERABLE = (PortalError, RemoteStoreError, SQLAlchemyError)


class ProvisioningService:
    """Orchestrates school onboarding, remote setup and lifecycle changes"""

    def __init__(
        self,
        session: AsyncSession,
        connections: TenantConnectionManager,
        email_service: Optional[EmailService] = None,
        schema_provisioner: Optional[SchemaProvisioner] = None,
    ):
        self.session = session
        self.connections = connections
        self.email_service = email_service or EmailService()
        self.schema = schema_provisioner or SchemaProvisioner()
        self.schools = SchoolInstanceRepository(session)
        self.subscriptions = SubscriptionService(session)
        self.audit = AuditLogger(session)

    @staticmethod
    def access_url(school: SchoolInstance) -> str:
        return f"https://{school.subdomain}.{settings.BASE_DOMAIN}"

    async def onboard(
        self,
        data: OnboardSchoolRequest,
        admin_id: Optional[int] = None,
        origin: Optional[Dict[str, Optional[str]]] = None,
    ) -> OnboardingResult:
        steps: List[StepResult] = []

        identifiers = generate_school_identifiers(data.school_name)
        steps.append(StepResult("generate_identifiers", True, StepStatus.SUCCEEDED))

        # Required: the registry record and its credit balance
        try:
            school = await self.schools.create(
                {
                    "name": data.school_name,
                    "contact_email": data.contact_email,
                    "contact_phone": data.contact_phone,
                    "address": data.address,
                    "plan_type": data.plan_id,
                },
                trial_days=settings.ONBOARDING_TRIAL_DAYS,
                identifiers=identifiers,
            )
        except ValidationError:
            raise
        except _RECOVERABLE as e:
            logger.error(f"School registration failed: {e}")
            raise ProvisioningError(f"Could not register school: {e}", step="create_tenant") from e
        steps.append(StepResult("create_tenant", True, StepStatus.SUCCEEDED))
        log_extra = {"school_id": school.school_id}

        # Best effort: remote store linkage and schema
        remote_setup = None
        if data.remote_url and data.remote_project_id:
            try:
                remote_setup = await self._configure_remote(
                    school,
                    remote_url=data.remote_url,
                    remote_project_id=data.remote_project_id,
                    remote_anon_key=data.remote_anon_key,
                    remote_service_key=data.remote_service_key,
                )
            except _RECOVERABLE as e:
                logger.warning(f"Remote setup failed during onboarding: {e}", extra=log_extra)
                steps.append(StepResult("configure_remote", False, StepStatus.FAILED, str(e)))
            else:
                if remote_setup.success:
                    steps.append(StepResult("configure_remote", False, StepStatus.SUCCEEDED))
                else:
                    steps.append(StepResult(
                        "configure_remote", False, StepStatus.FAILED, "; ".join(remote_setup.errors)
                    ))
        else:
            steps.append(StepResult("configure_remote", False, StepStatus.SKIPPED, "no remote store supplied"))

        # Required: trial subscription. Earlier steps are kept on failure.
        try:
            subscription = await self.subscriptions.create_subscription(
                school.id, data.plan_id, settings.ONBOARDING_TRIAL_DAYS
            )
        except _RECOVERABLE as e:
            logger.error(f"Subscription creation failed: {e}", extra=log_extra)
            raise ProvisioningError(
                f"Could not create subscription: {e}",
                step="create_subscription",
                details={"school_id": school.school_id},
            ) from e
        steps.append(StepResult("create_subscription", True, StepStatus.SUCCEEDED))

        # Best effort: administrator in the school's own store
        admin_user = None
        if remote_setup is not None and remote_setup.success and data.principal_email:
            try:
                admin_user = await self.create_admin_identity(
                    school, data.principal_email, data.principal_name, data.principal_phone
                )
                steps.append(StepResult("create_admin_identity", False, StepStatus.SUCCEEDED))
            except _RECOVERABLE as e:
                logger.warning(f"Admin identity creation failed: {e}", extra=log_extra)
                steps.append(StepResult("create_admin_identity", False, StepStatus.FAILED, str(e)))
        else:
            steps.append(StepResult("create_admin_identity", False, StepStatus.SKIPPED))

        access_url = self.access_url(school)

        # Best effort: welcome email
        if self.email_service.is_configured:
            sent = await self.email_service.send_welcome_email(
                data.contact_email,
                school_name=school.name,
                school_id=school.school_id,
                subdomain=school.subdomain,
                api_key=school.api_key,
                trial_days=settings.ONBOARDING_TRIAL_DAYS,
                trial_expires_at=school.trial_expires_at,
                login_url=access_url if remote_setup is not None and remote_setup.success else None,
                admin_email=admin_user["email"] if admin_user else None,
            )
            steps.append(StepResult(
                "send_welcome_email", False, StepStatus.SUCCEEDED if sent else StepStatus.FAILED
            ))
        else:
            steps.append(StepResult("send_welcome_email", False, StepStatus.SKIPPED, "SMTP not configured"))

        await self._audit(
            AuditAction.ONBOARD_SCHOOL,
            school,
            admin_id,
            origin,
            details={
                "plan_id": data.plan_id,
                "steps": {s.name: s.status.value for s in steps},
            },
        )

        logger.info("School onboarding completed", extra=log_extra)
        return OnboardingResult(
            school=school,
            subscription=subscription,
            access_url=access_url,
            remote_setup=remote_setup,
            admin_user=admin_user,
            steps=steps,
        )

    async def _configure_remote(
        self,
        school: SchoolInstance,
        remote_url: str,
        remote_project_id: str,
        remote_anon_key: Optional[str] = None,
        remote_service_key: Optional[str] = None,
        database_url: Optional[str] = None,
    ) -> SchemaSetupResult:
        linkage = {
            "remote_url": remote_url,
            "remote_project_id": remote_project_id,
            "remote_anon_key": remote_anon_key,
            "remote_service_key": remote_service_key,
            "database_url": database_url,
        }
        school = await self.schools.update(school.id, {k: v for k, v in linkage.items() if v is not None})

        config = await self.connections.register_tenant(school)
        if config is None:
            raise ConfigurationError(f"Could not open a connection to {remote_url}")

        # Keep derived keys so the handle can be rebuilt after a restart
        school = await self.schools.update(school.id, {
            "remote_anon_key": config.anon_key,
            "remote_service_key": config.service_key,
            "database_url": config.database_url,
        })

        admin_client = await self.connections.get_admin_client(school.school_id)
        if admin_client is None:
            raise ConfigurationError("Remote admin client unavailable")

        return await self.schema.setup_complete_schema(admin_client)

    async def _get_school(self, school_id: str) -> SchoolInstance:
        school = await self.schools.get_by_school_id(school_id)
        if school is None:
            raise NotFoundError("School", school_id)
        return school

    async def setup_remote(
        self,
        school_id: str,
        remote_url: str,
        remote_project_id: str,
        remote_anon_key: Optional[str] = None,
        remote_service_key: Optional[str] = None,
        database_url: Optional[str] = None,
        admin_id: Optional[int] = None,
        origin: Optional[Dict[str, Optional[str]]] = None,
    ) -> SchemaSetupResult:
        """Link (or re-link) a school's remote store and run schema setup"""
        school = await self._get_school(school_id)
        result = await self._configure_remote(
            school,
            remote_url=remote_url,
            remote_project_id=remote_project_id,
            remote_anon_key=remote_anon_key,
            remote_service_key=remote_service_key,
            database_url=database_url,
        )
        await self._audit(
            AuditAction.CONFIGURE_REMOTE, school, admin_id, origin,
            details={"remote_project_id": remote_project_id, "success": result.success},
        )
        return result

    async def create_admin_identity(
        self,
        school: SchoolInstance,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the school's administrator in its remote users table with a temporary password"""
        client = await self.connections.get_admin_client(school.school_id)
        if client is None:
            raise ConfigurationError("Remote store not configured for school")

        temp_password = generate_temporary_password()
        rows = await client.insert("users", {
            "username": email,
            "name": name or email,
            "email": email,
            "phone_number": phone,
            "password": get_password_hash(temp_password),
            "role": "admin",
            "school_id": school.school_id,
            "is_active": True,
        })
        user_id = rows[0].get("id") if rows else None
        return {"user_id": user_id, "email": email, "temp_password": temp_password}

    async def get_status(self, school_id: str) -> Dict[str, Any]:
        school = await self._get_school(school_id)

        if not school.remote_url and not school.remote_project_id:
            remote_status = RemoteStatus.NOT_CONFIGURED
        else:
            if self.connections.get_config(school.school_id) is None:
                await self.connections.register_tenant(school)
            connected = await self.connections.check_connection(school.school_id)
            remote_status = RemoteStatus.CONNECTED if connected else RemoteStatus.CONNECTION_FAILED

        balance = await CreditLedger(self.session).get_balance(school.id)
        return {
            "school_id": school.school_id,
            "name": school.name,
            "status": school.status,
            "plan_type": school.plan_type,
            "trial_expires_at": school.trial_expires_at,
            "remote_status": remote_status.value,
            "subscription": await self.subscriptions.get_current_subscription(school.id),
            "credits": {
                "total": balance.total_credits,
                "used": balance.used_credits,
                "available": balance.available_credits,
            } if balance else None,
        }

    async def suspend(
        self,
        school_id: str,
        reason: Optional[str] = None,
        admin_id: Optional[int] = None,
        origin: Optional[Dict[str, Optional[str]]] = None,
    ) -> SchoolInstance:
        """Suspend a school and drop its cached remote handles"""
        school = await self._get_school(school_id)
        school = await self.schools.update(school.id, {"status": SchoolStatus.SUSPENDED.value})
        await self.connections.remove_client(school.school_id)
        await self._audit(AuditAction.SUSPEND_SCHOOL, school, admin_id, origin, details={"reason": reason})
        logger.info("School suspended", extra={"school_id": school.school_id})
        return school

    async def reactivate(
        self,
        school_id: str,
        admin_id: Optional[int] = None,
        origin: Optional[Dict[str, Optional[str]]] = None,
    ) -> SchoolInstance:
        school = await self._get_school(school_id)
        school = await self.schools.update(school.id, {"status": SchoolStatus.ACTIVE.value})
        if school.remote_url or school.remote_project_id:
            await self.connections.register_tenant(school)
        await self._audit(AuditAction.REACTIVATE_SCHOOL, school, admin_id, origin)
        logger.info("School reactivated", extra={"school_id": school.school_id})
        return school

    async def delete_school(
        self,
        school: SchoolInstance,
        admin_id: Optional[int] = None,
        origin: Optional[Dict[str, Optional[str]]] = None,
    ) -> bool:
        """Delete a school with its dependent rows and forget its remote handles"""
        school_id, name = school.school_id, school.name
        deleted = await self.schools.delete(school.id)
        if deleted:
            await self.connections.remove_client(school_id)
            await self._audit_raw(
                AuditAction.DELETE_SCHOOL, school_id, str(school.id), admin_id, origin, details={"name": name}
            )
        return deleted

    async def _audit(
        self,
        action: AuditAction,
        school: SchoolInstance,
        admin_id: Optional[int],
        origin: Optional[Dict[str, Optional[str]]],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._audit_raw(action, school.school_id, str(school.id), admin_id, origin, details)

    async def _audit_raw(
        self,
        action: AuditAction,
        school_id: str,
        resource_id: str,
        admin_id: Optional[int],
        origin: Optional[Dict[str, Optional[str]]],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Audit writes never undo the action they describe
        try:
            await self.audit.log_event(
                action,
                "school",
                resource_id=resource_id,
                admin_id=admin_id,
                school_id=school_id,
                details=details,
                **(origin or {}),
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to write audit entry {action.value}: {e}", extra={"school_id": school_id})
