# tests/test_provisioning.py
"""
Onboarding orchestration tests
Tests: full onboarding, partial-failure tolerance, lifecycle changes
"""

import pytest
from sqlalchemy import select

from eduportal.core.constants import SchoolStatus
from eduportal.core.exceptions import NotFoundError, ProvisioningError, ValidationError
from eduportal.core.security import verify_password
from eduportal.db.models.audit_log import AuditLog
from eduportal.db.models.school import SchoolInstance
from eduportal.provisioning.onboarding import ProvisioningService, StepStatus
from eduportal.schemas.provisioning import OnboardSchoolRequest
from eduportal.services.credit_ledger import CreditLedger


def onboarding_request(**overrides) -> OnboardSchoolRequest:
    data = {
        "schoolName": "Sunrise Academy",
        "contactEmail": "office@sunrise.edu",
        "principalName": "Dr. Rahman",
        "principalEmail": "principal@sunrise.edu",
        "planId": "basic",
        "supabaseUrl": "https://sunrise.supabase.co",
        "supabaseProjectId": "sunrise",
    }
    data.update(overrides)
    return OnboardSchoolRequest.model_validate(data)


def step_statuses(result) -> dict:
    return {step.name: step.status for step in result.steps}


@pytest.fixture
def service(db_session, connections):
    return ProvisioningService(db_session, connections)


class TestOnboarding:
    """ProvisioningService.onboard"""

    @pytest.mark.asyncio
    async def test_full_onboarding(self, service, remote_backend, plans, db_session):
        result = await service.onboard(onboarding_request(), admin_id=None)

        assert result.success is True
        statuses = step_statuses(result)
        assert statuses["create_tenant"] == StepStatus.SUCCEEDED
        assert statuses["configure_remote"] == StepStatus.SUCCEEDED
        assert statuses["create_subscription"] == StepStatus.SUCCEEDED
        assert statuses["create_admin_identity"] == StepStatus.SUCCEEDED
        assert statuses["send_welcome_email"] == StepStatus.SKIPPED

        assert result.school.remote_url == "https://sunrise.supabase.co"
        assert result.access_url == f"https://{result.school.subdomain}.eduportal.local"
        assert result.subscription.status == "trial"
        assert result.remote_setup.success is True

        balance = await CreditLedger(db_session).get_balance(result.school.id)
        assert balance.available_credits == 1000

        principal = [u for u in remote_backend.tables["users"] if u["username"] == "principal@sunrise.edu"]
        assert len(principal) == 1
        assert verify_password(result.admin_user["temp_password"], principal[0]["password"])

        audit = (await db_session.execute(select(AuditLog))).scalars().all()
        assert [entry.action for entry in audit] == ["onboard_school"]
        assert audit[0].school_id == result.school.school_id

    @pytest.mark.asyncio
    async def test_onboarding_trial_is_fourteen_days(self, service, plans):
        result = await service.onboard(onboarding_request(supabaseUrl=None, supabaseProjectId=None))

        trial = result.subscription.trial_end - result.subscription.current_period_start
        assert trial.days == 14
        school_trial = result.school.trial_expires_at - result.school.created_at
        assert school_trial.days in (13, 14)

    @pytest.mark.asyncio
    async def test_without_remote_store(self, service, plans):
        result = await service.onboard(onboarding_request(supabaseUrl=None, supabaseProjectId=None))

        statuses = step_statuses(result)
        assert result.success is True
        assert statuses["configure_remote"] == StepStatus.SKIPPED
        assert statuses["create_admin_identity"] == StepStatus.SKIPPED
        assert result.remote_setup is None
        assert result.admin_user is None

    @pytest.mark.asyncio
    async def test_storage_outage_is_tolerated(self, service, remote_backend, plans, db_session):
        remote_backend.failing.add("/storage/")

        result = await service.onboard(onboarding_request())

        statuses = step_statuses(result)
        assert result.success is True
        assert statuses["configure_remote"] == StepStatus.FAILED
        assert statuses["create_admin_identity"] == StepStatus.SKIPPED
        assert result.remote_setup.buckets_created == []
        assert result.remote_setup.tables_created

        school = await db_session.get(SchoolInstance, result.school.id)
        assert school is not None
        assert result.subscription.id is not None

    @pytest.mark.asyncio
    async def test_unreachable_store_is_tolerated(self, service, remote_backend, plans):
        remote_backend.unreachable = True

        result = await service.onboard(onboarding_request())

        assert result.success is True
        assert step_statuses(result)["configure_remote"] == StepStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_plan_fails_after_registration(self, service, db_session):
        # No plans seeded: the subscription step must fail
        with pytest.raises(ProvisioningError) as exc:
            await service.onboard(onboarding_request(supabaseUrl=None, supabaseProjectId=None))

        assert exc.value.details["step"] == "create_subscription"
        school_id = exc.value.details["school_id"]
        # Registration is not rolled back
        assert await service.schools.get_by_school_id(school_id) is not None

    @pytest.mark.asyncio
    async def test_invalid_plan_type_is_validation_error(self, service, plans):
        with pytest.raises(ValidationError):
            await service.onboard(onboarding_request(planId="premium"))


class TestRemoteSetup:
    """setup_remote and get_status"""

    @pytest.mark.asyncio
    async def test_setup_remote_retry(self, service, remote_backend, test_school):
        result = await service.setup_remote(
            test_school.school_id,
            remote_url="https://gv.supabase.co",
            remote_project_id="gv",
        )

        assert result.success is True
        assert "students" in remote_backend.tables
        school = await service.schools.get_by_school_id(test_school.school_id)
        assert school.remote_project_id == "gv"
        # Derived keys are persisted so the handle survives a restart
        assert school.remote_service_key.startswith("service_")

    @pytest.mark.asyncio
    async def test_setup_remote_unknown_school(self, service):
        with pytest.raises(NotFoundError):
            await service.setup_remote("school_missing", remote_url="https://x.supabase.co", remote_project_id="x")

    @pytest.mark.asyncio
    async def test_status_not_configured(self, service, test_school):
        status = await service.get_status(test_school.school_id)

        assert status["remote_status"] == "not_configured"
        assert status["credits"] == {"total": 1000, "used": 0, "available": 1000}
        assert status["subscription"] is None

    @pytest.mark.asyncio
    async def test_status_connected_and_failed(self, service, remote_backend, test_school):
        await service.setup_remote(test_school.school_id, remote_url="https://gv.supabase.co", remote_project_id="gv")
        assert (await service.get_status(test_school.school_id))["remote_status"] == "connected"

        remote_backend.unreachable = True
        assert (await service.get_status(test_school.school_id))["remote_status"] == "connection_failed"


class TestLifecycle:
    """Suspension, reactivation and deletion"""

    @pytest.mark.asyncio
    async def test_suspend_evicts_handles(self, service, connections, test_school):
        await service.setup_remote(test_school.school_id, remote_url="https://gv.supabase.co", remote_project_id="gv")
        client = await connections.get_client(test_school.school_id)

        school = await service.suspend(test_school.school_id, reason="Unpaid invoice")

        assert school.status == SchoolStatus.SUSPENDED.value
        assert client.is_closed
        assert connections.registered_tenants() == []

    @pytest.mark.asyncio
    async def test_reactivate_reregisters(self, service, connections, test_school):
        await service.setup_remote(test_school.school_id, remote_url="https://gv.supabase.co", remote_project_id="gv")
        await service.suspend(test_school.school_id)

        school = await service.reactivate(test_school.school_id)

        assert school.status == SchoolStatus.ACTIVE.value
        assert connections.registered_tenants() == [test_school.school_id]

    @pytest.mark.asyncio
    async def test_delete_school_writes_audit(self, service, db_session, test_school):
        school_id = test_school.school_id

        assert await service.delete_school(test_school) is True

        assert await service.schools.get_by_school_id(school_id) is None
        audit = (await db_session.execute(select(AuditLog))).scalars().all()
        assert [(e.action, e.school_id) for e in audit] == [("delete_school", school_id)]
