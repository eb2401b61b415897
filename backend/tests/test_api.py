# tests/test_api.py
"""
HTTP API tests
Tests: admin auth, portal management, school API-key endpoints,
provisioning, operator tooling, subscriptions
"""

import pytest
from fastapi import status
from sqlalchemy import select

from eduportal.core.security import create_access_token
from eduportal.db.models.usage import UsageRecord
from eduportal.services.credit_ledger import CreditLedger


class TestAdminAuth:
    """Portal admin authentication"""

    @pytest.mark.asyncio
    async def test_first_setup_then_refused(self, client):
        payload = {"email": "Owner@EduPortal.example.com", "password": "OwnerPass123", "fullName": "Owner"}

        response = await client.post("/api/portal/auth/setup", json=payload)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["role"] == "super_admin"
        assert response.json()["email"] == "owner@eduportal.example.com"

        again = await client.post("/api/portal/auth/setup", json=payload)
        assert again.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_login_success(self, client, test_admin):
        response = await client.post("/api/portal/auth/login", json={
            "email": test_admin.email,
            "password": "AdminPassword123!",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["token"]
        assert data["admin"]["email"] == test_admin.email
        assert data["admin"]["last_login"] is not None

        me = await client.get("/api/portal/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.json()["id"] == test_admin.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, test_admin):
        response = await client.post("/api/portal/auth/login", json={
            "email": test_admin.email,
            "password": "WrongPassword123!",
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_missing_and_invalid_tokens(self, client):
        assert (await client.get("/api/portal/schools")).status_code == status.HTTP_401_UNAUTHORIZED

        response = await client.get("/api/portal/schools", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_token_for_unknown_admin(self, client):
        token = create_access_token({"sub": "999"})
        response = await client.get("/api/portal/schools", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_support_role_cannot_create(self, client, support_headers):
        response = await client.post("/api/portal/schools", headers=support_headers, json={
            "name": "Blocked School",
            "contactEmail": "blocked@example.com",
        })
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "FORBIDDEN"


class TestPortalSchools:
    """School management endpoints"""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, auth_headers):
        response = await client.post("/api/portal/schools", headers=auth_headers, json={
            "name": "Lakeside School",
            "contactEmail": "info@lakeside.edu",
            "planType": "pro",
        })

        assert response.status_code == status.HTTP_201_CREATED
        school = response.json()
        assert school["status"] == "trial"
        assert school["api_key"].startswith("pk_")
        assert school["secret_key"].startswith("sk_")

        listing = await client.get("/api/portal/schools", headers=auth_headers)
        assert [s["school_id"] for s in listing.json()] == [school["school_id"]]
        assert "secret_key" not in listing.json()[0]

    @pytest.mark.asyncio
    async def test_create_requires_contact_email(self, client, auth_headers):
        response = await client.post("/api/portal/schools", headers=auth_headers, json={"name": "No Email"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert response.json()["details"]["errors"]

    @pytest.mark.asyncio
    async def test_update_school(self, client, auth_headers, test_school):
        response = await client.patch(
            f"/api/portal/schools/{test_school.id}",
            headers=auth_headers,
            json={"status": "active", "maxStudents": 500},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "active"
        assert response.json()["max_students"] == 500
        assert response.json()["name"] == "Green Valley High School"

    @pytest.mark.asyncio
    async def test_update_rejects_credentials(self, client, auth_headers, test_school):
        response = await client.patch(
            f"/api/portal/schools/{test_school.id}",
            headers=auth_headers,
            json={"apiKey": "pk_forged"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_school(self, client, auth_headers):
        response = await client.get("/api/portal/schools/9999", headers=auth_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "NOT_FOUND", "message": "School not found", "details": {}}

    @pytest.mark.asyncio
    async def test_delete_school(self, client, auth_headers, test_school):
        school_id = test_school.school_id
        response = await client.delete(f"/api/portal/schools/{test_school.id}", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK

        logs = await client.get("/api/portal/audit-logs", headers=auth_headers, params={"school_id": school_id})
        assert [entry["action"] for entry in logs.json()] == ["delete_school"]


class TestPortalCredits:
    """Credit endpoints"""

    @pytest.mark.asyncio
    async def test_purchase_and_summary(self, client, auth_headers, test_school):
        response = await client.post(
            f"/api/portal/schools/{test_school.id}/credits",
            headers=auth_headers,
            json={"amount": 500, "type": "purchase", "description": "bKash top up", "reference": "TX-1"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["balance"]["available_credits"] == 1500
        assert response.json()["transaction"]["reference"] == "TX-1"

        summary = await client.get(f"/api/portal/schools/{test_school.id}/credits", headers=auth_headers)
        assert summary.json()["balance"]["total_credits"] == 1500
        assert len(summary.json()["transactions"]) == 1

    @pytest.mark.asyncio
    async def test_overdraw_returns_402(self, client, auth_headers, test_school):
        response = await client.post(
            f"/api/portal/schools/{test_school.id}/credits",
            headers=auth_headers,
            json={"amount": 5000, "type": "usage", "description": "Too much"},
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["error"] == "INSUFFICIENT_CREDITS"

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, client, auth_headers, test_school):
        response = await client.post(
            f"/api/portal/schools/{test_school.id}/credits",
            headers=auth_headers,
            json={"amount": 0, "type": "bonus", "description": "Nothing"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestPortalTemplates:
    """Template catalogue and grants"""

    @pytest.mark.asyncio
    async def test_grant_and_revoke(self, client, auth_headers, test_school):
        created = await client.post("/api/portal/templates", headers=auth_headers, json={
            "name": "Classic ID Card",
            "type": "id_card",
            "category": "identity",
            "requiredCredits": 2,
        })
        assert created.status_code == status.HTTP_201_CREATED
        template_id = created.json()["id"]

        url = f"/api/portal/schools/{test_school.id}/templates/{template_id}/grant"
        granted = await client.post(url, headers=auth_headers)
        assert granted.status_code == status.HTTP_200_OK
        assert granted.json()["is_enabled"] is True

        # Granting twice keeps a single grant
        await client.post(url, headers=auth_headers)
        grants = await client.get(f"/api/portal/schools/{test_school.id}/templates", headers=auth_headers)
        assert len(grants.json()) == 1

        revoked = await client.delete(url, headers=auth_headers)
        assert revoked.status_code == status.HTTP_200_OK
        grants = await client.get(f"/api/portal/schools/{test_school.id}/templates", headers=auth_headers)
        assert grants.json()[0]["is_enabled"] is False

    @pytest.mark.asyncio
    async def test_grant_unknown_template(self, client, auth_headers, test_school):
        response = await client.post(
            f"/api/portal/schools/{test_school.id}/templates/777/grant", headers=auth_headers
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestAnalytics:
    """Overview and audit log"""

    @pytest.mark.asyncio
    async def test_overview(self, client, auth_headers, active_school):
        response = await client.get("/api/portal/analytics/overview", headers=auth_headers)

        data = response.json()
        assert data["total_schools"] == 1
        assert data["active_schools"] == 1
        assert data["plan_distribution"] == {"basic": 1}
        assert data["total_credits_issued"] == 1000
        assert data["recent_schools"][0]["school_id"] == active_school.school_id


class TestSchoolEndpoints:
    """API-key authenticated school endpoints"""

    @pytest.mark.asyncio
    async def test_info(self, client, api_key_headers, active_school):
        response = await client.get("/api/school/info", headers=api_key_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["school_id"] == active_school.school_id
        assert response.json()["credits"]["available"] == 1000

    @pytest.mark.asyncio
    async def test_trial_school_key_rejected(self, client, test_school):
        response = await client.get("/api/school/info", headers={"x-api-key": test_school.api_key})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_missing_key(self, client):
        response = await client.get("/api/school/info")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["error"] == "UNAUTHORIZED"
        assert body["message"]
        assert body["details"] == {}

    @pytest.mark.asyncio
    async def test_document_usage_debits_credits(self, client, api_key_headers):
        response = await client.post("/api/school/usage", headers=api_key_headers, json={
            "metric": "documents_generated",
            "value": 10,
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["credits_remaining"] == 990

        info = await client.get("/api/school/info", headers=api_key_headers)
        assert info.json()["limits"]["used_documents"] == 10
        assert info.json()["credits"]["used"] == 10

    @pytest.mark.asyncio
    async def test_document_usage_insufficient(self, client, api_key_headers):
        response = await client.post("/api/school/usage", headers=api_key_headers, json={
            "metric": "documents_generated",
            "value": 1001,
        })

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        info = await client.get("/api/school/info", headers=api_key_headers)
        assert info.json()["credits"]["available"] == 1000
        assert info.json()["limits"]["used_documents"] == 0

    @pytest.mark.asyncio
    async def test_other_metric_is_only_recorded(self, client, api_key_headers):
        response = await client.post("/api/school/usage", headers=api_key_headers, json={
            "metric": "students",
            "value": 150,
        })

        assert response.status_code == status.HTTP_200_OK
        assert "credits_remaining" not in response.json()

    @pytest.mark.asyncio
    async def test_document_usage_writes_debit_and_usage_row(
        self, client, api_key_headers, active_school, db_session
    ):
        response = await client.post("/api/school/usage", headers=api_key_headers, json={
            "metric": "documents_generated",
            "value": 3,
        })
        assert response.status_code == status.HTTP_200_OK

        transactions = await CreditLedger(db_session).list_transactions(active_school.id)
        assert [(t.type, t.amount) for t in transactions] == [("usage", 3)]
        records = (await db_session.execute(
            select(UsageRecord).where(UsageRecord.school_instance_id == active_school.id)
        )).scalars().all()
        assert [(r.metric, r.value) for r in records] == [("documents_generated", 3)]

    async def _granted_template(self, client, auth_headers, school, required_credits=3):
        created = await client.post("/api/portal/templates", headers=auth_headers, json={
            "name": "Report Card",
            "type": "report_card",
            "requiredCredits": required_credits,
        })
        template_id = created.json()["id"]
        grant_url = f"/api/portal/schools/{school.id}/templates/{template_id}/grant"
        await client.post(grant_url, headers=auth_headers)
        return template_id, grant_url

    @pytest.mark.asyncio
    async def test_generate_documents_charges_template_rate(
        self, client, auth_headers, api_key_headers, active_school
    ):
        template_id, _ = await self._granted_template(client, auth_headers, active_school)

        response = await client.post("/api/school/documents/generate", headers=api_key_headers, json={
            "templateId": template_id,
            "count": 4,
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["credits_used"] == 12
        assert response.json()["credits_remaining"] == 988

        info = await client.get("/api/school/info", headers=api_key_headers)
        assert info.json()["limits"]["used_documents"] == 4
        assert info.json()["credits"]["used"] == 12

    @pytest.mark.asyncio
    async def test_generate_documents_requires_grant(
        self, client, auth_headers, api_key_headers, active_school
    ):
        created = await client.post("/api/portal/templates", headers=auth_headers, json={
            "name": "Transfer Certificate",
            "type": "certificate",
        })

        response = await client.post("/api/school/documents/generate", headers=api_key_headers, json={
            "templateId": created.json()["id"],
            "count": 1,
        })

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "FORBIDDEN"
        info = await client.get("/api/school/info", headers=api_key_headers)
        assert info.json()["credits"]["available"] == 1000

    @pytest.mark.asyncio
    async def test_generate_documents_after_revoke(
        self, client, auth_headers, api_key_headers, active_school
    ):
        template_id, grant_url = await self._granted_template(client, auth_headers, active_school)
        await client.delete(grant_url, headers=auth_headers)

        response = await client.post("/api/school/documents/generate", headers=api_key_headers, json={
            "templateId": template_id,
            "count": 2,
        })

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_generate_documents_unknown_template(self, client, api_key_headers):
        response = await client.post("/api/school/documents/generate", headers=api_key_headers, json={
            "templateId": 4040,
            "count": 1,
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_generate_documents_insufficient_credits(
        self, client, auth_headers, api_key_headers, active_school
    ):
        template_id, _ = await self._granted_template(client, auth_headers, active_school, required_credits=5)

        response = await client.post("/api/school/documents/generate", headers=api_key_headers, json={
            "templateId": template_id,
            "count": 201,
        })

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        info = await client.get("/api/school/info", headers=api_key_headers)
        assert info.json()["credits"]["available"] == 1000
        assert info.json()["limits"]["used_documents"] == 0

    @pytest.mark.asyncio
    async def test_profile_by_subdomain_and_header(self, client, test_school):
        by_host = await client.get(
            "/api/school/profile", headers={"host": f"{test_school.subdomain}.eduportal.local"}
        )
        assert by_host.json()["school_id"] == test_school.school_id

        by_header = await client.get("/api/school/profile", headers={"X-School-ID": test_school.school_id})
        assert by_header.json()["subdomain"] == test_school.subdomain

        missing = await client.get("/api/school/profile", headers={"X-School-ID": "school_nope"})
        assert missing.status_code == status.HTTP_404_NOT_FOUND


class TestProvisioningEndpoints:
    """Onboarding and lifecycle endpoints"""

    @pytest.mark.asyncio
    async def test_onboard(self, client, auth_headers, plans, remote_backend):
        response = await client.post("/api/provisioning/onboard", headers=auth_headers, json={
            "schoolName": "Sunrise Academy",
            "contactEmail": "office@sunrise.edu",
            "principalEmail": "principal@sunrise.edu",
            "planId": "pro",
            "supabaseUrl": "https://sunrise.supabase.co",
            "supabaseProjectId": "sunrise",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["subscription"]["plan_id"] == "pro"
        assert data["remote_setup"]["success"] is True
        assert data["admin_user"]["email"] == "principal@sunrise.edu"
        assert {s["name"]: s["status"] for s in data["steps"]}["configure_remote"] == "succeeded"

        school_status = await client.get(f"/api/provisioning/{data['school_id']}/status", headers=auth_headers)
        assert school_status.json()["remote_status"] == "connected"

    @pytest.mark.asyncio
    async def test_onboard_with_storage_outage(self, client, auth_headers, plans, remote_backend):
        remote_backend.failing.add("/storage/")

        response = await client.post("/api/provisioning/onboard", headers=auth_headers, json={
            "schoolName": "Riverside School",
            "contactEmail": "office@riverside.edu",
            "planId": "basic",
            "supabaseUrl": "https://riverside.supabase.co",
            "supabaseProjectId": "riverside",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert {s["name"]: s["status"] for s in data["steps"]}["configure_remote"] == "failed"

    @pytest.mark.asyncio
    async def test_onboard_without_plans(self, client, auth_headers):
        response = await client.post("/api/provisioning/onboard", headers=auth_headers, json={
            "schoolName": "Planless",
            "contactEmail": "p@example.com",
        })

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "PROVISIONING_FAILED"
        assert response.json()["details"]["step"] == "create_subscription"

    @pytest.mark.asyncio
    async def test_suspend_blocks_api_key(self, client, auth_headers, api_key_headers, active_school):
        response = await client.post(
            f"/api/provisioning/{active_school.school_id}/suspend",
            headers=auth_headers,
            json={"reason": "Unpaid"},
        )
        assert response.json()["status"] == "suspended"
        assert (await client.get("/api/school/info", headers=api_key_headers)).status_code == 401

        await client.post(f"/api/provisioning/{active_school.school_id}/reactivate", headers=auth_headers)
        assert (await client.get("/api/school/info", headers=api_key_headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_status_unknown_school(self, client, auth_headers):
        response = await client.get("/api/provisioning/school_missing/status", headers=auth_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_FOUND"


class TestStandaloneAdmin:
    """Operator tooling for school remote stores"""

    async def _setup(self, client, headers, school):
        return await client.post(
            f"/api/standalone-admin/schools/{school.school_id}/remote/setup",
            headers=headers,
            json={"supabaseUrl": "https://greenvalley.supabase.co", "supabaseProjectId": "greenvalley"},
        )

    @pytest.mark.asyncio
    async def test_setup_test_and_verify(self, client, auth_headers, test_school):
        setup = await self._setup(client, auth_headers, test_school)
        assert setup.status_code == status.HTTP_200_OK
        assert setup.json()["schema_setup"] is True
        assert setup.json()["config"]["project_id"] == "greenvalley"

        tested = await client.post(
            f"/api/standalone-admin/schools/{test_school.school_id}/remote/test", headers=auth_headers
        )
        assert tested.json()["overall_status"] is True

        verified = await client.get(
            f"/api/standalone-admin/schools/{test_school.school_id}/verify-database", headers=auth_headers
        )
        assert verified.json()["status"] == "complete"

    @pytest.mark.asyncio
    async def test_remote_required(self, client, auth_headers, test_school):
        response = await client.get(
            f"/api/standalone-admin/schools/{test_school.school_id}/verify-database", headers=auth_headers
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_masked_config(self, client, auth_headers, test_school):
        await self._setup(client, auth_headers, test_school)

        response = await client.get(
            f"/api/standalone-admin/schools/{test_school.school_id}/remote/config", headers=auth_headers
        )

        data = response.json()
        assert data["has_remote"] is True
        assert data["api_key"].endswith("...")
        assert len(data["api_key"]) == 11
        assert data["remote_url"] == "https://greenvalley.supab..."

    @pytest.mark.asyncio
    async def test_config_patch_requires_fields(self, client, auth_headers, test_school):
        response = await client.patch(
            f"/api/standalone-admin/schools/{test_school.school_id}/remote/config",
            headers=auth_headers,
            json={},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_reset_keys(self, client, auth_headers, active_school):
        old_key = active_school.api_key

        response = await client.post(
            f"/api/standalone-admin/schools/{active_school.school_id}/reset-keys", headers=auth_headers
        )

        new_key = response.json()["new_api_key"]
        assert new_key != old_key
        assert (await client.get("/api/school/info", headers={"x-api-key": old_key})).status_code == 401
        assert (await client.get("/api/school/info", headers={"x-api-key": new_key})).status_code == 200

    @pytest.mark.asyncio
    async def test_overview(self, client, auth_headers, test_school):
        await self._setup(client, auth_headers, test_school)

        response = await client.get("/api/standalone-admin/overview", headers=auth_headers)

        data = response.json()
        assert data["total_schools"] == 1
        assert data["schools_with_remote"] == 1
        assert data["connected_clients"] == 1


class TestSubscriptionEndpoints:
    """Subscription routes"""

    @pytest.mark.asyncio
    async def test_subscription_flow(self, client, auth_headers, plans, test_school):
        plans_response = await client.get("/api/subscription/plans", headers=auth_headers)
        assert [p["plan_id"] for p in plans_response.json()] == ["basic", "pro", "enterprise"]

        created = await client.post("/api/subscription/create", headers=auth_headers, json={
            "schoolId": test_school.school_id,
            "planId": "pro",
        })
        assert created.status_code == status.HTTP_201_CREATED
        subscription_id = created.json()["id"]

        current = await client.get(f"/api/subscription/{test_school.school_id}/current", headers=auth_headers)
        assert current.json()["id"] == subscription_id

        access = await client.get(
            f"/api/subscription/{test_school.school_id}/feature-access",
            headers=auth_headers,
            params={"feature": "apiAccess"},
        )
        assert access.json()["has_access"] is True

        await client.post(
            f"/api/subscription/{test_school.school_id}/track-usage",
            headers=auth_headers,
            json={"metric": "students", "value": 1200},
        )
        limits = await client.get(f"/api/subscription/{test_school.school_id}/usage-limits", headers=auth_headers)
        assert limits.json()["students"]["exceeded"] is True

        first = await client.post(f"/api/subscription/invoices/{subscription_id}/generate", headers=auth_headers)
        second = await client.post(f"/api/subscription/invoices/{subscription_id}/generate", headers=auth_headers)
        assert first.json()["invoice_number"] == second.json()["invoice_number"]

        invoices = await client.get(f"/api/subscription/{test_school.school_id}/invoices", headers=auth_headers)
        assert len(invoices.json()) == 1

    @pytest.mark.asyncio
    async def test_unknown_plan(self, client, auth_headers, plans, test_school):
        response = await client.post("/api/subscription/create", headers=auth_headers, json={
            "schoolId": test_school.school_id,
            "planId": "premium",
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "PLAN_NOT_FOUND"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"
