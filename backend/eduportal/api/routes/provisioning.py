# backend/eduportal/api/routes/provisioning.py
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import get_connection_manager, get_request_origin, require_role
from eduportal.core.constants import AdminRole
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.provisioning.onboarding import ProvisioningService
from eduportal.schemas.provisioning import (
    OnboardingResponse,
    OnboardSchoolRequest,
    RemoteSetupRequest,
    SchemaSetup,
    SchoolStatusResponse,
)
from eduportal.schemas.school import School
from eduportal.services.connection_manager import TenantConnectionManager

router = APIRouter()


def get_provisioning_service(
    db: AsyncSession = Depends(get_db),
    connections: TenantConnectionManager = Depends(get_connection_manager),
) -> ProvisioningService:
    return ProvisioningService(db, connections)


@router.post("/onboard", response_model=OnboardingResponse)
async def onboard_school(
    request: OnboardSchoolRequest,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    service: ProvisioningService = Depends(get_provisioning_service)
):
    """
    Onboard a school end to end.

    Best-effort steps (remote store, administrator identity, welcome email)
    are reported in ``steps`` rather than failing the request.
    """
    result = await service.onboard(request, admin_id=current_admin.id, origin=origin)
    return result.to_dict()


@router.post("/{school_id}/remote", response_model=SchemaSetup)
async def setup_remote(
    school_id: str,
    request: RemoteSetupRequest,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    service: ProvisioningService = Depends(get_provisioning_service)
):
    result = await service.setup_remote(
        school_id,
        remote_url=request.remote_url,
        remote_project_id=request.remote_project_id,
        remote_anon_key=request.remote_anon_key,
        remote_service_key=request.remote_service_key,
        database_url=request.database_url,
        admin_id=current_admin.id,
        origin=origin,
    )
    return result.to_dict()


@router.get("/{school_id}/status", response_model=SchoolStatusResponse)
async def school_status(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    service: ProvisioningService = Depends(get_provisioning_service)
):
    return await service.get_status(school_id)


@router.post("/{school_id}/suspend", response_model=School)
async def suspend_school(
    school_id: str,
    reason: Optional[str] = Body(None, embed=True),
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    service: ProvisioningService = Depends(get_provisioning_service)
):
    return await service.suspend(school_id, reason=reason, admin_id=current_admin.id, origin=origin)


@router.post("/{school_id}/reactivate", response_model=School)
async def reactivate_school(
    school_id: str,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    service: ProvisioningService = Depends(get_provisioning_service)
):
    return await service.reactivate(school_id, admin_id=current_admin.id, origin=origin)
