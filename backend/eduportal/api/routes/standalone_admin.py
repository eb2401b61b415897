# backend/eduportal/api/routes/standalone_admin.py
"""Operator tooling for each school's own remote store."""
from collections import Counter
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import get_connection_manager, get_request_origin, require_role
from eduportal.core.audit_log import AuditAction, AuditLogger
from eduportal.core.constants import AdminRole, SchoolStatus
from eduportal.core.identifiers import mask_secret
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.provisioning.onboarding import ProvisioningService
from eduportal.provisioning.schema import SchemaProvisioner
from eduportal.schemas.common import RequestModel
from eduportal.schemas.provisioning import RemoteSetupRequest
from eduportal.services.connection_manager import TenantConnectionManager
from eduportal.services.remote_store import RemoteStoreClient, RemoteStoreError

router = APIRouter()


class RemoteConfigUpdate(RequestModel):
    remote_url: Optional[str] = None
    remote_project_id: Optional[str] = None
    database_url: Optional[str] = None


def _has_remote(school: SchoolInstance) -> bool:
    return bool(school.remote_url and school.remote_project_id)


async def _school_or_404(school_id: str, db: AsyncSession) -> SchoolInstance:
    school = await SchoolInstanceRepository(db).get_by_school_id(school_id)
    if school is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


async def _remote_client(
    school: SchoolInstance,
    connections: TenantConnectionManager,
    admin: bool = False,
) -> RemoteStoreClient:
    if not school.remote_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="School does not have a remote store configured"
        )
    # Handles are process-local; rebuild from the stored linkage after a restart
    if connections.get_config(school.school_id) is None:
        await connections.register_tenant(school)

    if admin:
        client = await connections.get_admin_client(school.school_id)
    else:
        client = await connections.get_client(school.school_id)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to connect to school remote store"
        )
    return client


@router.get("/schools")
async def list_schools_with_status(
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    schools = await SchoolInstanceRepository(db).list_all()
    results: List[dict] = []
    for school in schools:
        connection_status = "unknown"
        if _has_remote(school):
            if connections.get_config(school.school_id) is None:
                await connections.register_tenant(school)
            connected = await connections.check_connection(school.school_id)
            connection_status = "connected" if connected else "error"

        results.append({
            "id": school.id,
            "school_id": school.school_id,
            "name": school.name,
            "subdomain": school.subdomain,
            "status": school.status,
            "plan_type": school.plan_type,
            "has_remote": _has_remote(school),
            "connection_status": connection_status,
            "remote_url": mask_secret(school.remote_url, visible=20) if school.remote_url else None,
            "created_at": school.created_at,
        })
    return results


@router.post("/schools/{school_id}/remote/setup")
async def setup_school_remote(
    school_id: str,
    request: RemoteSetupRequest,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    result = await ProvisioningService(db, connections).setup_remote(
        school_id,
        remote_url=request.remote_url,
        remote_project_id=request.remote_project_id,
        remote_anon_key=request.remote_anon_key,
        remote_service_key=request.remote_service_key,
        database_url=request.database_url,
        admin_id=current_admin.id,
        origin=origin,
    )
    config = connections.get_config(school_id)
    return {
        "message": "Remote store set up successfully" if result.success else "Remote store set up with errors",
        "school_id": school_id,
        "schema_setup": result.success,
        "storage_setup": bool(result.buckets_created),
        "schema_details": result.to_dict(),
        "config": {"url": config.url, "project_id": config.project_id} if config else None,
    }


@router.post("/schools/{school_id}/remote/test")
async def test_school_remote(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    """Probe the school's remote database, auth and storage services independently"""
    school = await _school_or_404(school_id, db)
    client = await _remote_client(school, connections)

    tests = {"connection": False, "auth": False, "database": False, "storage": False}
    try:
        await client.select("users", columns="id", limit=1)
        tests["connection"] = tests["database"] = True
    except RemoteStoreError:
        pass
    try:
        await client.auth_health()
        tests["auth"] = True
    except RemoteStoreError:
        pass
    try:
        await client.list_buckets()
        tests["storage"] = True
    except RemoteStoreError:
        pass

    overall = all(tests.values())
    return {
        "school_id": school.school_id,
        "school_name": school.name,
        "tests": tests,
        "overall_status": overall,
        "message": "All tests passed" if overall else "Some tests failed",
    }


@router.get("/schools/{school_id}/remote/config")
async def get_remote_config(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    return {
        "school_id": school.school_id,
        "school_name": school.name,
        "has_remote": _has_remote(school),
        "remote_url": mask_secret(school.remote_url, visible=25) if school.remote_url else None,
        "project_id": school.remote_project_id,
        "database_url": mask_secret(school.database_url, visible=30) if school.database_url else None,
        "api_key": mask_secret(school.api_key),
        "status": school.status,
        "plan_type": school.plan_type,
        "created_at": school.created_at,
        "updated_at": school.updated_at,
    }


@router.patch("/schools/{school_id}/remote/config")
async def update_remote_config(
    school_id: str,
    request: RemoteConfigUpdate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    fields = {k: v for k, v in request.model_dump().items() if v}
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    school = await SchoolInstanceRepository(db).update(school.id, fields)
    await connections.remove_client(school_id)
    config = await connections.register_tenant(school)

    await AuditLogger(db).log_event(
        AuditAction.CONFIGURE_REMOTE,
        "school",
        resource_id=school.id,
        admin_id=current_admin.id,
        school_id=school_id,
        details={"fields": sorted(fields)},
        **origin,
    )
    return {
        "message": "Remote configuration updated successfully",
        "school_id": school_id,
        "updated": True,
        "config": {"url": config.url, "project_id": config.project_id} if config else None,
    }


@router.post("/schools/{school_id}/reset-keys")
async def reset_keys(
    school_id: str,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPER_ADMIN.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    """Issue a fresh API/secret key pair; the old pair stops working immediately"""
    school = await _school_or_404(school_id, db)
    school = await SchoolInstanceRepository(db).rotate_keys(school.id)
    await connections.remove_client(school_id)

    await AuditLogger(db).log_event(
        AuditAction.ROTATE_KEYS,
        "school",
        resource_id=school.id,
        admin_id=current_admin.id,
        school_id=school_id,
        **origin,
    )
    return {
        "message": "API keys reset successfully",
        "school_id": school_id,
        "new_api_key": school.api_key,
        "new_secret_key": school.secret_key,
        "warning": "Please update your applications with the new API key",
    }


@router.get("/overview")
async def overview(
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    schools = await SchoolInstanceRepository(db).list_all()
    return {
        "total_schools": len(schools),
        "active_schools": sum(1 for s in schools if s.status == SchoolStatus.ACTIVE.value),
        "schools_with_remote": sum(1 for s in schools if _has_remote(s)),
        "connected_clients": len(connections.registered_tenants()),
        "plan_distribution": dict(Counter(s.plan_type for s in schools)),
        "status_distribution": dict(Counter(s.status for s in schools)),
    }


@router.post("/schools/{school_id}/create-database")
async def create_database(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    client = await _remote_client(school, connections, admin=True)
    result = await SchemaProvisioner().setup_complete_schema(client)
    return {
        "message": "Database schema created successfully" if result.success
        else "Database setup completed with some errors",
        "school_id": school.school_id,
        "school_name": school.name,
        **result.to_dict(),
        "summary": {
            "total_tables": len(result.tables_created),
            "total_buckets": len(result.buckets_created),
            "total_policies": len(result.policies_created),
            "total_errors": len(result.errors),
        },
    }


@router.get("/schools/{school_id}/verify-database")
async def verify_database(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    client = await _remote_client(school, connections)
    verification = await SchemaProvisioner().verify_schema(client)
    return {
        "school_id": school.school_id,
        "school_name": school.name,
        "is_complete": verification.is_complete,
        "missing_tables": verification.missing_tables,
        "status": "complete" if verification.is_complete else "incomplete",
    }
