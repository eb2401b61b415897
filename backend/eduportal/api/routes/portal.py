# backend/eduportal/api/routes/portal.py
from collections import Counter
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import (
    get_connection_manager,
    get_current_admin,
    get_request_origin,
    get_school_or_404,
    require_role,
)
from eduportal.core.audit_log import AuditAction, AuditLogger
from eduportal.core.constants import AdminRole, SchoolStatus
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.credit import CreditBalance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.db.repositories.template_repository import TemplateRepository
from eduportal.provisioning.onboarding import ProvisioningService
from eduportal.schemas.audit import AuditEntry
from eduportal.schemas.common import Message
from eduportal.schemas.credit import CreditMutation, CreditSummary, CreditTransactionCreate
from eduportal.schemas.school import School, SchoolCreate, SchoolUpdate, SchoolWithSecret
from eduportal.schemas.template import Template, TemplateCreate, TemplateGrant, TemplateGrantRequest
from eduportal.services.connection_manager import TenantConnectionManager
from eduportal.services.credit_ledger import CreditLedger

router = APIRouter()


# Schools

@router.get("/schools", response_model=List[School])
async def list_schools(
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all schools, newest first"""
    return await SchoolInstanceRepository(db).list_all()


@router.post("/schools", response_model=SchoolWithSecret, status_code=status.HTTP_201_CREATED)
async def create_school(
    request: SchoolCreate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    """Register a school in trial status with its trial credits"""
    school = await SchoolInstanceRepository(db).create(request.model_dump(exclude_none=True))
    await AuditLogger(db).log_event(
        AuditAction.CREATE_SCHOOL,
        "school",
        resource_id=school.id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        details={"name": school.name, "plan_type": school.plan_type},
        **origin,
    )
    return school


@router.get("/schools/{school_instance_id}", response_model=School)
async def get_school(
    school_instance_id: int,
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await get_school_or_404(school_instance_id, db)


@router.patch("/schools/{school_instance_id}", response_model=School)
async def update_school(
    school_instance_id: int,
    request: SchoolUpdate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    fields = request.model_dump(exclude_unset=True)
    school = await SchoolInstanceRepository(db).update(school_instance_id, fields)
    if school is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")

    await AuditLogger(db).log_event(
        AuditAction.UPDATE_SCHOOL,
        "school",
        resource_id=school.id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        details={"fields": sorted(fields)},
        **origin,
    )
    return school


@router.delete("/schools/{school_instance_id}", response_model=Message)
async def delete_school(
    school_instance_id: int,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPER_ADMIN.value)),
    connections: TenantConnectionManager = Depends(get_connection_manager),
    db: AsyncSession = Depends(get_db)
):
    """Delete a school and everything it owns; audit entries are kept"""
    school = await get_school_or_404(school_instance_id, db)
    await ProvisioningService(db, connections).delete_school(school, current_admin.id, origin)
    return Message(message="School deleted successfully")


# Credits

@router.get("/schools/{school_instance_id}/credits", response_model=CreditSummary)
async def get_credits(
    school_instance_id: int,
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await get_school_or_404(school_instance_id, db)
    ledger = CreditLedger(db)
    balance = await ledger.get_balance(school_instance_id)
    if balance is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Credit balance not found")
    return CreditSummary(
        balance=balance,
        transactions=await ledger.list_transactions(school_instance_id),
    )


@router.post("/schools/{school_instance_id}/credits", response_model=CreditMutation)
async def add_credit_transaction(
    school_instance_id: int,
    request: CreditTransactionCreate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    """Apply a purchase, bonus, refund or usage movement to a school's credits"""
    school = await get_school_or_404(school_instance_id, db)
    ledger = CreditLedger(db)
    transaction = await ledger.record_transaction(
        school.id,
        request.type,
        request.amount,
        request.description,
        reference=request.reference,
        metadata={**(request.metadata or {}), "admin_id": current_admin.id},
    )
    await AuditLogger(db).log_event(
        AuditAction.ADD_CREDITS,
        "credits",
        resource_id=transaction.id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        details={"type": request.type, "amount": request.amount},
        **origin,
    )
    return CreditMutation(transaction=transaction, balance=await ledger.get_balance(school.id))


# Templates

@router.get("/templates", response_model=List[Template])
async def list_templates(
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await TemplateRepository(db).list_templates()


@router.post("/templates", response_model=Template, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateCreate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    template = await TemplateRepository(db).create_template(request.model_dump(), created_by=current_admin.id)
    await AuditLogger(db).log_event(
        AuditAction.CREATE_TEMPLATE,
        "template",
        resource_id=template.id,
        admin_id=current_admin.id,
        details={"name": template.name, "type": template.type},
        **origin,
    )
    return template


@router.get("/schools/{school_instance_id}/templates", response_model=List[TemplateGrant])
async def list_school_templates(
    school_instance_id: int,
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await get_school_or_404(school_instance_id, db)
    return await TemplateRepository(db).list_access(school_instance_id)


@router.post("/schools/{school_instance_id}/templates/{template_id}/grant", response_model=TemplateGrant)
async def grant_template(
    school_instance_id: int,
    template_id: int,
    request: Optional[TemplateGrantRequest] = None,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await get_school_or_404(school_instance_id, db)
    grant = await TemplateRepository(db).grant_access(
        school.id,
        template_id,
        granted_by=current_admin.id,
        custom_config=request.custom_config if request else None,
    )
    await AuditLogger(db).log_event(
        AuditAction.GRANT_TEMPLATE,
        "template",
        resource_id=template_id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        **origin,
    )
    return grant


@router.delete("/schools/{school_instance_id}/templates/{template_id}/grant", response_model=Message)
async def revoke_template(
    school_instance_id: int,
    template_id: int,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await get_school_or_404(school_instance_id, db)
    if not await TemplateRepository(db).revoke_access(school.id, template_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template grant not found")
    await AuditLogger(db).log_event(
        AuditAction.REVOKE_TEMPLATE,
        "template",
        resource_id=template_id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        **origin,
    )
    return Message(message="Template access revoked")


# Analytics and audit

@router.get("/analytics/overview")
async def analytics_overview(
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    schools = await SchoolInstanceRepository(db).list_all()
    statuses = Counter(s.status for s in schools)
    plans = Counter(s.plan_type for s in schools)

    credits = (await db.execute(
        select(
            func.coalesce(func.sum(CreditBalance.total_credits), 0),
            func.coalesce(func.sum(CreditBalance.used_credits), 0),
        )
    )).one()

    return {
        "total_schools": len(schools),
        "active_schools": statuses.get(SchoolStatus.ACTIVE.value, 0),
        "trial_schools": statuses.get(SchoolStatus.TRIAL.value, 0),
        "suspended_schools": statuses.get(SchoolStatus.SUSPENDED.value, 0),
        "plan_distribution": dict(plans),
        "total_credits_issued": int(credits[0]),
        "total_credits_used": int(credits[1]),
        "total_documents_generated": sum(s.used_documents for s in schools),
        "recent_schools": [School.model_validate(s).model_dump(mode="json") for s in schools[:5]],
    }


@router.get("/audit-logs", response_model=List[AuditEntry])
async def audit_logs(
    school_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    current_admin: PortalAdmin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await AuditLogger(db).list_events(school_id=school_id, limit=limit)
