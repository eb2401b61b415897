# backend/eduportal/api/routes/subscription.py
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import get_request_origin, require_role
from eduportal.core.audit_log import AuditAction, AuditLogger
from eduportal.core.constants import AdminRole
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.schemas.subscription import (
    Invoice,
    Plan,
    Subscription,
    SubscriptionCreate,
    UsageCreate,
    UsageLimit,
)
from eduportal.services.subscription_service import SubscriptionService

router = APIRouter()


async def _school_or_404(school_id: str, db: AsyncSession) -> SchoolInstance:
    school = await SchoolInstanceRepository(db).get_by_school_id(school_id)
    if school is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


@router.get("/plans", response_model=List[Plan])
async def list_plans(
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    return await SubscriptionService(db).list_plans()


@router.get("/{school_id}/current", response_model=Subscription)
async def current_subscription(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    subscription = await SubscriptionService(db).get_current_subscription(school.id)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No subscription found")
    return subscription


@router.post("/create", response_model=Subscription, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    request: SubscriptionCreate,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(request.school_id, db)
    subscription = await SubscriptionService(db).create_subscription(
        school.id, request.plan_id, request.trial_days
    )
    await AuditLogger(db).log_event(
        AuditAction.CREATE_SUBSCRIPTION,
        "subscription",
        resource_id=subscription.id,
        admin_id=current_admin.id,
        school_id=school.school_id,
        details={"plan_id": subscription.plan_id},
        **origin,
    )
    return subscription


@router.get("/{school_id}/feature-access")
async def feature_access(
    school_id: str,
    feature: str = Query(..., min_length=1),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    allowed = await SubscriptionService(db).has_feature_access(school_id, feature)
    return {"school_id": school_id, "feature": feature, "has_access": allowed}


@router.get("/{school_id}/usage-limits", response_model=Dict[str, UsageLimit])
async def usage_limits(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    return await SubscriptionService(db).check_usage_limits(school_id)


@router.post("/{school_id}/track-usage")
async def track_usage(
    school_id: str,
    request: UsageCreate,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    record = await SubscriptionService(db).track_usage(
        school.id, request.metric, request.value, request.metadata
    )
    return {"success": True, "id": record.id, "metric": record.metric, "value": record.value}


@router.get("/{school_id}/invoices", response_model=List[Invoice])
async def list_invoices(
    school_id: str,
    current_admin: PortalAdmin = Depends(require_role(AdminRole.SUPPORT.value)),
    db: AsyncSession = Depends(get_db)
):
    school = await _school_or_404(school_id, db)
    return await SubscriptionService(db).list_invoices(school.id)


@router.post("/invoices/{subscription_id}/generate", response_model=Invoice)
async def generate_invoice(
    subscription_id: int,
    origin: dict = Depends(get_request_origin),
    current_admin: PortalAdmin = Depends(require_role(AdminRole.ADMIN.value)),
    db: AsyncSession = Depends(get_db)
):
    """Invoice the subscription's current period; repeated calls return the same invoice"""
    invoice = await SubscriptionService(db).generate_invoice(subscription_id)
    await AuditLogger(db).log_event(
        AuditAction.GENERATE_INVOICE,
        "invoice",
        resource_id=invoice.id,
        admin_id=current_admin.id,
        details={"invoice_number": invoice.invoice_number, "subscription_id": subscription_id},
        **origin,
    )
    return invoice
