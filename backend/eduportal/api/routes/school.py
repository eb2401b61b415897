# backend/eduportal/api/routes/school.py
"""Tenant-facing endpoints, authenticated by the school's public API key."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import get_resolved_school, get_school_by_api_key
from eduportal.core.constants import DOCUMENT_METRIC
from eduportal.db.database import get_db
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.template_repository import TemplateRepository
from eduportal.schemas.common import RequestModel
from eduportal.schemas.school import SchoolPublicProfile
from eduportal.services.credit_ledger import CreditLedger
from eduportal.services.subscription_service import SubscriptionService

router = APIRouter()


class UsageReport(RequestModel):
    metric: str = Field(..., min_length=1)
    value: int = Field(..., ge=0)
    metadata: Optional[Dict[str, Any]] = None


class DocumentGenerationRequest(RequestModel):
    template_id: int
    count: int = Field(1, ge=1)
    metadata: Optional[Dict[str, Any]] = None


@router.get("/info")
async def school_info(
    school: SchoolInstance = Depends(get_school_by_api_key),
    db: AsyncSession = Depends(get_db)
):
    balance = await CreditLedger(db).get_balance(school.id)
    return {
        "school_id": school.school_id,
        "name": school.name,
        "subdomain": school.subdomain,
        "plan_type": school.plan_type,
        "status": school.status,
        "features": school.features or {},
        "limits": {
            "max_students": school.max_students,
            "max_teachers": school.max_teachers,
            "max_documents": school.max_documents,
            "used_documents": school.used_documents,
        },
        "credits": {
            "total": balance.total_credits,
            "used": balance.used_credits,
            "available": balance.available_credits,
        } if balance else None,
    }


@router.post("/usage")
async def report_usage(
    request: UsageReport,
    school: SchoolInstance = Depends(get_school_by_api_key),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a usage metric for the calling school.

    ``documents_generated`` is billed one credit per document in the same
    commit as the usage row; a school without enough credits gets a 402 and
    nothing is recorded.
    """
    school_pk, school_id = school.id, school.school_id
    response: Dict[str, Any] = {"school_id": school_id, "metric": request.metric, "value": request.value}

    ledger = CreditLedger(db)
    billed = request.metric == DOCUMENT_METRIC and request.value > 0
    if billed:
        await ledger.consume_documents(
            school,
            request.value,
            f"Generated {request.value} document(s)",
            metadata=request.metadata,
            commit=False,
        )

    await SubscriptionService(db).track_usage(
        school_pk, request.metric, request.value, request.metadata, commit=False
    )
    await db.commit()

    if billed:
        balance = await ledger.get_balance(school_pk)
        response["credits_remaining"] = balance.available_credits
    return {"success": True, **response}


@router.post("/documents/generate")
async def generate_documents(
    request: DocumentGenerationRequest,
    school: SchoolInstance = Depends(get_school_by_api_key),
    db: AsyncSession = Depends(get_db)
):
    """
    Charge the calling school for generating ``count`` documents from a
    granted template, at the template's ``required_credits`` per document.
    """
    templates = TemplateRepository(db)
    template = await templates.get(request.template_id)
    if template is None or not template.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    if not await templates.has_access(school.id, template.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Template is not enabled for this school",
        )

    school_pk = school.id
    credits = template.required_credits * request.count
    metadata = {**(request.metadata or {}), "template_id": template.id, "template_type": template.type}

    ledger = CreditLedger(db)
    await ledger.consume_documents(
        school,
        request.count,
        f"Generated {request.count} {template.name}",
        metadata=metadata,
        credits=credits,
        commit=False,
    )
    await SubscriptionService(db).track_usage(school_pk, DOCUMENT_METRIC, request.count, metadata, commit=False)
    await db.commit()

    balance = await ledger.get_balance(school_pk)
    return {
        "success": True,
        "template_id": template.id,
        "count": request.count,
        "credits_used": credits,
        "credits_remaining": balance.available_credits,
    }


@router.get("/profile", response_model=SchoolPublicProfile)
async def school_profile(school: SchoolInstance = Depends(get_resolved_school)):
    """Public profile of the school named by API key, subdomain or X-School-ID"""
    return school
