# backend/eduportal/schemas/subscription.py
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from pydantic import Field

from eduportal.schemas.common import ORMModel, RequestModel


class Plan(ORMModel):
    plan_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    billing_cycle: str
    max_students: int
    max_teachers: int
    max_storage: int
    features: Dict[str, Any]
    support_level: str
    trial_days: int


class SubscriptionCreate(RequestModel):
    school_id: str
    plan_id: str
    trial_days: Optional[int] = Field(None, ge=0)


class Subscription(ORMModel):
    id: int
    school_instance_id: int
    plan_id: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    trial_end: Optional[datetime] = None
    cancel_at_period_end: bool


class UsageCreate(RequestModel):
    metric: str = Field(..., min_length=1)
    value: int = Field(..., ge=0)
    metadata: Optional[Dict[str, Any]] = None


class UsageLimit(ORMModel):
    current: int
    limit: int
    exceeded: bool


class Invoice(ORMModel):
    id: int
    invoice_number: str
    subscription_id: int
    school_instance_id: int
    amount: Decimal
    currency: str
    status: str
    due_date: datetime
    period_start: datetime
    period_end: datetime
    paid_at: Optional[datetime] = None
    created_at: datetime
