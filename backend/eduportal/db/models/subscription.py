# backend/eduportal/db/models/subscription.py
from sqlalchemy import (
    Column, String, Integer, Boolean, ForeignKey, JSON, DateTime, Numeric, Text, UniqueConstraint, CheckConstraint,
)

from eduportal.db.base import BaseModel


class SubscriptionPlan(BaseModel):
    """Catalogue entry for a paid plan"""
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_id = Column(String(32), unique=True, nullable=False, index=True)  # basic, pro, enterprise
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), default="BDT", nullable=False)
    billing_cycle = Column(String(16), default="monthly", nullable=False)
    max_students = Column(Integer, nullable=False)
    max_teachers = Column(Integer, nullable=False)
    max_storage = Column(Integer, nullable=False)  # GB
    features = Column(JSON, default=dict)
    support_level = Column(String(32), default="basic", nullable=False)
    trial_days = Column(Integer, default=14, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class SchoolSubscription(BaseModel):
    """A school's subscription to a plan"""
    __tablename__ = "school_subscriptions"
    __table_args__ = (
        CheckConstraint("current_period_end > current_period_start", name="ck_school_subscriptions_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(Integer, ForeignKey("school_instances.id"), nullable=False, index=True)
    plan_id = Column(String(32), ForeignKey("subscription_plans.plan_id"), nullable=False)
    status = Column(String(16), default="trial", nullable=False, index=True)  # trial, active, past_due, canceled
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False, index=True)
    trial_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    # External billing references
    external_customer_id = Column(String(255), nullable=True)
    external_subscription_id = Column(String(255), nullable=True)


class BillingInvoice(BaseModel):
    """Invoice for one billing period of a subscription"""
    __tablename__ = "billing_invoices"
    __table_args__ = (
        UniqueConstraint("subscription_id", "period_start", name="uq_billing_invoices_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(Integer, ForeignKey("school_instances.id"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("school_subscriptions.id"), nullable=False, index=True)
    invoice_number = Column(String(64), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), default="BDT", nullable=False)
    status = Column(String(16), default="pending", nullable=False)  # pending, paid, failed, canceled
    due_date = Column(DateTime, nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    payment_method = Column(String(32), nullable=True)
    line_items = Column(JSON, default=list)
