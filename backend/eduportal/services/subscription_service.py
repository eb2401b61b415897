# backend/eduportal/services/subscription_service.py
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.config import settings
from eduportal.core.constants import (
    DEFAULT_PLANS,
    ENTITLED_SUBSCRIPTION_STATUSES,
    LIMITED_METRICS,
    InvoiceStatus,
    SubscriptionStatus,
)
from eduportal.core.exceptions import NotFoundError, PlanNotFoundError, ValidationError
from eduportal.core.identifiers import generate_invoice_number
from eduportal.db.models.school import SchoolInstance
from eduportal.db.models.subscription import SubscriptionPlan, SchoolSubscription, BillingInvoice
from eduportal.db.models.usage import UsageRecord

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Plans, subscriptions, usage tracking and invoicing"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Plans

    async def initialize_default_plans(self) -> int:
        """Insert any missing default plan; returns how many were created"""
        result = await self.session.execute(select(SubscriptionPlan.plan_id))
        existing = set(result.scalars().all())

        created = 0
        for plan in DEFAULT_PLANS:
            if plan["plan_id"] in existing:
                continue
            self.session.add(SubscriptionPlan(currency=settings.BILLING_CURRENCY, is_active=True, **plan))
            created += 1

        if created:
            await self.session.commit()
            logger.info(f"Initialized {created} default subscription plans")
        return created

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        query = select(SubscriptionPlan).order_by(SubscriptionPlan.price)
        if active_only:
            query = query.where(SubscriptionPlan.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_plan(self, plan_id: str) -> SubscriptionPlan:
        result = await self.session.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.plan_id == plan_id)
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    # Subscriptions

    async def create_subscription(
        self,
        school_instance_id: int,
        plan_id: str,
        trial_days: Optional[int] = None,
    ) -> SchoolSubscription:
        """
        Start a trial subscription.

        The first paid period runs for one billing period after the trial ends.
        """
        plan = await self.get_plan(plan_id)
        if await self.session.get(SchoolInstance, school_instance_id) is None:
            raise NotFoundError("School", school_instance_id)

        days = plan.trial_days if trial_days is None else trial_days
        if days < 0:
            raise ValidationError("trial_days cannot be negative", field="trial_days")

        now = datetime.utcnow()
        trial_end = now + timedelta(days=days)
        subscription = SchoolSubscription(
            school_instance_id=school_instance_id,
            plan_id=plan.plan_id,
            status=SubscriptionStatus.TRIAL.value,
            current_period_start=now,
            current_period_end=trial_end + timedelta(days=settings.BILLING_PERIOD_DAYS),
            trial_end=trial_end,
            cancel_at_period_end=False,
        )
        self.session.add(subscription)
        await self.session.commit()
        await self.session.refresh(subscription)

        logger.info(f"Created {plan.plan_id} subscription", extra={"school_instance_id": school_instance_id})
        return subscription

    async def get_current_subscription(self, school_instance_id: int) -> Optional[SchoolSubscription]:
        result = await self.session.execute(
            select(SchoolSubscription)
            .where(SchoolSubscription.school_instance_id == school_instance_id)
            .order_by(SchoolSubscription.created_at.desc(), SchoolSubscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _school_by_public_id(self, school_id: str) -> Optional[SchoolInstance]:
        result = await self.session.execute(select(SchoolInstance).where(SchoolInstance.school_id == school_id))
        return result.scalar_one_or_none()

    async def has_feature_access(self, school_id: str, feature_key: str) -> bool:
        """True only for an entitled, unexpired subscription whose plan enables the feature"""
        school = await self._school_by_public_id(school_id)
        if school is None:
            return False

        subscription = await self.get_current_subscription(school.id)
        if subscription is None:
            return False
        if subscription.status not in {s.value for s in ENTITLED_SUBSCRIPTION_STATUSES}:
            return False
        if datetime.utcnow() > subscription.current_period_end:
            return False

        try:
            plan = await self.get_plan(subscription.plan_id)
        except PlanNotFoundError:
            return False

        return (plan.features or {}).get(feature_key) is True

    # Usage

    async def track_usage(
        self,
        school_instance_id: int,
        metric: str,
        value: int,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> UsageRecord:
        if not metric:
            raise ValidationError("metric is required", field="metric")
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError("value must be a non-negative integer", field="value")

        record = UsageRecord(
            school_instance_id=school_instance_id,
            metric=metric,
            value=value,
            date=datetime.utcnow(),
            extra_metadata=metadata or {},
        )
        self.session.add(record)
        if commit:
            await self.session.commit()
            await self.session.refresh(record)
        return record

    async def check_usage_limits(self, school_id: str) -> Dict[str, Dict[str, Any]]:
        """
        Peak usage this calendar month against the plan quota, per metric.

        Returns:
            {"students": {"current": 250, "limit": 200, "exceeded": True}, ...}
        """
        school = await self._school_by_public_id(school_id)
        if school is None:
            raise NotFoundError("School", school_id)
        subscription = await self.get_current_subscription(school.id)
        if subscription is None:
            raise NotFoundError("Subscription", school_id)
        plan = await self.get_plan(subscription.plan_id)

        start_of_month = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        result = await self.session.execute(
            select(UsageRecord)
            .where(UsageRecord.school_instance_id == school.id)
            .where(UsageRecord.date >= start_of_month)
        )
        records = result.scalars().all()

        limits = {"students": plan.max_students, "teachers": plan.max_teachers, "storage": plan.max_storage}
        report = {}
        for metric in LIMITED_METRICS:
            current = max((r.value for r in records if r.metric == metric), default=0)
            report[metric] = {
                "current": current,
                "limit": limits[metric],
                "exceeded": current > limits[metric],
            }
        return report

    # Invoicing

    async def _invoice_for_period(self, subscription_id: int, period_start: datetime) -> Optional[BillingInvoice]:
        result = await self.session.execute(
            select(BillingInvoice)
            .where(BillingInvoice.subscription_id == subscription_id)
            .where(BillingInvoice.period_start == period_start)
        )
        return result.scalar_one_or_none()

    async def generate_invoice(self, subscription_id: int) -> BillingInvoice:
        """
        Invoice the subscription's current billing period.

        At most one invoice exists per (subscription, period); asking again
        returns the existing one.
        """
        invoice, _ = await self._issue_invoice(subscription_id)
        return invoice

    async def _issue_invoice(self, subscription_id: int) -> Tuple[BillingInvoice, bool]:
        """The period's invoice and whether this call created it"""
        subscription = await self.session.get(SchoolSubscription, subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription", subscription_id)

        period_start = subscription.current_period_start
        existing = await self._invoice_for_period(subscription.id, period_start)
        if existing is not None:
            return existing, False

        plan = await self.get_plan(subscription.plan_id)
        now = datetime.utcnow()
        invoice = BillingInvoice(
            school_instance_id=subscription.school_instance_id,
            subscription_id=subscription.id,
            invoice_number=generate_invoice_number(),
            amount=plan.price,
            currency=plan.currency,
            status=InvoiceStatus.PENDING.value,
            due_date=now + timedelta(days=settings.INVOICE_DUE_DAYS),
            period_start=period_start,
            period_end=subscription.current_period_end,
            line_items=[{"description": plan.name, "amount": str(plan.price)}],
        )
        self.session.add(invoice)
        try:
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent generator for the same period
            await self.session.rollback()
            existing = await self._invoice_for_period(subscription_id, period_start)
            if existing is None:
                raise
            return existing, False

        await self.session.refresh(invoice)
        logger.info(f"Generated invoice {invoice.invoice_number}", extra={"subscription_id": subscription_id})
        return invoice, True

    async def list_invoices(self, school_instance_id: int) -> List[BillingInvoice]:
        result = await self.session.execute(
            select(BillingInvoice)
            .where(BillingInvoice.school_instance_id == school_instance_id)
            .order_by(BillingInvoice.created_at.desc(), BillingInvoice.id.desc())
        )
        return list(result.scalars().all())

    async def process_automatic_billing(self) -> List[BillingInvoice]:
        """
        Invoice every active subscription whose period ends within the renewal
        window. Returns only invoices created by this run; periods already
        invoiced by an earlier run are skipped.
        """
        now = datetime.utcnow()
        horizon = now + timedelta(days=settings.RENEWAL_LOOKAHEAD_DAYS)
        result = await self.session.execute(
            select(SchoolSubscription.id)
            .where(SchoolSubscription.status == SubscriptionStatus.ACTIVE.value)
            .where(SchoolSubscription.current_period_end >= now)
            .where(SchoolSubscription.current_period_end <= horizon)
        )
        subscription_ids = list(result.scalars().all())

        invoices = []
        for subscription_id in subscription_ids:
            try:
                invoice, created = await self._issue_invoice(subscription_id)
            except Exception:
                logger.exception(f"Automatic billing failed for subscription {subscription_id}")
                await self.session.rollback()
                continue
            if created:
                invoices.append(invoice)

        logger.info(f"Automatic billing processed {len(subscription_ids)} subscriptions")
        return invoices
