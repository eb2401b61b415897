from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.school import SchoolInstance
from eduportal.db.models.credit import CreditBalance, CreditTransaction
from eduportal.db.models.template import DocumentTemplate, SchoolTemplateAccess
from eduportal.db.models.subscription import SubscriptionPlan, SchoolSubscription, BillingInvoice
from eduportal.db.models.usage import UsageRecord
from eduportal.db.models.audit_log import AuditLog

__all__ = [
    "PortalAdmin",
    "SchoolInstance",
    "CreditBalance",
    "CreditTransaction",
    "DocumentTemplate",
    "SchoolTemplateAccess",
    "SubscriptionPlan",
    "SchoolSubscription",
    "BillingInvoice",
    "UsageRecord",
    "AuditLog",
]
