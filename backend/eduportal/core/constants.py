# backend/eduportal/core/constants.py
from enum import Enum
from typing import Dict, Any, List


class PlanType(str, Enum):
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SchoolStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    BONUS = "bonus"


class ResetInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"


class AdminRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SUPPORT = "support"


class RemoteStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    CONNECTED = "connected"
    CONNECTION_FAILED = "connection_failed"


# Credit-adding transaction types; usage is the only debit
CREDIT_TYPES = {TransactionType.PURCHASE, TransactionType.BONUS, TransactionType.REFUND}

# Subscription statuses that grant feature access while the period is open
ENTITLED_SUBSCRIPTION_STATUSES = {SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE}

# Usage metrics compared against plan quotas
LIMITED_METRICS = ("students", "teachers", "storage")

# Usage metric debited from the credit ledger, one credit per document
DOCUMENT_METRIC = "documents_generated"

# Default quotas for a freshly registered school
DEFAULT_SCHOOL_LIMITS: Dict[str, int] = {
    "max_students": 100,
    "max_teachers": 10,
    "max_documents": 1000,
}


# Default subscription plans (prices in BDT, storage in GB)
DEFAULT_PLANS: List[Dict[str, Any]] = [
    {
        "plan_id": PlanType.BASIC.value,
        "name": "Basic Plan",
        "description": "Perfect for small schools starting their digital journey",
        "price": 2500,
        "billing_cycle": "monthly",
        "max_students": 200,
        "max_teachers": 15,
        "max_storage": 10,
        "features": {
            "studentManagement": True,
            "teacherManagement": True,
            "documentGeneration": True,
            "basicReports": True,
            "smsNotifications": False,
            "customBranding": False,
            "apiAccess": False,
            "advancedAnalytics": False,
            "whiteLabel": False,
        },
        "support_level": "basic",
        "trial_days": 14,
    },
    {
        "plan_id": PlanType.PRO.value,
        "name": "Pro Plan",
        "description": "Advanced features for growing educational institutions",
        "price": 5500,
        "billing_cycle": "monthly",
        "max_students": 1000,
        "max_teachers": 50,
        "max_storage": 50,
        "features": {
            "studentManagement": True,
            "teacherManagement": True,
            "documentGeneration": True,
            "basicReports": True,
            "smsNotifications": True,
            "customBranding": True,
            "apiAccess": True,
            "advancedAnalytics": True,
            "whiteLabel": False,
            "parentPortal": True,
            "libraryManagement": True,
            "transportManagement": True,
        },
        "support_level": "premium",
        "trial_days": 14,
    },
    {
        "plan_id": PlanType.ENTERPRISE.value,
        "name": "Enterprise Plan",
        "description": "Complete solution with unlimited features and dedicated support",
        "price": 12000,
        "billing_cycle": "monthly",
        "max_students": 5000,
        "max_teachers": 200,
        "max_storage": 200,
        "features": {
            "studentManagement": True,
            "teacherManagement": True,
            "documentGeneration": True,
            "basicReports": True,
            "smsNotifications": True,
            "customBranding": True,
            "apiAccess": True,
            "advancedAnalytics": True,
            "whiteLabel": True,
            "parentPortal": True,
            "libraryManagement": True,
            "transportManagement": True,
            "inventoryManagement": True,
            "financialManagement": True,
            "dedicatedSupport": True,
            "customIntegrations": True,
        },
        "support_level": "enterprise",
        "trial_days": 30,
    },
]
