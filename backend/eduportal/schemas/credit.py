# backend/eduportal/schemas/credit.py
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import Field

from eduportal.schemas.common import ORMModel, RequestModel


class CreditTransactionCreate(RequestModel):
    amount: int
    type: str = "purchase"
    description: str = Field(..., min_length=1)
    reference: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CreditBalance(ORMModel):
    total_credits: int
    used_credits: int
    available_credits: int
    reset_interval: str
    last_reset_date: Optional[datetime] = None


class CreditTransaction(ORMModel):
    id: int
    type: str
    amount: int
    description: str
    reference: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra_metadata")
    created_at: datetime


class CreditSummary(ORMModel):
    balance: CreditBalance
    transactions: List[CreditTransaction]


class CreditMutation(ORMModel):
    transaction: CreditTransaction
    balance: CreditBalance
