# backend/eduportal/db/models/credit.py
from datetime import datetime
from sqlalchemy import Column, String, Integer, ForeignKey, JSON, DateTime, CheckConstraint, Text

from eduportal.db.base import BaseModel


class CreditBalance(BaseModel):
    """Current credit balance, exactly one row per school"""
    __tablename__ = "school_credits"
    __table_args__ = (
        CheckConstraint("available_credits >= 0", name="ck_school_credits_available_non_negative"),
        CheckConstraint(
            "available_credits = total_credits - used_credits",
            name="ck_school_credits_balance_consistent",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(
        Integer, ForeignKey("school_instances.id"), unique=True, nullable=False, index=True
    )
    total_credits = Column(Integer, default=0, nullable=False)
    used_credits = Column(Integer, default=0, nullable=False)
    available_credits = Column(Integer, default=0, nullable=False)
    reset_interval = Column(String(16), default="never", nullable=False)  # monthly, yearly, never
    last_reset_date = Column(DateTime, default=datetime.utcnow, nullable=True)


class CreditTransaction(BaseModel):
    """Append-only ledger entry"""
    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_credit_transactions_amount_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(Integer, ForeignKey("school_instances.id"), nullable=False, index=True)
    type = Column(String(16), nullable=False)  # purchase, usage, refund, bonus
    amount = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    reference = Column(String(255), nullable=True)
    extra_metadata = Column("metadata", JSON, default=dict)
