# backend/eduportal/db/models/usage.py
from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, Integer, DateTime, JSON

from eduportal.db.base import BaseModel


class UsageRecord(BaseModel):
    """Usage tracking for analytics and plan limits"""
    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(Integer, ForeignKey("school_instances.id"), nullable=False, index=True)

    # Usage data
    metric = Column(String(64), nullable=False, index=True)  # students, teachers, storage, documents_generated
    value = Column(Integer, nullable=False, default=0)
    date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    extra_metadata = Column("metadata", JSON, default=dict)
