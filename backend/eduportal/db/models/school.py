# backend/eduportal/db/models/school.py
from sqlalchemy import Column, String, Integer, JSON, DateTime, Text

from eduportal.db.base import BaseModel


class SchoolInstance(BaseModel):
    """A tenant school registered in the portal"""
    __tablename__ = "school_instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)
    custom_domain = Column(String(255), nullable=True)

    # Contact
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)

    # Plan and lifecycle
    plan_type = Column(String(32), default="basic", nullable=False)  # basic, pro, enterprise
    status = Column(String(32), default="trial", nullable=False, index=True)  # trial, active, suspended, expired
    trial_expires_at = Column(DateTime, nullable=True)

    # Remote store linkage
    remote_project_id = Column(String(255), nullable=True)
    remote_url = Column(String(500), nullable=True)
    database_url = Column(Text, nullable=True)
    remote_anon_key = Column(Text, nullable=True)
    remote_service_key = Column(Text, nullable=True)

    # Credentials
    api_key = Column(String(64), unique=True, nullable=False, index=True)
    secret_key = Column(String(64), unique=True, nullable=False)

    # Quotas
    max_students = Column(Integer, default=100, nullable=False)
    max_teachers = Column(Integer, default=10, nullable=False)
    max_documents = Column(Integer, default=1000, nullable=False)
    used_documents = Column(Integer, default=0, nullable=False)

    features = Column(JSON, default=dict)
    # `metadata` is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, default=dict)
