# backend/eduportal/db/models/template.py
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, JSON, DateTime, Text, UniqueConstraint

from eduportal.db.base import BaseModel


class DocumentTemplate(BaseModel):
    """A document template schools can be granted"""
    __tablename__ = "document_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)  # id_card, certificate, admit_card, ...
    category = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    template = Column(JSON, default=dict)
    required_credits = Column(Integer, default=1, nullable=False)
    is_global = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(String(16), default="1.0", nullable=False)
    created_by = Column(Integer, ForeignKey("portal_admins.id"), nullable=True)


class SchoolTemplateAccess(BaseModel):
    """Grant of one template to one school"""
    __tablename__ = "school_template_access"
    __table_args__ = (
        UniqueConstraint("school_instance_id", "template_id", name="uq_school_template_access"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_instance_id = Column(Integer, ForeignKey("school_instances.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("document_templates.id"), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    custom_config = Column(JSON, default=dict)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    granted_by = Column(Integer, ForeignKey("portal_admins.id"), nullable=True)
