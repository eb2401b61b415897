# backend/eduportal/db/models/audit_log.py
from sqlalchemy import Column, String, ForeignKey, JSON, Text, Integer

from eduportal.db.base import BaseModel


class AuditLog(BaseModel):
    """Audit log for tracking all administrative actions"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("portal_admins.id"), nullable=True, index=True)
    # Correlation string, not a foreign key: entries outlive the school
    school_id = Column(String(64), nullable=True, index=True)

    # Action details
    action = Column(String(100), nullable=False, index=True)  # create_school, add_credits, ...
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(100), nullable=True)

    # Request details
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Additional details
    details = Column(JSON, default=dict)
