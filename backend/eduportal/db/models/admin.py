# backend/eduportal/db/models/admin.py
from sqlalchemy import Column, String, Boolean, DateTime, Integer

from eduportal.db.base import BaseModel


class PortalAdmin(BaseModel):
    """Operator account for the developer portal"""
    __tablename__ = "portal_admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(32), default="admin", nullable=False)  # super_admin, admin, support

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
