# backend/eduportal/schemas/audit.py
from datetime import datetime
from typing import Optional, Dict, Any

from eduportal.schemas.common import ORMModel


class AuditEntry(ORMModel):
    id: int
    admin_id: Optional[int] = None
    school_id: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
