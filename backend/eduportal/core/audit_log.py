# backend/eduportal/core/audit_log.py
"""
Append-only audit trail of administrative actions.

Entries reference schools by their public school id string, so they remain
readable after the school itself has been deleted. There is no update or
delete path.
"""
from enum import Enum
from typing import Optional, Dict, Any, List

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.logging import logger
from eduportal.db.models.audit_log import AuditLog


class AuditAction(str, Enum):
    ADMIN_LOGIN = "admin_login"
    ADMIN_SETUP = "admin_setup"
    CREATE_SCHOOL = "create_school"
    UPDATE_SCHOOL = "update_school"
    DELETE_SCHOOL = "delete_school"
    ADD_CREDITS = "add_credits"
    GRANT_TEMPLATE = "grant_template"
    REVOKE_TEMPLATE = "revoke_template"
    CREATE_TEMPLATE = "create_template"
    ONBOARD_SCHOOL = "onboard_school"
    CONFIGURE_REMOTE = "configure_remote"
    SUSPEND_SCHOOL = "suspend_school"
    REACTIVATE_SCHOOL = "reactivate_school"
    ROTATE_KEYS = "rotate_keys"
    CREATE_SUBSCRIPTION = "create_subscription"
    GENERATE_INVOICE = "generate_invoice"


def request_origin(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """Client address and user agent of the request, for audit entries"""
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


class AuditLogger:
    """Writes and reads audit entries"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_event(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        admin_id: Optional[int] = None,
        school_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action.value if isinstance(action, AuditAction) else action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            admin_id=admin_id,
            school_id=school_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)

        logger.info(
            f"Audit: {entry.action} {resource_type}",
            extra={"school_id": school_id, "admin_id": admin_id},
        )
        return entry

    async def list_events(self, school_id: Optional[str] = None, limit: int = 100) -> List[AuditLog]:
        """Entries newest first, optionally for one school"""
        query = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
        if school_id:
            query = query.where(AuditLog.school_id == school_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())
