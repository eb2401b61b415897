# backend/eduportal/api/dependencies.py
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.audit_log import request_origin
from eduportal.core.constants import AdminRole, SchoolStatus
from eduportal.core.security import decode_token
from eduportal.core.tenant import TenantResolver
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.admin_repository import AdminRepository
from eduportal.db.repositories.school_repository import SchoolInstanceRepository
from eduportal.services.connection_manager import TenantConnectionManager

security = HTTPBearer(auto_error=False)


def get_connection_manager(request: Request) -> TenantConnectionManager:
    """The application's shared remote connection manager"""
    return request.app.state.connection_manager


def get_request_origin(request: Request) -> dict:
    return request_origin(request)


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> PortalAdmin:
    """Get the authenticated portal admin"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )

    try:
        payload = decode_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

    admin_id = payload.get("sub")
    if not admin_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    try:
        admin = await AdminRepository(db).get(int(admin_id))
    except ValueError:
        admin = None

    if not admin or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found or inactive"
        )

    return admin


def require_role(required_role: str):
    """Dependency to check admin role"""
    roles_hierarchy = [AdminRole.SUPPORT.value, AdminRole.ADMIN.value, AdminRole.SUPER_ADMIN.value]

    async def role_checker(current_admin: PortalAdmin = Depends(get_current_admin)):
        if current_admin.role not in roles_hierarchy:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role"
            )

        if roles_hierarchy.index(current_admin.role) < roles_hierarchy.index(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires {required_role} role or higher"
            )

        return current_admin

    return role_checker


async def get_school_by_api_key(
    x_api_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> SchoolInstance:
    """School authenticated by its public API key; only active schools pass"""
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required"
        )

    school = await SchoolInstanceRepository(db).get_by_api_key(x_api_key)
    if not school or school.status != SchoolStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive API key"
        )
    return school


async def get_resolved_school(
    request: Request,
    x_api_key: Optional[str] = Header(None),
    x_school_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> SchoolInstance:
    """School resolved by API key, Host subdomain or X-School-ID, in that order"""
    school = await TenantResolver(db).resolve(
        api_key=x_api_key,
        host=request.headers.get("host"),
        school_id=x_school_id,
    )
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )
    return school


async def get_school_or_404(school_instance_id: int, db: AsyncSession) -> SchoolInstance:
    school = await SchoolInstanceRepository(db).get(school_instance_id)
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )
    return school
