# backend/eduportal/api/routes/auth.py
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.api.dependencies import get_current_admin, get_request_origin
from eduportal.core.audit_log import AuditAction, AuditLogger
from eduportal.core.constants import AdminRole
from eduportal.core.security import create_access_token, get_password_hash, verify_password
from eduportal.db.database import get_db
from eduportal.db.models.admin import PortalAdmin
from eduportal.db.repositories.admin_repository import AdminRepository
from eduportal.schemas.auth import Admin, AdminSetupRequest, LoginRequest, Token

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    request: LoginRequest,
    origin: dict = Depends(get_request_origin),
    db: AsyncSession = Depends(get_db)
):
    """Login portal admin"""
    admin_repo = AdminRepository(db)
    admin = await admin_repo.get_by_email(request.email)

    if not admin or not verify_password(request.password, admin.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account is inactive"
        )

    admin = await admin_repo.update(admin.id, {"last_login": datetime.utcnow()})
    await AuditLogger(db).log_event(
        AuditAction.ADMIN_LOGIN, "portal_admin", resource_id=admin.id, admin_id=admin.id, **origin
    )

    token = create_access_token({"sub": str(admin.id), "role": admin.role})
    return Token(token=token, admin=Admin.model_validate(admin))


@router.post("/setup", response_model=Admin, status_code=status.HTTP_201_CREATED)
async def setup(
    request: AdminSetupRequest,
    origin: dict = Depends(get_request_origin),
    db: AsyncSession = Depends(get_db)
):
    """Create the first super admin; refused once any admin exists"""
    admin_repo = AdminRepository(db)
    if await admin_repo.count() > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Portal already set up"
        )

    admin = await admin_repo.create({
        "email": request.email.lower(),
        "hashed_password": get_password_hash(request.password),
        "full_name": request.full_name,
        "role": AdminRole.SUPER_ADMIN.value,
        "is_active": True,
    })
    await AuditLogger(db).log_event(
        AuditAction.ADMIN_SETUP, "portal_admin", resource_id=admin.id, admin_id=admin.id, **origin
    )
    return admin


@router.get("/me", response_model=Admin)
async def me(current_admin: PortalAdmin = Depends(get_current_admin)):
    return current_admin
