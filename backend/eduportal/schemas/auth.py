# backend/eduportal/schemas/auth.py
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from eduportal.schemas.common import ORMModel, RequestModel


class LoginRequest(RequestModel):
    email: EmailStr
    password: str


class AdminSetupRequest(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None


class Admin(ORMModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    is_active: bool
    last_login: Optional[datetime] = None


class Token(ORMModel):
    token: str
    token_type: str = "bearer"
    admin: Admin
