# backend/eduportal/schemas/school.py
from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import EmailStr, Field

from eduportal.schemas.common import ORMModel, RequestModel


class SchoolCreate(RequestModel):
    name: str = Field(..., min_length=1)
    contact_email: EmailStr
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    custom_domain: Optional[str] = None
    plan_type: str = "basic"
    max_students: Optional[int] = Field(None, ge=0)
    max_teachers: Optional[int] = Field(None, ge=0)
    max_documents: Optional[int] = Field(None, ge=0)
    remote_url: Optional[str] = None
    remote_project_id: Optional[str] = None
    features: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None


class SchoolUpdate(RequestModel):
    """Partial update; credential fields are passed through so the registry can reject them"""
    name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    custom_domain: Optional[str] = None
    plan_type: Optional[str] = None
    status: Optional[str] = None
    max_students: Optional[int] = Field(None, ge=0)
    max_teachers: Optional[int] = Field(None, ge=0)
    max_documents: Optional[int] = Field(None, ge=0)
    used_documents: Optional[int] = Field(None, ge=0)
    trial_expires_at: Optional[datetime] = None
    features: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    api_key: Optional[str] = None
    secret_key: Optional[str] = None
    school_id: Optional[str] = None


class School(ORMModel):
    id: int
    school_id: str
    name: str
    subdomain: str
    custom_domain: Optional[str] = None
    contact_email: str
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    plan_type: str
    status: str
    trial_expires_at: Optional[datetime] = None
    remote_project_id: Optional[str] = None
    remote_url: Optional[str] = None
    api_key: str
    max_students: int
    max_teachers: int
    max_documents: int
    used_documents: int
    features: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra_metadata")
    created_at: datetime
    updated_at: datetime


class SchoolWithSecret(School):
    secret_key: str


class SchoolPublicProfile(ORMModel):
    school_id: str
    name: str
    subdomain: str
    custom_domain: Optional[str] = None
    plan_type: str
    status: str
