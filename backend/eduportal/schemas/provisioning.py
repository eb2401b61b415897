# backend/eduportal/schemas/provisioning.py
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import AliasChoices, EmailStr, Field

from eduportal.schemas.common import ORMModel, RequestModel
from eduportal.schemas.subscription import Subscription


class OnboardSchoolRequest(RequestModel):
    school_name: str = Field(..., min_length=1)
    contact_email: EmailStr
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    principal_name: Optional[str] = None
    principal_email: Optional[EmailStr] = None
    principal_phone: Optional[str] = None
    plan_id: str = "basic"
    remote_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("remote_url", "remoteUrl", "supabaseUrl")
    )
    remote_project_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("remote_project_id", "remoteProjectId", "supabaseProjectId")
    )
    remote_anon_key: Optional[str] = None
    remote_service_key: Optional[str] = None


class RemoteSetupRequest(RequestModel):
    remote_url: str = Field(..., validation_alias=AliasChoices("remote_url", "remoteUrl", "supabaseUrl"))
    remote_project_id: str = Field(
        ..., validation_alias=AliasChoices("remote_project_id", "remoteProjectId", "supabaseProjectId")
    )
    remote_anon_key: Optional[str] = None
    remote_service_key: Optional[str] = None
    database_url: Optional[str] = None


class SchemaSetup(ORMModel):
    success: bool
    tables_created: List[str]
    buckets_created: List[str]
    policies_created: List[str]
    errors: List[str]


class StepReport(ORMModel):
    name: str
    required: bool
    status: str
    detail: Optional[str] = None


class AdminIdentity(ORMModel):
    user_id: Optional[Any] = None
    email: str
    temp_password: str


class OnboardingResponse(ORMModel):
    success: bool
    school_id: str
    subdomain: str
    api_key: str
    secret_key: str
    subscription: Subscription
    remote_setup: Optional[SchemaSetup] = None
    admin_user: Optional[AdminIdentity] = None
    access_url: str
    trial_expires_at: Optional[datetime] = None
    steps: List[StepReport]


class SchoolStatusResponse(ORMModel):
    school_id: str
    name: str
    status: str
    plan_type: str
    trial_expires_at: Optional[datetime] = None
    remote_status: str
    subscription: Optional[Subscription] = None
    credits: Optional[Dict[str, int]] = None
