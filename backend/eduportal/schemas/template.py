# backend/eduportal/schemas/template.py
from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import Field

from eduportal.schemas.common import ORMModel, RequestModel


class TemplateCreate(RequestModel):
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    template: Dict[str, Any] = Field(default_factory=dict)
    required_credits: int = Field(1, ge=0)
    is_global: bool = True


class Template(ORMModel):
    id: int
    name: str
    type: str
    category: Optional[str] = None
    description: Optional[str] = None
    required_credits: int
    is_global: bool
    is_active: bool
    version: str
    created_at: datetime


class TemplateGrantRequest(RequestModel):
    custom_config: Optional[Dict[str, Any]] = None


class TemplateGrant(ORMModel):
    id: int
    school_instance_id: int
    template_id: int
    is_enabled: bool
    custom_config: Optional[Dict[str, Any]] = None
    granted_at: datetime
    granted_by: Optional[int] = None
