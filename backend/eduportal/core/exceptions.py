"""
Domain exceptions for the EduPortal control plane.

Every error raised out of a service carries a machine-readable ``code`` and
the HTTP status the API layer answers with.
"""
from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base exception for control-plane operations"""

    status_code = 500

    def __init__(self, message: str, code: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or "PORTAL_ERROR"
        self.details = details or {}


class ValidationError(PortalError):
    """Raised when input is missing or malformed"""

    status_code = 400

    def __init__(self, message: str, field: str = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", **kwargs)
        self.field = field
        if field:
            self.details.setdefault("field", field)


class NotFoundError(PortalError):
    """Raised when a referenced record does not exist"""

    status_code = 404

    def __init__(self, resource: str, identifier: Any = None, **kwargs):
        message = f"{resource} not found"
        if identifier is not None:
            message += f": {identifier}"
        super().__init__(message, code="NOT_FOUND", **kwargs)
        self.resource = resource
        self.identifier = identifier


class InsufficientCreditsError(PortalError):
    """Raised when a usage debit exceeds the available balance"""

    status_code = 402

    def __init__(self, required: int, available: int = None, **kwargs):
        message = f"Insufficient credits. Required: {required}"
        if available is not None:
            message += f", Available: {available}"
        super().__init__(message, code="INSUFFICIENT_CREDITS", **kwargs)
        self.required = required
        self.available = available
        self.details.setdefault("required", required)
        if available is not None:
            self.details.setdefault("available", available)


class ConfigurationError(PortalError):
    """Raised when a school lacks the configuration an operation needs"""

    status_code = 400

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="CONFIGURATION_ERROR", **kwargs)


class ProvisioningError(PortalError):
    """Raised when a must-succeed onboarding step fails"""

    status_code = 500

    def __init__(self, message: str, step: str = None, **kwargs):
        super().__init__(message, code="PROVISIONING_FAILED", **kwargs)
        self.step = step
        if step:
            self.details.setdefault("step", step)


class PlanNotFoundError(NotFoundError):
    """Raised when a subscription plan id is unknown"""

    def __init__(self, plan_id: str, **kwargs):
        super().__init__("Subscription plan", plan_id, **kwargs)
        self.code = "PLAN_NOT_FOUND"
        self.plan_id = plan_id


class SchemaSetupError(PortalError):
    """One failed artifact during remote schema setup (collected, never raised out)"""

    def __init__(self, artifact: str, message: str, **kwargs):
        super().__init__(f"{artifact}: {message}", code="SCHEMA_SETUP_ERROR", **kwargs)
        self.artifact = artifact
