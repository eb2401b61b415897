# backend/eduportal/core/config.py
from typing import List, Optional
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import validator, ConfigDict

# Locate the .env file relative to the project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=str(ENV_FILE), extra="ignore")

    # Application
    PROJECT_NAME: str = "EduPortal"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Tenancy
    BASE_DOMAIN: str = "eduportal.local"
    RESERVED_SUBDOMAINS: List[str] = ["www", "api", "admin", "portal", "app", "mail"]

    # Remote store (hosted Postgres + storage per school)
    REMOTE_STORE_DOMAIN: str = "supabase.co"
    REMOTE_STORE_TIMEOUT_SECONDS: float = 30.0

    # Trials and credits
    TRIAL_DAYS: int = 30
    ONBOARDING_TRIAL_DAYS: int = 14
    TRIAL_CREDITS: int = 1000

    # Billing
    BILLING_CURRENCY: str = "BDT"
    BILLING_PERIOD_DAYS: int = 30
    INVOICE_DUE_DAYS: int = 7
    RENEWAL_LOOKAHEAD_DAYS: int = 3

    # Email
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: str = "noreply@eduportal.local"
    SUPPORT_EMAIL: str = "support@eduportal.local"


settings = Settings()
