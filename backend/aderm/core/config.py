# aderm/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "ADERM"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "http://localhost:3000"

    # Access policy
    ALLOWED_EMAIL_DOMAINS: str = "ecobank.com"
    HR_DEPARTMENT: str = "Human Resources"

    # OTP / sessions
    OTP_TTL_MINUTES: int = 10
    SESSION_TTL_MINUTES: int = 60

    # JWT Authentication
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # AWS Configuration
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "eu-west-1"

    # Key-value store
    KV_BACKEND: str = "memory"  # memory | dynamodb
    DYNAMODB_TABLE_NAME: str = "aderm-kv"

    # Blob storage
    STORAGE_PROVIDER: str = "dev"  # dev | s3
    S3_BUCKET_NAME: str = "aderm-documents"
    SIGNED_URL_EXPIRES_SECONDS: int = 3600
    MAX_UPLOAD_SIZE: int = 52428800  # 50MB in bytes

    # Email delivery
    EMAIL_PROVIDER: str = "dev"  # dev | resend
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "ADERM Team <noreply@aderm.local>"

    # Archival relay (SharePoint via Power Automate)
    ARCHIVE_PROVIDER: str = "dev"  # dev | power_automate | disabled
    ARCHIVE_FLOW_URL: str = ""
    ARCHIVE_SHARED_SECRET: str = ""

    # Outbound HTTP
    OUTBOUND_TIMEOUT_SECONDS: float = 15.0

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    @field_validator("KV_BACKEND", "STORAGE_PROVIDER", "EMAIL_PROVIDER", "ARCHIVE_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def allowed_email_domains_list(self) -> List[str]:
        """
        Parse comma-separated domains into normalized lowercase hostnames.
        Example env:
          ALLOWED_EMAIL_DOMAINS=ecobank.com,@subsidiary.ecobank.com
        """
        out: List[str] = []
        for item in (self.ALLOWED_EMAIL_DOMAINS or "").split(","):
            host = item.strip().lower().lstrip("@")
            if host and host not in out:
                out.append(host)
        return out


def get_settings() -> Settings:
    return Settings()
