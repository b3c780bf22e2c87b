"""Application settings loaded from environment variables."""

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckTier(str, Enum):
    """Depth of screening requested from a vendor."""

    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class VendorEndpoint(BaseModel):
    """Connection details for one screening vendor."""

    name: str
    base_url: str
    api_key: SecretStr | None = None
    portal_url: str | None = None
    timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_wait_seconds: float = 2.0

    @property
    def configured(self) -> bool:
        """Whether credentials are present for this vendor."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    COMPANY_NAME: str = "GearGrab"
    ADMIN_API_KEY: SecretStr | None = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./geargrab.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_AUTO_CREATE: bool = False

    # Screening vendors
    CHECKR_API_KEY: SecretStr | None = None
    CHECKR_BASE_URL: str = "https://api.checkr.com/v1"
    CHECKR_PORTAL_URL: str = "https://dashboard.checkr.com/reports"
    IPROSPECT_API_KEY: SecretStr | None = None
    IPROSPECT_BASE_URL: str = "https://api.iprospectcheck.com/v1"
    IPROSPECT_PORTAL_URL: str = "https://portal.iprospectcheck.com/reports"
    CHECKR_WEBHOOK_SECRET: SecretStr | None = None
    IPROSPECT_WEBHOOK_SECRET: SecretStr | None = None
    VENDOR_TIMEOUT_SECONDS: float = 30.0
    VENDOR_RETRY_ATTEMPTS: int = 3
    VENDOR_RETRY_WAIT_SECONDS: float = 2.0

    # Screening workflow
    SCREENING_DEFAULT_PROVIDER: str | None = None
    SCREENING_DEFAULT_TIER: CheckTier = CheckTier.BASIC
    SCREENING_POLL_INTERVAL_SECONDS: float = 30.0
    SCREENING_MAX_POLL_ATTEMPTS: int = 144

    # Compliance notices
    SENDGRID_API_KEY: SecretStr | None = None
    COMPLIANCE_FROM_EMAIL: str = "no-reply@geargrab.co"
    COMPLIANCE_FROM_NAME: str = "GearGrab Compliance"
    COMPLIANCE_CONTACT_EMAIL: str = "compliance@geargrab.co"

    @property
    def is_production(self) -> bool:
        """Whether the process runs in production."""
        return self.ENVIRONMENT == "production"

    def checkr_endpoint(self) -> VendorEndpoint:
        """Get connection details for Checkr."""
        return VendorEndpoint(
            name="checkr",
            base_url=self.CHECKR_BASE_URL,
            api_key=self.CHECKR_API_KEY,
            portal_url=self.CHECKR_PORTAL_URL,
            timeout_seconds=self.VENDOR_TIMEOUT_SECONDS,
            retry_attempts=self.VENDOR_RETRY_ATTEMPTS,
            retry_wait_seconds=self.VENDOR_RETRY_WAIT_SECONDS,
        )

    def iprospect_endpoint(self) -> VendorEndpoint:
        """Get connection details for iProspectCheck."""
        return VendorEndpoint(
            name="iprospect",
            base_url=self.IPROSPECT_BASE_URL,
            api_key=self.IPROSPECT_API_KEY,
            portal_url=self.IPROSPECT_PORTAL_URL,
            timeout_seconds=self.VENDOR_TIMEOUT_SECONDS,
            retry_attempts=self.VENDOR_RETRY_ATTEMPTS,
            retry_wait_seconds=self.VENDOR_RETRY_WAIT_SECONDS,
        )

    def webhook_secret(self, provider_name: str) -> SecretStr | None:
        """Get the signing secret for a vendor's webhooks, if configured."""
        secrets = {
            "checkr": self.CHECKR_WEBHOOK_SECRET,
            "iprospect": self.IPROSPECT_WEBHOOK_SECRET,
        }
        return secrets.get(provider_name)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
