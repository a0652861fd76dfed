"""
Application configuration loaded from environment variables.

All configuration is validated at startup to fail fast on misconfiguration.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with validation.

    All settings are loaded from environment variables with the same name.
    Use .env file for local development.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./domainwatch.db",
        description="SQLAlchemy async connection string"
    )
    use_database: bool = Field(
        default=True,
        description="Persist through SQLAlchemy; False keeps records in memory"
    )

    # Auth (tokens are issued by the account service)
    jwt_secret: str = Field(
        default="change-me-in-production",
        description="Secret used to verify caller bearer tokens"
    )
    jwt_algorithm: str = Field(default="HS256")

    # WHOIS lookup
    whois_api_url: str = Field(
        default="https://api.api-ninjas.com/v1/whois",
        description="WHOIS lookup endpoint"
    )
    whois_api_key: str | None = Field(
        default=None,
        description="API key for the WHOIS service"
    )

    # Payment gateway
    gateway_api_url: str = Field(default="https://api.razorpay.com/v1")
    gateway_key_id: str = Field(default="rzp_test_key")
    gateway_key_secret: str = Field(default="rzp_test_secret")
    renewal_price: int = Field(
        default=1000,
        gt=0,
        description="Renewal price in minor currency units"
    )
    renewal_currency: str = Field(default="INR", min_length=3, max_length=3)

    # Email
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_sender: str = Field(default="noreply@domainwatch.local")

    # External calls
    external_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for WHOIS, gateway and email calls"
    )

    # Scheduled jobs
    enable_scheduler: bool = Field(
        default=True,
        description="Run the reconciliation and reminder jobs in-process"
    )
    sweep_interval_seconds: float = Field(default=3600, gt=0)
    reminder_interval_seconds: float = Field(default=86400, gt=0)
    reminder_days: int = Field(
        default=7,
        ge=0,
        le=30,
        description="Send the expiry reminder email this many days ahead"
    )
    record_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Sweep gives up on a record after waiting this long for its lock or read"
    )

    # Server
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed error messages"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once at startup and cached for subsequent calls.
    This ensures consistent configuration across the application lifecycle.
    """
    return Settings()
