"""
Application Configuration Module.

Pydantic Settings v2 - loads from .env and environment variables.

Covers:
- Application identity
- Logging format/level
- Pagination bounds shared by every paginated endpoint
- Duplicate-detection recency window
- Audit aggregation timeouts and export limits
- Regulatory retention policy
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ========================================================================
    # APPLICATION
    # ========================================================================

    app_name: str = "Compliance Ledger"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # ========================================================================
    # API
    # ========================================================================

    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and console renderers are supported."""
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    # ========================================================================
    # PAGINATION
    # ========================================================================

    default_page_size: int = Field(default=50, ge=1, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, ge=1, alias="MAX_PAGE_SIZE")

    # ========================================================================
    # DECISION LEDGER
    # ========================================================================

    duplicate_window_minutes: int = Field(
        default=60,
        ge=1,
        alias="DUPLICATE_WINDOW_MINUTES",
        description="Recency window for idempotent decision submission",
    )

    # ========================================================================
    # ENTERPRISE AUDIT
    # ========================================================================

    audit_source_timeout_seconds: Optional[float] = Field(
        default=30.0,
        alias="AUDIT_SOURCE_TIMEOUT_SECONDS",
        description="Per-source read timeout; None disables the timeout",
    )
    export_max_records: int = Field(default=10000, ge=1, alias="EXPORT_MAX_RECORDS")
    retention_years: int = Field(default=7, ge=1, alias="RETENTION_YEARS")
    regulatory_framework: str = Field(default="MICA", alias="REGULATORY_FRAMEWORK")
    source_system: str = Field(default="compliance-ledger", alias="SOURCE_SYSTEM")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
