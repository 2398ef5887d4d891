# backend/alma_studio/core/config.py
import logging
import os
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BOOKING_CODE_PREFIX, PACKAGE_VALIDITY_DAYS

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./alma_studio.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")

    # Booking codes
    booking_code_prefix: str = Field(
        default=BOOKING_CODE_PREFIX,
        description="Prefix for human-readable booking codes (receipts rely on it)",
    )

    # Session generation horizons
    session_generation_limit_days: int = Field(
        default=90,
        ge=1,
        description="Default number of days ahead to generate bookable sessions",
    )
    admin_calendar_limit_days: int = Field(
        default=60,
        ge=1,
        description="Horizon used by the admin calendar preview",
    )
    package_validity_days: int = Field(
        default=PACKAGE_VALIDITY_DAYS,
        ge=1,
        description="Days a class package stays valid after its first class",
    )
    default_class_capacity: int = Field(
        default=8,
        ge=1,
        description="Fallback capacity when neither a rule nor an override provides one",
    )

    # Admission policy
    enforce_capacity_on_admission: bool = Field(
        default=True,
        description="Re-check live occupancy under a session lock before committing a booking",
    )
    capacity_counts_pending_bookings: bool = Field(
        default=False,
        description="Count unpaid bookings toward capacity when deciding if a session is full",
    )

    # Session locks
    redis_url: Optional[str] = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis URL for cross-process session locks (in-process locks when unset)",
    )
    lock_namespace: str = Field(default="alma", description="Redis key namespace for locks")
    session_lock_ttl_s: int = Field(default=30, ge=1)
    session_lock_wait_s: float = Field(default=5.0, ge=0)

    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("booking_code_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("booking_code_prefix must not be empty")
        return cleaned

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
logger.info(
    "[CONFIG] environment=%s database=%s capacity_enforced=%s redis_locks=%s",
    settings.environment,
    "sqlite" if settings.is_sqlite else "external",
    settings.enforce_capacity_on_admission,
    bool(settings.redis_url),
)
