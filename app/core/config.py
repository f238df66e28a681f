from functools import lru_cache
from typing import Literal

from apscheduler.triggers.cron import CronTrigger
from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    project_name: str = "Credential Status Sync"
    environment: Literal["local", "dev", "staging", "prod", "test"] = Field("local", alias="ENVIRONMENT")
    api_v1_prefix: str = "/api/v1"

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_pool_pre_ping: bool = Field(True, alias="DATABASE_POOL_PRE_PING")

    # Reconciliation job
    reconciliation_job_name: str = Field("credential-status-sync", alias="RECONCILIATION_JOB_NAME")
    lookback_minutes: int = Field(120, ge=0, alias="VC_PROCESSING_LOOKBACK_MINUTES")
    cron_schedule: str = Field("0 */2 * * *", alias="VC_PROCESSING_CRON_SCHEDULE")
    scheduler_enabled: bool = Field(True, alias="RECONCILIATION_SCHEDULER_ENABLED")
    max_concurrency: int = Field(1, ge=1, alias="RECONCILIATION_MAX_CONCURRENCY")

    # Upstream analytics feed
    analytics_base_url: AnyHttpUrl = Field(
        "https://analytics.depwd.onest.dhiway.net", alias="ANALYTICS_BASE_URL"
    )
    analytics_timeout_seconds: float = Field(30.0, gt=0, alias="ANALYTICS_TIMEOUT_SECONDS")

    # Issuer adapters
    adapter_timeout_seconds: float = Field(10.0, gt=0, alias="ADAPTER_TIMEOUT_SECONDS")
    dhiway_record_url_template: str | None = Field(default=None, alias="DHIWAY_RECORD_URL_TEMPLATE")
    verification_service_url: AnyHttpUrl | None = Field(default=None, alias="VC_VERIFICATION_SERVICE_URL")
    verification_timeout_seconds: float = Field(8.0, gt=0, alias="VC_VERIFICATION_TIMEOUT_SECONDS")

    # Profile projection
    profile_refresh_url: AnyHttpUrl | None = Field(default=None, alias="PROFILE_REFRESH_URL")
    profile_refresh_timeout_seconds: float = Field(10.0, gt=0, alias="PROFILE_REFRESH_TIMEOUT_SECONDS")

    # Observability
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "text"] = Field("json", alias="LOG_FORMAT")

    @field_validator(
        "dhiway_record_url_template",
        "verification_service_url",
        "profile_refresh_url",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: str | None):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("cron_schedule")
    @classmethod
    def validate_cron_schedule(cls, value: str) -> str:
        try:
            CronTrigger.from_crontab(value)
        except ValueError as exc:
            raise ValueError(f"Invalid cron schedule {value!r}: {exc}") from exc
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
