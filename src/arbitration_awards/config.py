from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: str = "dev"
    log_level: str = "INFO"
    service_name: str = "arbitration-awards"

    database_path: str = "arbitration_awards.db"
    document_root: str = "award-documents"

    escalation_min_years_experience: int = 10

    signing_key_size: int = 2048
    certificate_validity_days: int = 365
    signing_organization: str = "Arbitration Awards"
    timestamp_authority_name: str = "Local Timestamp Authority (Development)"
    # RFC 3161 endpoint, e.g. https://freetsa.org/tsr; unset keeps local tokens only.
    tsa_url: str | None = None
    tsa_timeout_seconds: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
