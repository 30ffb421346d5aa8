from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "GSOS Access Control"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    # Audit store
    audit_store: str = "memory"  # memory | database
    database_url: str = "sqlite:///./gsos_audit.db"

    # Redis (shared rate limit store)
    redis_url: str = "redis://localhost:6379/0"

    # Audit
    audit_retention_days: int = 2555  # 7 years
    audit_sync_classifications: str = "restricted,confidential"
    redacted_resource_placeholder: str = "[REDACTED_STUDENT_RESOURCE]"

    @property
    def audit_sync_classifications_list(self) -> list[str]:
        return [
            value.strip().lower()
            for value in self.audit_sync_classifications.split(",")
            if value.strip()
        ]

    # Rate Limiting
    rate_limit_enabled: bool = True
    rate_limit_backend: str = "memory"  # memory | redis
    rate_limit_api: int = 100  # requests per window
    rate_limit_api_window_ms: int = 60 * 1000
    rate_limit_login: int = 5  # login attempts
    rate_limit_login_window_ms: int = 15 * 60 * 1000
    rate_limit_sweep_interval_ms: int = 5 * 60 * 1000

    # Request validation
    request_validation_enabled: bool = True
    max_request_size_bytes: int = 10 * 1024 * 1024  # 10MB

    # HTTP security headers
    hsts_max_age: int = 31536000  # 1 year
    csp_report_uri: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
