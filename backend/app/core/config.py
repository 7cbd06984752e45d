from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SITE_KEY = "6LfTUuorAAAAAEYi8wmrchk8zaxcasstljmj-ZZT"


class Settings(BaseSettings):
    """Gateway configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    app_api_key: str = Field(alias="APP_API_KEY", min_length=1, repr=False)
    recaptcha_api_key: str = Field(alias="GOOGLE_RECAPTCHA_API_KEY", min_length=1, repr=False)
    recaptcha_project_id: str = Field(alias="GOOGLE_RECAPTCHA_PROJECT_ID", min_length=1)
    recaptcha_site_key: str | None = Field(default=None, alias="GOOGLE_RECAPTCHA_SITE_KEY")
    recaptcha_base_url: str = Field(
        default="https://recaptchaenterprise.googleapis.com/v1",
        alias="RECAPTCHA_BASE_URL",
    )
    recaptcha_timeout_seconds: float = Field(default=10.0, gt=0, alias="RECAPTCHA_TIMEOUT_SECONDS")

    # Admission control
    rate_limit_requests: int = Field(default=100, gt=0, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, gt=0, alias="RATE_LIMIT_WINDOW_SECONDS")
    trust_forwarded_for: bool = Field(default=False, alias="TRUST_FORWARDED_FOR")

    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Path | None = Field(default=None, alias="LOG_FILE")
    port: int = Field(default=8080, alias="PORT")

    version: str = Field(default_factory=lambda: Settings._load_version())

    @staticmethod
    def _load_version() -> str:
        version_env = os.getenv("VERSION")
        if version_env:
            return version_env
        version_file = Path("VERSION")
        if version_file.exists():
            return version_file.read_text(encoding="utf-8").strip()
        return "1.0.0"

    @field_validator("app_api_key", "recaptcha_api_key", "recaptcha_project_id", mode="before")
    @classmethod
    def _strip_required(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("recaptcha_site_key", mode="before")
    @classmethod
    def _blank_site_key(cls, value: str | None) -> str | None:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: str | None) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR"}
        if not value:
            return "INFO"
        normalized = str(value).upper()
        if normalized not in allowed:
            return "INFO"
        if normalized == "WARN":
            return "WARNING"
        return normalized

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Path | str | None) -> Path | None:
        if value is None or value == "":
            return None
        path = Path(value)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def site_key(self) -> str:
        return self.recaptcha_site_key or DEFAULT_SITE_KEY

    @property
    def recaptcha_endpoint(self) -> str:
        base = self.recaptcha_base_url.rstrip("/")
        return f"{base}/projects/{self.recaptcha_project_id}/assessments"

    @property
    def allowed_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(",")]
        return [origin for origin in origins if origin] or ["*"]


@lru_cache
def get_settings() -> Settings:
    """Cached settings accessor."""

    return Settings()
