"""Configuration management for Stagewatch MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class StagewatchSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    login_url: str = Field(default="", validation_alias="STAGEWATCH_LOGIN_URL")
    listing_url: str = Field(default="", validation_alias="STAGEWATCH_LISTING_URL")
    username: str = Field(default="", validation_alias="STAGEWATCH_USERNAME")
    password: SecretStr = Field(default=SecretStr(""), validation_alias="STAGEWATCH_PASSWORD")
    session_timeout_minutes: int = Field(
        default=30, validation_alias="STAGEWATCH_SESSION_TIMEOUT_MINUTES"
    )
    poll_interval_seconds: int = Field(
        default=10, validation_alias="STAGEWATCH_POLL_INTERVAL_SECONDS"
    )
    monitor_enabled: bool = Field(default=False, validation_alias="STAGEWATCH_MONITOR_ENABLED")
    db_path: Path = Field(default=Path("./stagewatch.db"), validation_alias="STAGEWATCH_DB_PATH")
    diagnostics_path: Path = Field(
        default=Path("./logs"), validation_alias="STAGEWATCH_DIAGNOSTICS_PATH"
    )
    headless: bool = Field(default=True, validation_alias="STAGEWATCH_HEADLESS")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, validation_alias="STAGEWATCH_USER_AGENT")
    navigation_timeout_ms: int = Field(
        default=30_000, validation_alias="STAGEWATCH_NAVIGATION_TIMEOUT_MS"
    )
    field_timeout_ms: int = Field(default=10_000, validation_alias="STAGEWATCH_FIELD_TIMEOUT_MS")
    table_timeout_ms: int = Field(default=30_000, validation_alias="STAGEWATCH_TABLE_TIMEOUT_MS")
    log_level: str = Field(default="INFO", validation_alias="STAGEWATCH_LOG_LEVEL")
    log_file: Path | None = Field(default=None, validation_alias="STAGEWATCH_LOG_FILE")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "STAGEWATCH_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("session_timeout_minutes", "poll_interval_seconds")
    @classmethod
    def _validate_positive_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Session timeout and poll interval must be >= 1")
        return value

    @field_validator("navigation_timeout_ms", "field_timeout_ms", "table_timeout_ms")
    @classmethod
    def _validate_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Browser timeouts must be positive milliseconds")
        return value

    @field_validator("log_file", mode="before")
    @classmethod
    def _blank_log_file(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    def validate_console(self) -> list[str]:
        """Return a list of missing console settings."""

        issues = []
        if not self.login_url:
            issues.append("Login URL not set (STAGEWATCH_LOGIN_URL)")
        if not self.listing_url:
            issues.append("Listing URL not set (STAGEWATCH_LISTING_URL)")
        if not self.username:
            issues.append("Username not set (STAGEWATCH_USERNAME)")
        if not self.password.get_secret_value():
            issues.append("Password not set (STAGEWATCH_PASSWORD)")
        return issues


@lru_cache(maxsize=1)
def get_settings() -> StagewatchSettings:
    """Return cached settings instance."""

    settings = StagewatchSettings()
    settings.db_path = settings.db_path.expanduser().resolve()
    settings.diagnostics_path = settings.diagnostics_path.expanduser().resolve()
    return settings


__all__ = ["DEFAULT_USER_AGENT", "StagewatchSettings", "get_settings"]
