"""Configuration management using Pydantic Settings.

Every knob of the ingestion pipeline is read from ``REGSHO_``-prefixed
environment variables (or a ``.env`` file).  Components never read
settings themselves; the service and CLI composition root does.

Examples:
    >>> from regsho_spine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.retention_days
    30

Invalid values surface from ``get_settings()`` as ``ConfigError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from regsho_spine.core.errors import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RegShoSettings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REGSHO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Path("data/regsho.db")

    # ── Remote source ────────────────────────────────────────────
    source_base_url: str = "https://cdn.finra.org/equity/regsho/daily"
    source_file_prefix: str = "CNMSshvol"
    request_timeout: float = Field(default=120.0, gt=0)
    max_response_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    # ── Ingestion ────────────────────────────────────────────────
    reference_timezone: str = "America/New_York"
    backfill_delay: float = Field(default=1.0, ge=0)

    # ── Queries / retention ──────────────────────────────────────
    top_ratio_min_volume: int = Field(default=0, ge=0)
    retention_days: int = Field(default=30, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    @field_validator("source_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("reference_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone: {value!r}") from e
        return value


_settings: RegShoSettings | None = None


def get_settings() -> RegShoSettings:
    """Get or create settings instance.

    Raises:
        ConfigError: if the environment holds an invalid value
    """
    global _settings
    if _settings is None:
        try:
            _settings = RegShoSettings()
        except ValidationError as e:
            raise ConfigError(f"Invalid REGSHO_ configuration: {e}", cause=e) from e
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
