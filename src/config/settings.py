# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for tenant connection, paging, polling and
logging settings. Every field can be set with an ``ISC_`` prefixed
environment variable (e.g. ``ISC_TENANT=acme``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_prefix="ISC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Tenant connection ===
    tenant: str = ""
    tenant_display_name: str = ""
    base_url: str = ""
    access_token: str = ""
    http_timeout_s: float = 30.0

    # === Paging ===
    page_size: int = 250
    default_filters: str = "*"

    # === Job polling ===
    poll_interval_s: float = 1.0
    poll_timeout_s: float = 3600.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("page_size must be > 0")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:  # noqa: N805
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.poll_interval_s <= 0:
            errors.append("POLL_INTERVAL_S must be > 0")

        if self.poll_timeout_s < self.poll_interval_s:
            errors.append("POLL_TIMEOUT_S must be >= POLL_INTERVAL_S")

        if self.http_timeout_s <= 0:
            errors.append("HTTP_TIMEOUT_S must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-tenant config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
