"""Configuration loading and validation for the integration core.

The file is TOML, one table per section. Each section is validated on its
own: a bad value only resets the section it lives in.
"""

from __future__ import annotations

from copy import deepcopy
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "bizsync"
CONFIG_PATH = CONFIG_DIR / "config.toml"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class LoggingConfig(BaseModel):
    """Log level, output format and optional log file."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/bizsync/bizsync.log"

    @field_validator("level", "log_file_path", mode="before")
    @classmethod
    def _strip_text(cls, value: Any, info: ValidationInfo) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"logging.{info.field_name} must be a non-empty string.")
        return value.strip()

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unsupported log level {level!r}.")
        return level


class ApiConfig(BaseModel):
    """REST endpoint the core issues persistence and rollback calls against."""

    base_url: str = "http://localhost:5000"
    timeout: float = Field(default=30.0, gt=0, le=600)

    @field_validator("base_url", mode="before")
    @classmethod
    def _http_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("api.base_url must be a string.")
        url = value.strip().rstrip("/")
        parsed = urlparse(url)
        if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
            raise ValueError("api.base_url must be an http(s) URL with a hostname.")
        return url


class BusConfig(BaseModel):
    max_listeners: int = Field(default=50, ge=1, le=10_000)
    max_emit_depth: int = Field(default=8, ge=1, le=256)


class RetryConfig(BaseModel):
    """Defaults for retried integration operations."""

    max_retries: int = Field(default=3, ge=1, le=100)
    initial_delay_seconds: float = Field(default=1.0, ge=0, le=3600)
    # 0 disables the per-attempt timeout.
    attempt_timeout_seconds: float = Field(default=0.0, ge=0, le=3600)


class ErrorsConfig(BaseModel):
    """Sizing of the in-memory error log."""

    log_capacity: int = Field(default=100, ge=1, le=100_000)
    trim_count: int = Field(default=20, ge=1, le=100_000)

    @model_validator(mode="after")
    def _trim_within_capacity(self) -> ErrorsConfig:
        if self.trim_count > self.log_capacity:
            raise ValueError("errors.trim_count must not exceed errors.log_capacity.")
        return self


class NotificationsConfig(BaseModel):
    persist: bool = True


class Config(BaseModel):
    """Every config section with its defaults."""

    logging: LoggingConfig = LoggingConfig()
    api: ApiConfig = ApiConfig()
    bus: BusConfig = BusConfig()
    retry: RetryConfig = RetryConfig()
    errors: ErrorsConfig = ErrorsConfig()
    notifications: NotificationsConfig = NotificationsConfig()


SECTIONS: dict[str, type[BaseModel]] = {
    name: field.annotation for name, field in Config.model_fields.items()
}

DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create the config directory if needed and return it."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning(
            "config.dir.unavailable",
            extra={"event": "config.dir.unavailable", "path": str(directory), "error": str(exc)},
        )
    return directory


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as exc:
        LOGGER.warning(
            "config.parse.failed",
            extra={"event": "config.parse.failed", "path": str(path), "error": str(exc)},
        )
        return {}
    return data


def _validate_section(name: str, raw: Any) -> dict[str, Any]:
    """Validate one section overlaid on its defaults; defaults if invalid."""
    defaults = DEFAULT_CONFIG[name]
    if raw is None:
        return deepcopy(defaults)
    if not isinstance(raw, dict):
        LOGGER.warning(
            "config.section.invalid",
            extra={"event": "config.section.invalid", "section": name, "error": "not a table"},
        )
        return deepcopy(defaults)
    try:
        return SECTIONS[name].model_validate({**defaults, **raw}).model_dump()
    except ValidationError as exc:
        LOGGER.warning(
            "config.section.invalid",
            extra={"event": "config.section.invalid", "section": name, "error": str(exc)},
        )
        return deepcopy(defaults)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate [{name}]: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load the TOML config and validate it section by section.

    Unknown sections are ignored. The optional ``config_path`` argument is
    intended for tests and tooling.
    """
    raw = _read_toml(config_path or CONFIG_PATH)
    return {name: _validate_section(name, raw.get(name)) for name in SECTIONS}
