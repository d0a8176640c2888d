"""Application configuration using Pydantic Settings.

Configuration is read once at startup from a TOML document and is read-only
for the lifetime of the process:
- The file path comes from the CLI, RELAYGUARD_CONFIG_FILE, or the default
- RELAYGUARD_* environment variables override file values
  (nested sections use "__", e.g. RELAYGUARD_LOG__LEVEL=DEBUG)
- RELAYGUARD_ENV selects an optional .env.{environment} file to preload
"""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from relayguard.core.errors import ConfigError

RELAYGUARD_ENV = os.getenv("RELAYGUARD_ENV", "production")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_CONFIG_PATH = Path("/etc/relayguard/config.toml")

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(RELAYGUARD_ENV, ".env.production")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (deployments usually inject env vars directly)
if _env_path.is_file():
    from dotenv import load_dotenv
    load_dotenv(_env_path, override=False)


class FilterMode(str, Enum):
    """How membership in a lookup table is interpreted."""

    BLACKLIST = "blacklist"
    WHITELIST = "whitelist"


class DataSourceMode(str, Enum):
    """Which identity source backend is used for the process lifetime."""

    STORE = "store"
    SNAPSHOT = "snapshot-file"


class ErrorPolicy(str, Enum):
    """What the relay is told when a data source lookup fails."""

    REJECT = "reject"
    ACCEPT = "accept"
    SKIP = "skip"


# Names used by older configuration files
_LEGACY_DATASOURCE_NAMES = {"db": "store", "json": "snapshot-file"}


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ListFilterSettings(_FrozenModel):
    """Identity or category filter."""

    enabled: bool = Field(False, description="Run this filter for every event")
    mode: FilterMode = Field(
        FilterMode.BLACKLIST,
        description="blacklist denies listed values, whitelist allows only listed values",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _lowercase_mode(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class ContentFilterSettings(_FrozenModel):
    """Blacklisted-word filter over the event text."""

    enabled: bool = Field(False, description="Run the content filter")
    categories: list[int] = Field(
        default_factory=list,
        description="Only check events of these categories (empty means all categories)",
    )

    @field_validator("categories")
    @classmethod
    def _non_negative(cls, value: list[int]) -> list[int]:
        if any(category < 0 for category in value):
            raise ValueError("categories must be unsigned integers")
        return value


class RateLimitSettings(_FrozenModel):
    """Fixed-window rate limit per identity."""

    enabled: bool = Field(False, description="Enable per-identity rate limiting")
    max_events: int = Field(10, ge=0, description="Events allowed per window (0 disables)")
    window_seconds: int = Field(60, ge=1, description="Window size in seconds")
    sweep_interval_seconds: int = Field(
        300,
        ge=0,
        description="How often expired windows are dropped from memory (0 disables)",
    )


class FiltersSettings(_FrozenModel):
    """Filter pipeline configuration shared by all evaluations."""

    identity: ListFilterSettings = Field(default_factory=ListFilterSettings)
    category: ListFilterSettings = Field(default_factory=ListFilterSettings)
    content: ContentFilterSettings = Field(default_factory=ContentFilterSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)


class StoreSettings(_FrozenModel):
    """SQLite store connection parameters."""

    path: str | None = Field(None, description="Path to the SQLite database file")
    timeout_seconds: float = Field(
        5.0,
        gt=0,
        description="How long a lookup waits on a locked database",
    )


class SnapshotSettings(_FrozenModel):
    """Static JSON snapshot parameters."""

    file_path: str | None = Field(None, description="Path to the snapshot JSON file")


class LogSettings(_FrozenModel):
    """Logging configuration. Logs never go to stdout."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stderr", description="'stderr' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output is 'file'")
    max_bytes: int = Field(0, ge=0, description="Rotate the log file at this size (0 disables)")
    backup_count: int = Field(3, ge=0, description="Rotated files to keep")


class Settings(BaseSettings):
    """Main application settings container.

    Raises validation errors on startup if required settings are missing.
    """

    datasource_mode: DataSourceMode = Field(
        DataSourceMode.SNAPSHOT,
        description="'store' (SQLite lookups) or 'snapshot-file' (static JSON)",
    )
    on_error: ErrorPolicy = Field(
        ErrorPolicy.REJECT,
        description="Response when a lookup fails: reject, accept or skip",
    )
    workers: int = Field(1, ge=1, description="Threads evaluating events concurrently")
    filters: FiltersSettings
    store: StoreSettings = Field(default_factory=StoreSettings)
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        env_prefix="RELAYGUARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over the file document passed as init kwargs.
        return env_settings, init_settings, file_secret_settings

    @field_validator("datasource_mode", mode="before")
    @classmethod
    def _normalize_datasource_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.lower()
            return _LEGACY_DATASOURCE_NAMES.get(value, value)
        return value

    @field_validator("on_error", mode="before")
    @classmethod
    def _normalize_on_error(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_datasource_parameters(self) -> "Settings":
        if self.datasource_mode is DataSourceMode.STORE and not self.store.path:
            raise ValueError("store.path is required when datasource_mode is 'store'")
        if self.datasource_mode is DataSourceMode.SNAPSHOT and not self.snapshot.file_path:
            raise ValueError(
                "snapshot.file_path is required when datasource_mode is 'snapshot-file'"
            )
        return self


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Pick the configuration file: explicit path, env override, then default."""

    if config_path:
        return Path(config_path)
    env_path = os.getenv("RELAYGUARD_CONFIG_FILE")
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load and validate the TOML configuration file.

    Args:
        config_path: Optional explicit path; see resolve_config_path().

    Returns:
        Settings: Validated, read-only settings.

    Raises:
        ConfigError: If the file is unreadable, not valid TOML, or fails validation.
    """

    path = resolve_config_path(config_path)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            code="config_unreadable",
            message=f"Error reading configuration file {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    try:
        document = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            code="config_malformed",
            message=f"Error parsing configuration file {path}: {exc}",
            details={"path": str(path)},
        ) from exc

    try:
        return Settings(**document)
    except ValidationError as exc:
        raise ConfigError(
            code="config_invalid",
            message=f"Invalid configuration in {path}: {exc.error_count()} error(s)",
            details={
                "path": str(path),
                "errors": exc.errors(include_url=False, include_input=False),
            },
        ) from exc
