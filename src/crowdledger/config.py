"""Configuration management for crowdledger.

This module defines the configuration schema using Pydantic settings,
supporting TOML files, environment variables, and programmatic overrides.

Configuration loading priority (highest to lowest):
1. Programmatic overrides (passed to CrowdledgerConfig constructor)
2. Environment variables (CROWDLEDGER_* prefix)
3. TOML configuration file
4. Default values defined in this module

Example TOML configuration:
    [ledger]
    min_reserve = 1
    strict_budget = true

    [database]
    url = "sqlite+aiosqlite:///ledger.db"

Example environment variable override:
    CROWDLEDGER_LEDGER__STRICT_BUDGET=true
    CROWDLEDGER_DATABASE__URL="sqlite+aiosqlite:///other.db"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomli
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crowdledger.domain.models import U128_MAX


class LedgerConfig(BaseSettings):
    """Project ledger behavior.

    Attributes:
        min_reserve: Balance an instance must retain; subtracted from the
            balance when seeding the funding total on configure.
        strict_budget: Reject expenses that would push spent above total.
        require_matching_contributor: Reject contributions whose embedded
            account differs from the key they are stored under.
    """

    model_config = SettingsConfigDict(
        env_prefix="CROWDLEDGER_LEDGER__",
        extra="forbid",
    )

    min_reserve: int = Field(default=0, ge=0, le=U128_MAX)
    strict_budget: bool = Field(default=False)
    require_matching_contributor: bool = Field(default=False)


class DatabaseConfig(BaseSettings):
    """State storage connection configuration.

    Attributes:
        url: SQLAlchemy async database URL
        echo: Enable SQL query logging
    """

    model_config = SettingsConfigDict(
        env_prefix="CROWDLEDGER_DATABASE__",
        extra="forbid",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///crowdledger.db",
        description="Async SQLAlchemy connection URL",
    )
    echo: bool = Field(default=False)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or console)
        file: Optional log file path (None for stdout only)
        rotation_size_mb: Log file rotation size in megabytes
        retention_count: Number of rotated log files to keep
    """

    model_config = SettingsConfigDict(
        env_prefix="CROWDLEDGER_LOGGING__",
        extra="forbid",
    )

    level: str = Field(default="INFO")
    format: str = Field(default="json")
    file: Path | None = Field(default=None)
    rotation_size_mb: int = Field(default=50, ge=1, le=1000)
    retention_count: int = Field(default=10, ge=1, le=100)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is recognized."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is recognized."""
        valid_formats = {"json", "console"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class CrowdledgerConfig(BaseSettings):
    """Root configuration for crowdledger.

    Environment variable format for nested config:
        CROWDLEDGER_<SECTION>__<KEY>=value
    """

    model_config = SettingsConfigDict(
        env_prefix="CROWDLEDGER_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Path | None = None) -> CrowdledgerConfig:
    """Load configuration from TOML file with environment variable overrides.

    Configuration search order (first found is used):
    1. config_path if explicitly provided
    2. ./crowdledger.toml (current directory)
    3. ~/.config/crowdledger/config.toml (user config directory)

    Args:
        config_path: Explicit path to TOML config file. If None, searches
                    default locations.

    Returns:
        CrowdledgerConfig: Fully resolved configuration instance.

    Raises:
        FileNotFoundError: If config_path is explicitly provided but doesn't exist.
        ValueError: If TOML file contains invalid configuration.
    """
    toml_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        selected_path = config_path
    else:
        search_paths = [
            Path.cwd() / "crowdledger.toml",
            Path.home() / ".config" / "crowdledger" / "config.toml",
        ]
        selected_path = None
        for path in search_paths:
            if path.exists():
                selected_path = path
                break

    if selected_path is not None:
        with open(selected_path, "rb") as f:
            toml_data = tomli.load(f)

    try:
        return CrowdledgerConfig(**toml_data)
    except Exception as e:
        if selected_path:
            raise ValueError(
                f"Invalid configuration in {selected_path}: {e}"
            ) from e
        raise ValueError(f"Invalid configuration: {e}") from e
