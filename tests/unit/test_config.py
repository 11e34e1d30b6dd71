"""Unit tests for configuration management.

Tests cover:
- Default configuration values
- TOML file loading
- Environment variable overrides
- Validation errors for invalid configurations
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from crowdledger.config import (
    CrowdledgerConfig,
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config searches away from the developer's real files."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


class TestLedgerConfig:
    """Test LedgerConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = LedgerConfig()
        assert config.min_reserve == 0
        assert config.strict_budget is False
        assert config.require_matching_contributor is False

    def test_negative_reserve_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LedgerConfig(min_reserve=-1)

    def test_reserve_above_u128_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LedgerConfig(min_reserve=2**128)

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CROWDLEDGER_LEDGER__STRICT_BUDGET", "true")
        monkeypatch.setenv("CROWDLEDGER_LEDGER__MIN_RESERVE", "25")
        config = LedgerConfig()
        assert config.strict_budget is True
        assert config.min_reserve == 25


class TestDatabaseConfig:
    """Test DatabaseConfig defaults."""

    def test_default_values(self) -> None:
        config = DatabaseConfig()
        assert config.url == "sqlite+aiosqlite:///crowdledger.db"
        assert config.echo is False

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(pool_size=5)


class TestLoggingConfig:
    """Test LoggingConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"
        assert config.file is None

    def test_level_normalized(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_format_normalized(self) -> None:
        assert LoggingConfig(format="CONSOLE").format == "console"

    def test_invalid_level(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="VERBOSE")

    def test_invalid_format(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log format"):
            LoggingConfig(format="xml")


class TestCrowdledgerConfig:
    """Test the root configuration."""

    def test_sections_default(self) -> None:
        config = CrowdledgerConfig()
        assert isinstance(config.ledger, LedgerConfig)
        assert isinstance(config.database, DatabaseConfig)
        assert isinstance(config.logging, LoggingConfig)

    def test_nested_override(self) -> None:
        config = CrowdledgerConfig(ledger=LedgerConfig(min_reserve=1))
        assert config.ledger.min_reserve == 1
        assert config.database.url == "sqlite+aiosqlite:///crowdledger.db"

    def test_unknown_section_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CrowdledgerConfig(web={"port": 80})


class TestLoadConfig:
    """Test TOML configuration loading."""

    def test_load_defaults_when_no_file(self) -> None:
        config = load_config()
        assert isinstance(config, CrowdledgerConfig)
        assert config.ledger.min_reserve == 0

    def test_explicit_path_not_found(self) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(Path("/nonexistent/config.toml"))

    def test_load_from_toml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "test.toml"
        config_file.write_text("""
[ledger]
min_reserve = 1
strict_budget = true

[database]
url = "sqlite+aiosqlite:///ledger.db"

[logging]
level = "DEBUG"
format = "console"
""")

        config = load_config(config_file)
        assert config.ledger.min_reserve == 1
        assert config.ledger.strict_budget is True
        assert config.ledger.require_matching_contributor is False
        assert config.database.url == "sqlite+aiosqlite:///ledger.db"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "console"

    def test_invalid_toml_raises_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "invalid.toml"
        config_file.write_text("""
[ledger]
min_reserve = "lots"
""")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(config_file)

    def test_search_current_directory(self, tmp_path: Path) -> None:
        (tmp_path / "crowdledger.toml").write_text("""
[ledger]
min_reserve = 99
""")

        config = load_config()
        assert config.ledger.min_reserve == 99

    def test_search_user_config_directory(self, tmp_path: Path) -> None:
        user_dir = tmp_path / "home" / ".config" / "crowdledger"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text("""
[ledger]
require_matching_contributor = true
""")

        config = load_config()
        assert config.ledger.require_matching_contributor is True

    def test_environment_variables_without_toml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CROWDLEDGER_DATABASE__URL", "sqlite+aiosqlite:///env.db")
        monkeypatch.setenv("CROWDLEDGER_LOGGING__LEVEL", "WARNING")

        config = load_config()
        assert config.database.url == "sqlite+aiosqlite:///env.db"
        assert config.logging.level == "WARNING"
