from __future__ import annotations

import logging
from pathlib import Path

import allure
import pytest

from agent_dispatch.config import DistributionSettings, Settings

pytestmark = [
    allure.epic("Operations"),
    allure.feature("Configuration"),
]


def test_from_env_uses_defaults() -> None:
    settings = Settings.from_env()

    assert settings.db_path == Path(".agent_dispatch.db")
    assert settings.sqlite_busy_timeout_ms == 5_000
    assert settings.log_level == "WARNING"
    assert settings.distribution.flat_agent_limit == 5
    assert settings.distribution.default_owner_scope == ""
    assert settings.user_context.user_id == "admin"
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AGENT_DISPATCH_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("AGENT_DISPATCH_FLAT_AGENT_LIMIT", "3")
    monkeypatch.setenv("AGENT_DISPATCH_DEFAULT_OWNER", " owner-7 ")
    monkeypatch.setenv("AGENT_DISPATCH_LOG_LEVEL", "info")
    monkeypatch.setenv("AGENT_DISPATCH_USER_ID", "ops")

    settings = Settings.from_env()

    assert settings.db_path == tmp_path / "env.db"
    assert settings.distribution.flat_agent_limit == 3
    assert settings.distribution.default_owner_scope == "owner-7"
    assert settings.log_level == "INFO"
    assert settings.logging_level == logging.INFO
    assert settings.user_context.user_id == "ops"


def test_explicit_db_path_wins_over_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AGENT_DISPATCH_DB_PATH", str(tmp_path / "env.db"))

    settings = Settings.from_env(db_path=tmp_path / "cli.db")

    assert settings.db_path == tmp_path / "cli.db"


def test_from_env_rejects_non_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_DISPATCH_FLAT_AGENT_LIMIT", "many")

    with pytest.raises(ValueError, match="AGENT_DISPATCH_FLAT_AGENT_LIMIT"):
        Settings.from_env()


def test_validate_rejects_non_positive_agent_limit() -> None:
    settings = Settings(distribution=DistributionSettings(flat_agent_limit=0))

    with pytest.raises(ValueError, match="FLAT_AGENT_LIMIT"):
        settings.validate()


def test_validate_rejects_unknown_log_level() -> None:
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        Settings(log_level="LOUD").validate()


def test_validate_rejects_non_positive_busy_timeout() -> None:
    with pytest.raises(ValueError, match="BUSY_TIMEOUT"):
        Settings(sqlite_busy_timeout_ms=0).validate()
