"""Runtime configuration for the dispatch engine and its storage."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class DistributionSettings:
    """Distribution policy settings."""

    flat_agent_limit: int = 5
    default_owner_scope: str = ""


@dataclass(slots=True)
class UserContextSettings:
    """Operator identity recorded on upload batches."""

    user_id: str = "admin"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".agent_dispatch.db")
    sqlite_busy_timeout_ms: int = 5_000
    log_level: str = "WARNING"
    distribution: DistributionSettings = field(default_factory=DistributionSettings)
    user_context: UserContextSettings = field(default_factory=UserContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("AGENT_DISPATCH_DB_PATH", ".agent_dispatch.db")),
            sqlite_busy_timeout_ms=_env_int("AGENT_DISPATCH_SQLITE_BUSY_TIMEOUT_MS", 5_000),
            log_level=os.getenv("AGENT_DISPATCH_LOG_LEVEL", "WARNING").strip().upper(),
            distribution=DistributionSettings(
                flat_agent_limit=_env_int("AGENT_DISPATCH_FLAT_AGENT_LIMIT", 5),
                default_owner_scope=os.getenv("AGENT_DISPATCH_DEFAULT_OWNER", "").strip(),
            ),
            user_context=UserContextSettings(
                user_id=os.getenv("AGENT_DISPATCH_USER_ID", "admin").strip() or "admin",
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the engine cannot work with."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("AGENT_DISPATCH_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.distribution.flat_agent_limit <= 0:
            raise ValueError("AGENT_DISPATCH_FLAT_AGENT_LIMIT must be a positive integer.")
        if self.log_level not in SUPPORTED_LOG_LEVELS:
            raise ValueError(
                f"Invalid AGENT_DISPATCH_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of: {', '.join(SUPPORTED_LOG_LEVELS)}.",
            )

    @property
    def logging_level(self) -> int:
        """Numeric level for ``logging.basicConfig``."""

        return logging.getLevelName(self.log_level)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
