"""SQLite connection policy and timestamp conversions for the dispatch store."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine

_PRAGMAS = ("journal_mode = WAL", "foreign_keys = ON")


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def to_db_datetime(value: datetime) -> datetime:
    """Naive UTC value for SQLite columns; naive input is taken as UTC already."""

    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def to_utc_aware_datetime(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def build_sqlite_engine(*, db_path: Path, busy_timeout_ms: int) -> Engine:
    """Engine whose every new DB-API connection receives the dispatch pragmas."""

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={
            "check_same_thread": False,
            "timeout": _timeout_seconds(busy_timeout_ms),
        },
        poolclass=NullPool,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: sqlite3.Connection, _record: object) -> None:
        _apply_sqlite_pragmas(dbapi_connection, busy_timeout_ms)

    return engine


def connect_sqlite_with_policy(*, db_path: Path, busy_timeout_ms: int) -> sqlite3.Connection:
    """Raw ``sqlite3`` connection (``Row`` factory) sharing the engine's pragmas."""

    connection = sqlite3.connect(db_path, timeout=_timeout_seconds(busy_timeout_ms))
    connection.row_factory = sqlite3.Row
    _apply_sqlite_pragmas(connection, busy_timeout_ms)
    return connection


def _timeout_seconds(busy_timeout_ms: int) -> float:
    return max(1.0, busy_timeout_ms / 1000.0)


def _apply_sqlite_pragmas(connection: sqlite3.Connection, busy_timeout_ms: int) -> None:
    statements = (*_PRAGMAS, f"busy_timeout = {max(1, busy_timeout_ms)}")
    cursor = connection.cursor()
    try:
        for statement in statements:
            cursor.execute(f"PRAGMA {statement}")
    finally:
        cursor.close()
