"""Rotation cursor persistence: one integer per owner scope."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from agent_dispatch.storage.common import to_db_datetime, utc_now
from agent_dispatch.storage.sqlmodel_models import RotationCursorRow

logger = logging.getLogger(__name__)


class RotationCursorStore(Protocol):
    """Integer state keyed by owner scope.

    ``fetch_and_increment`` returns the value stored *before* the increment,
    so a fresh scope yields ``0`` and leaves ``1`` behind.
    """

    def fetch_and_increment(self, owner_scope: str) -> int:
        """Atomically read the cursor and store ``value + 1``."""
        raise NotImplementedError

    def set(self, owner_scope: str, index: int) -> None:
        """Overwrite the cursor; last writer wins."""
        raise NotImplementedError

    def get(self, owner_scope: str) -> int | None:
        """Current cursor value, ``None`` when the scope was never used."""
        raise NotImplementedError


class InMemoryCursorStore:
    """Process-local cursor store."""

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._values: dict[str, int] = dict(initial or {})
        self._lock = threading.Lock()

    def fetch_and_increment(self, owner_scope: str) -> int:
        with self._lock:
            current = self._values.get(owner_scope, 0)
            self._values[owner_scope] = current + 1
            return current

    def set(self, owner_scope: str, index: int) -> None:
        with self._lock:
            self._values[owner_scope] = index

    def get(self, owner_scope: str) -> int | None:
        with self._lock:
            return self._values.get(owner_scope)


class SQLModelCursorStore:
    """Cursor store backed by the ``rotation_cursors`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def fetch_and_increment(self, owner_scope: str) -> int:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            # The insert opens the write transaction, so the increment and the
            # read-back below are serialised against other writers.
            session.execute(
                sqlite_insert(RotationCursorRow)
                .values(owner_scope=owner_scope, last_index=0, updated_at=now)
                .on_conflict_do_nothing(index_elements=["owner_scope"]),
            )
            session.exec(
                sa_update(RotationCursorRow)
                .where(col(RotationCursorRow.owner_scope) == owner_scope)
                .values(
                    last_index=col(RotationCursorRow.last_index) + 1,
                    updated_at=now,
                ),
            )
            row = session.exec(
                select(RotationCursorRow).where(RotationCursorRow.owner_scope == owner_scope),
            ).one()
            value = row.last_index
            session.commit()
        logger.debug("Cursor for owner=%s fetched at %d", owner_scope, value - 1)
        return value - 1

    def set(self, owner_scope: str, index: int) -> None:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            statement = sqlite_insert(RotationCursorRow).values(
                owner_scope=owner_scope,
                last_index=index,
                updated_at=now,
            )
            session.execute(
                statement.on_conflict_do_update(
                    index_elements=["owner_scope"],
                    set_={"last_index": index, "updated_at": now},
                ),
            )
            session.commit()

    def get(self, owner_scope: str) -> int | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(RotationCursorRow).where(RotationCursorRow.owner_scope == owner_scope),
            ).one_or_none()
            return row.last_index if row is not None else None
