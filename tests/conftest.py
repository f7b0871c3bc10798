"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from agent_dispatch.distribution.cursor_store import InMemoryCursorStore
from agent_dispatch.distribution.models import WorkItem, Worker
from agent_dispatch.distribution.repository import DispatchRepository


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[DispatchRepository]:
    repo = DispatchRepository(tmp_path / "dispatch.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "AGENT_DISPATCH_DB_PATH",
        "AGENT_DISPATCH_SQLITE_BUSY_TIMEOUT_MS",
        "AGENT_DISPATCH_LOG_LEVEL",
        "AGENT_DISPATCH_FLAT_AGENT_LIMIT",
        "AGENT_DISPATCH_DEFAULT_OWNER",
        "AGENT_DISPATCH_USER_ID",
    ):
        monkeypatch.delenv(name, raising=False)


def make_items(count: int) -> list[WorkItem]:
    return [WorkItem(title=f"t{index}") for index in range(1, count + 1)]


class StaticDirectory:
    """Worker directory returning a fixed pool."""

    def __init__(self, pool: list[Worker]) -> None:
        self.pool = pool
        self.calls: list[str] = []

    def list_active_workers(self, owner_scope: str) -> list[Worker]:
        self.calls.append(owner_scope)
        return list(self.pool)


class SpyCursorStore(InMemoryCursorStore):
    """In-memory cursor store that counts reservations and writes."""

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        super().__init__(initial)
        self.increments = 0
        self.writes = 0

    def fetch_and_increment(self, owner_scope: str) -> int:
        self.increments += 1
        return super().fetch_and_increment(owner_scope)

    def set(self, owner_scope: str, index: int) -> None:
        self.writes += 1
        super().set(owner_scope, index)
