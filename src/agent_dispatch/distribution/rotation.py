"""Capacity-aware round-robin distribution across an owner's sub-agents.

Each run reserves a starting position by atomically bumping the owner's
rotation cursor, then walks the pool circularly. For every item the walk
moves one position forward and keeps moving, for at most ``len(pool)``
positions, until it reaches a worker with remaining capacity. A walk that
visits every position without finding one ends the run; the items left
over are returned as ``unassigned`` instead of raising.

A complete failed walk lands exactly where it began, so the position after
the loop is always the pool index of the last successful assignment (or
the start position when nothing was assigned). That index is written back
to the cursor store for the next run to continue from.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from agent_dispatch.distribution.cursor_store import RotationCursorStore
from agent_dispatch.distribution.models import (
    Assignment,
    DistributionResult,
    NoEligibleWorkersError,
    WorkItem,
    Worker,
)
from agent_dispatch.storage.common import utc_now

logger = logging.getLogger(__name__)

AssignmentSink = Callable[[list[Assignment]], None]


class WorkerDirectory(Protocol):
    """Lookup of the sub-agent pool owned by one scope."""

    def list_active_workers(self, owner_scope: str) -> list[Worker]:
        """Return active workers in stable pool order."""
        raise NotImplementedError


@dataclass(slots=True)
class RotationPlan:
    """Pure assignment plan computed from a loaded pool and start position."""

    assignments: list[Assignment]
    worker_counts: dict[str, int]
    unassigned: list[WorkItem]
    final_cursor: int


def plan_rotation(  # noqa: PLR0913
    items: Sequence[WorkItem],
    pool: Sequence[Worker],
    *,
    start: int,
    owner_scope: str,
    batch_id: str,
) -> RotationPlan:
    """Walk ``pool`` from ``start`` and place ``items`` under capacity limits."""

    if not pool:
        raise NoEligibleWorkersError(owner_scope)

    size = len(pool)
    counts = {worker.id: 0 for worker in pool}
    remaining = {worker.id: worker.capacity_limit for worker in pool}
    position = start % size
    assignments: list[Assignment] = []
    unassigned: list[WorkItem] = []

    for offset, item in enumerate(items):
        chosen = _next_with_capacity(pool, remaining, position)
        if chosen is None:
            unassigned.extend(items[offset:])
            break
        position = chosen
        worker = pool[position]
        limit = remaining[worker.id]
        if limit is not None:
            remaining[worker.id] = limit - 1
        counts[worker.id] += 1
        now = utc_now()
        assignments.append(
            Assignment(
                work_item=item,
                worker_id=worker.id,
                upload_batch_id=batch_id,
                created_at=now,
                updated_at=now,
                owner_scope=owner_scope,
            ),
        )

    return RotationPlan(
        assignments=assignments,
        worker_counts=counts,
        unassigned=unassigned,
        final_cursor=position,
    )


def _next_with_capacity(
    pool: Sequence[Worker],
    remaining: dict[str, int | None],
    position: int,
) -> int | None:
    size = len(pool)
    for step in range(1, size + 1):
        candidate = (position + step) % size
        left = remaining[pool[candidate].id]
        if left is None or left > 0:
            return candidate
    return None


class RotationDistributor:
    """Distributes an upload batch to an owner's sub-agents."""

    def __init__(
        self,
        *,
        cursor_store: RotationCursorStore,
        worker_directory: WorkerDirectory,
    ) -> None:
        self.cursor_store = cursor_store
        self.worker_directory = worker_directory
        # Grows by one lock per owner seen and is never pruned; one distributor
        # lives for a single CLI invocation or service instance.
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def distribute(
        self,
        items: Sequence[WorkItem],
        owner_scope: str,
        batch_id: str,
        *,
        persist: AssignmentSink | None = None,
    ) -> DistributionResult:
        """Assign ``items`` and advance the owner's rotation cursor.

        ``persist`` receives the assignments before the cursor is written, so
        a failure there leaves the cursor at its reserved value.
        """

        with self._owner_lock(owner_scope):
            pool = [
                worker
                for worker in self.worker_directory.list_active_workers(owner_scope)
                if worker.active
            ]
            if not pool:
                raise NoEligibleWorkersError(owner_scope)
            logger.debug("Rotation pool for owner=%s has %d workers", owner_scope, len(pool))

            reserved = self.cursor_store.fetch_and_increment(owner_scope)
            plan = plan_rotation(
                items,
                pool,
                start=reserved % len(pool),
                owner_scope=owner_scope,
                batch_id=batch_id,
            )
            if persist is not None:
                persist(plan.assignments)
            self.cursor_store.set(owner_scope, plan.final_cursor)

        if plan.unassigned:
            logger.warning(
                "Sub-agents of owner=%s reached capacity: assigned=%d unassigned=%d",
                owner_scope,
                len(plan.assignments),
                len(plan.unassigned),
            )
        logger.info(
            "Distributed batch=%s owner=%s assigned=%d/%d cursor=%d",
            batch_id,
            owner_scope,
            len(plan.assignments),
            len(items),
            plan.final_cursor,
        )
        return DistributionResult(
            total_items=len(items),
            assignments=plan.assignments,
            worker_counts=plan.worker_counts,
            unassigned=plan.unassigned,
            final_cursor=plan.final_cursor,
        )

    def _owner_lock(self, owner_scope: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(owner_scope)
            if lock is None:
                lock = threading.Lock()
                self._locks[owner_scope] = lock
            return lock
