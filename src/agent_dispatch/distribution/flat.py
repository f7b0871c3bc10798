"""Even modulo split of work items across top-level agents."""

from __future__ import annotations

from collections.abc import Sequence

from agent_dispatch.distribution.models import (
    Assignment,
    DistributionResult,
    NoWorkersAvailableError,
    WorkItem,
    Worker,
)
from agent_dispatch.storage.common import utc_now


def distribute_flat(
    items: Sequence[WorkItem],
    workers: Sequence[Worker],
    batch_id: str,
) -> DistributionResult:
    """Assign ``items[i]`` to ``workers[i % len(workers)]``.

    Capacity and ``active`` are ignored here; the caller picks the agent set.
    """

    if not workers:
        raise NoWorkersAvailableError("No agents available for task distribution")

    counts = {worker.id: 0 for worker in workers}
    assignments: list[Assignment] = []
    for index, item in enumerate(items):
        worker = workers[index % len(workers)]
        now = utc_now()
        assignments.append(
            Assignment(
                work_item=item,
                worker_id=worker.id,
                upload_batch_id=batch_id,
                created_at=now,
                updated_at=now,
            ),
        )
        counts[worker.id] += 1

    return DistributionResult(
        total_items=len(items),
        assignments=assignments,
        worker_counts=counts,
    )
