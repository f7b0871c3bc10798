from __future__ import annotations

import allure
import pytest
from conftest import make_items

from agent_dispatch.distribution.flat import distribute_flat
from agent_dispatch.distribution.models import (
    AssignmentStatus,
    DistributionError,
    NoWorkersAvailableError,
    WorkItem,
    Worker,
)

pytestmark = [
    allure.epic("Task Distribution"),
    allure.feature("Flat Agent Split"),
]


def _agents(count: int) -> list[Worker]:
    return [Worker(id=f"a{index}") for index in range(count)]


def test_distribute_flat_assigns_items_by_modulo_in_input_order() -> None:
    result = distribute_flat(make_items(5), _agents(3), "batch-1")

    assert [assignment.worker_id for assignment in result.assignments] == [
        "a0",
        "a1",
        "a2",
        "a0",
        "a1",
    ]
    assert [assignment.work_item.title for assignment in result.assignments] == [
        "t1",
        "t2",
        "t3",
        "t4",
        "t5",
    ]
    assert result.worker_counts == {"a0": 2, "a1": 2, "a2": 1}
    assert result.total_items == 5
    assert not result.is_partial


@pytest.mark.parametrize(("items", "workers"), [(0, 1), (1, 3), (7, 3), (10, 5), (11, 4)])
def test_distribute_flat_split_is_even(items: int, workers: int) -> None:
    result = distribute_flat(make_items(items), _agents(workers), "batch")

    counts = list(result.worker_counts.values())
    assert len(counts) == workers
    assert max(counts) - min(counts) <= 1
    assert sum(counts) == items


def test_distribute_flat_marks_assignments_pending_with_batch_id() -> None:
    result = distribute_flat(
        [WorkItem(title="Call back", description="ask about invoice")],
        _agents(1),
        "batch-42",
    )

    assignment = result.assignments[0]
    assert assignment.status is AssignmentStatus.PENDING
    assert assignment.upload_batch_id == "batch-42"
    assert assignment.owner_scope is None
    assert assignment.work_item.description == "ask about invoice"
    assert assignment.created_at == assignment.updated_at


def test_distribute_flat_ignores_capacity_and_active_flags() -> None:
    workers = [Worker(id="a0", capacity=1), Worker(id="a1", active=False)]

    result = distribute_flat(make_items(4), workers, "batch")

    assert result.worker_counts == {"a0": 2, "a1": 2}


def test_distribute_flat_without_agents_raises() -> None:
    with pytest.raises(NoWorkersAvailableError, match="No agents available"):
        distribute_flat(make_items(2), [], "batch")
    assert issubclass(NoWorkersAvailableError, DistributionError)


def test_work_item_rejects_blank_title() -> None:
    with pytest.raises(ValueError, match="non-empty"):
        WorkItem(title="   ")


def test_work_item_parse_splits_title_and_description() -> None:
    assert WorkItem.parse("Fix login | on mobile") == WorkItem(
        title="Fix login",
        description="on mobile",
    )
    assert WorkItem.parse("Only title") == WorkItem(title="Only title")
    assert WorkItem.parse("Title|") == WorkItem(title="Title")
