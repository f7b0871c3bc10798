from __future__ import annotations

import re
from pathlib import Path

import allure
from click.testing import CliRunner

from agent_dispatch.main import agent_dispatch

pytestmark = [
    allure.epic("Operations"),
    allure.feature("Dispatch CLI"),
]


def _invoke(*args: str):
    return CliRunner().invoke(agent_dispatch, list(args), catch_exceptions=False)


def _add_sub_agent(db_path: Path, name: str, *extra: str) -> str:
    result = _invoke(
        "subagents",
        "add",
        "--db-path",
        str(db_path),
        "--owner",
        "owner-1",
        "--name",
        name,
        "--email",
        f"{name}@example.com",
        *extra,
    )
    assert result.exit_code == 0, result.output
    match = re.search(r"sub_agent_id=(\S+)", result.output)
    assert match is not None
    return match.group(1)


def test_cli_flat_distribution_round_trip(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    for name in ("ann", "bob"):
        result = _invoke(
            "agents",
            "add",
            "--db-path",
            str(db_path),
            "--name",
            name,
            "--email",
            f"{name}@example.com",
        )
        assert result.exit_code == 0, result.output
        assert "Agent added" in result.output

    listed = _invoke("agents", "list", "--db-path", str(db_path))
    assert "Agents: 2" in listed.output

    distributed = _invoke(
        "distribute",
        "agents",
        "--db-path",
        str(db_path),
        "--item",
        "Call client|renewal",
        "--item",
        "Send invoice",
        "--item",
        "Book meeting",
        "--filename",
        "leads.csv",
    )
    assert distributed.exit_code == 0, distributed.output
    assert "Distribution: assigned=3/3 unassigned=0" in distributed.output
    upload_id = re.search(r"upload_id=(\S+)", distributed.output).group(1)

    tasks = _invoke("tasks", "list", "--db-path", str(db_path), "--upload-id", upload_id)
    assert "Tasks: total=3 page=1/1" in tasks.output
    assert "[pending] Call client" in tasks.output


def test_cli_sub_agent_distribution_reports_partial_batch(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    first = _add_sub_agent(db_path, "first", "--capacity", "1")
    second = _add_sub_agent(db_path, "second", "--capacity", "1")

    result = _invoke(
        "distribute",
        "subagents",
        "--db-path",
        str(db_path),
        "--owner",
        "owner-1",
        "--item",
        "t1",
        "--item",
        "t2",
        "--item",
        "t3",
    )

    assert result.exit_code == 0, result.output
    assert "Distribution: assigned=2/3 unassigned=1" in result.output
    assert f"- {first}: 1" in result.output
    assert f"- {second}: 1" in result.output
    assert "leftover items were not assigned" in result.output

    cursor = _invoke("cursor", "show", "--db-path", str(db_path), "--owner", "owner-1")
    assert "Rotation cursor: owner=owner-1 last_index=0" in cursor.output


def test_cli_sub_agent_distribution_uses_default_owner(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "cli.db"
    _add_sub_agent(db_path, "only")
    monkeypatch.setenv("AGENT_DISPATCH_DEFAULT_OWNER", "owner-1")

    result = _invoke("distribute", "subagents", "--db-path", str(db_path), "--item", "t1")

    assert result.exit_code == 0, result.output
    assert "assigned=1/1" in result.output


def test_cli_rejects_distribution_without_eligible_sub_agents(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    _add_sub_agent(db_path, "idle", "--inactive")

    result = _invoke(
        "distribute",
        "subagents",
        "--db-path",
        str(db_path),
        "--owner",
        "owner-1",
        "--item",
        "t1",
    )

    assert result.exit_code == 1
    assert "No active sub-agents available" in result.output

    cursor = _invoke("cursor", "show", "--db-path", str(db_path), "--owner", "owner-1")
    assert "No rotation cursor for owner=owner-1" in cursor.output


def test_cli_sub_agent_update_list_and_remove(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    sub_agent_id = _add_sub_agent(db_path, "worker", "--capacity", "2")

    updated = _invoke(
        "subagents",
        "update",
        "--db-path",
        str(db_path),
        sub_agent_id,
        "--inactive",
        "--clear-capacity",
    )
    assert updated.exit_code == 0, updated.output
    assert "inactive capacity=unlimited" in updated.output

    listed = _invoke("subagents", "list", "--db-path", str(db_path), "--owner", "owner-1")
    assert "total=1" in listed.output

    removed = _invoke("subagents", "remove", "--db-path", str(db_path), sub_agent_id)
    assert "Sub-agent removed" in removed.output

    missing = _invoke("subagents", "remove", "--db-path", str(db_path), sub_agent_id)
    assert missing.exit_code == 1
    assert "Sub-agent not found" in missing.output


def test_cli_task_status_transition(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    _add_sub_agent(db_path, "worker")
    _invoke(
        "distribute",
        "subagents",
        "--db-path",
        str(db_path),
        "--owner",
        "owner-1",
        "--item",
        "Only task",
    )
    listed = _invoke("tasks", "list", "--db-path", str(db_path), "--owner", "owner-1")
    task_id = re.search(r"- (\S+) \[pending\]", listed.output).group(1)

    result = _invoke("tasks", "set-status", "--db-path", str(db_path), task_id, "completed")

    assert result.exit_code == 0, result.output
    assert f"task_id={task_id} status=completed" in result.output
    done = _invoke("tasks", "list", "--db-path", str(db_path), "--status", "completed")
    assert "total=1" in done.output


def test_cli_rejects_blank_item_title(tmp_path: Path) -> None:
    result = _invoke(
        "distribute",
        "agents",
        "--db-path",
        str(tmp_path / "cli.db"),
        "--item",
        "|only description",
    )

    assert result.exit_code == 1
    assert "non-empty" in result.output


def _add_agent(db_path: Path, name: str) -> str:
    result = _invoke(
        "agents",
        "add",
        "--db-path",
        str(db_path),
        "--name",
        name,
        "--email",
        f"{name}@example.com",
    )
    assert result.exit_code == 0, result.output
    return re.search(r"agent_id=(\S+)", result.output).group(1)


def test_cli_agent_update_and_email_conflict(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    _add_agent(db_path, "ann")
    bob = _add_agent(db_path, "bob")

    updated = _invoke(
        "agents",
        "update",
        "--db-path",
        str(db_path),
        bob,
        "--name",
        "Robert",
        "--mobile",
        "+15550100",
    )
    assert updated.exit_code == 0, updated.output
    assert "name=Robert email=bob@example.com mobile=+15550100" in updated.output

    conflict = _invoke(
        "agents",
        "update",
        "--db-path",
        str(db_path),
        bob,
        "--email",
        "ANN@example.com",
    )
    assert conflict.exit_code == 1
    assert "already registered" in conflict.output


def test_cli_uploads_list_and_remove(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    _add_agent(db_path, "ann")
    distributed = _invoke(
        "distribute",
        "agents",
        "--db-path",
        str(db_path),
        "--item",
        "t1",
        "--item",
        "t2",
        "--filename",
        "leads.csv",
    )
    upload_id = re.search(r"upload_id=(\S+)", distributed.output).group(1)

    listed = _invoke("uploads", "list", "--db-path", str(db_path))
    assert "Uploads: total=1 page=1/1" in listed.output
    assert f"- {upload_id} file=leads.csv items=2 tasks=2 by=admin" in listed.output

    removed = _invoke("uploads", "remove", "--db-path", str(db_path), upload_id)
    assert removed.exit_code == 0, removed.output
    assert f"Upload removed: upload_id={upload_id}" in removed.output

    tasks = _invoke("tasks", "list", "--db-path", str(db_path))
    assert "Tasks: total=0" in tasks.output
    missing = _invoke("uploads", "remove", "--db-path", str(db_path), upload_id)
    assert missing.exit_code == 1
    assert "Upload not found" in missing.output


def test_cli_task_priority_and_remove(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    _add_agent(db_path, "ann")
    _invoke("distribute", "agents", "--db-path", str(db_path), "--item", "t1", "--item", "t2")
    listed = _invoke(
        "tasks",
        "list",
        "--db-path",
        str(db_path),
        "--sort-by",
        "title",
        "--sort-order",
        "asc",
    )
    first, second = re.findall(r"- (\S+) \[pending\]", listed.output)

    result = _invoke("tasks", "set-priority", "--db-path", str(db_path), first, "urgent")
    assert result.exit_code == 0, result.output
    assert f"task_id={first} priority=urgent" in result.output
    urgent = _invoke("tasks", "list", "--db-path", str(db_path), "--priority", "urgent")
    assert "Tasks: total=1" in urgent.output
    assert first in urgent.output

    removed = _invoke("tasks", "remove", "--db-path", str(db_path), second)
    assert f"Task removed: task_id={second}" in removed.output
    remaining = _invoke("tasks", "list", "--db-path", str(db_path))
    assert "Tasks: total=1" in remaining.output


def test_cli_stats_on_empty_and_populated_database(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    empty = _invoke("stats", "--db-path", str(db_path))
    assert empty.exit_code == 0, empty.output
    assert "Completion rate: 0.0%" in empty.output
    assert "Average tasks per agent: 0.00" in empty.output

    _add_agent(db_path, "ann")
    _add_agent(db_path, "bob")
    _invoke(
        "distribute",
        "agents",
        "--db-path",
        str(db_path),
        "--item",
        "t1",
        "--item",
        "t2",
        "--item",
        "t3",
        "--item",
        "t4",
    )
    listed = _invoke("tasks", "list", "--db-path", str(db_path))
    task_id = re.search(r"- (\S+) \[pending\]", listed.output).group(1)
    _invoke("tasks", "set-status", "--db-path", str(db_path), task_id, "completed")

    populated = _invoke("stats", "--db-path", str(db_path))
    assert "Agents: 2" in populated.output
    assert "Uploads: 1" in populated.output
    assert "Tasks: total=4 pending=3 in-progress=0 completed=1" in populated.output
    assert "Completion rate: 25.0%" in populated.output
    assert "Average tasks per agent: 2.00" in populated.output
