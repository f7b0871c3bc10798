"""Controllers for dispatch CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from agent_dispatch.config import Settings
from agent_dispatch.distribution.models import (
    AgentCreate,
    AgentUpdate,
    AssignmentStatus,
    DashboardStats,
    DistributionResult,
    SubAgentCreate,
    SubAgentUpdate,
    SubAgentView,
    TaskFilters,
    TaskPriority,
    WorkItem,
)
from agent_dispatch.distribution.repository import DispatchRepository
from agent_dispatch.distribution.services import DistributionService, UploadBatch


@dataclass(slots=True)
class AgentAddCommand:
    """CLI input for agent registration."""

    db_path: Path | None
    name: str
    email: str
    mobile: str


@dataclass(slots=True)
class AgentUpdateCommand:
    db_path: Path | None
    agent_id: str
    name: str | None
    email: str | None
    mobile: str | None


@dataclass(slots=True)
class ListCommand:
    """CLI input for plain listings."""

    db_path: Path | None


@dataclass(slots=True)
class PageCommand:
    db_path: Path | None
    page: int
    limit: int


@dataclass(slots=True)
class EntityCommand:
    """CLI input for operations addressing one row by id."""

    db_path: Path | None
    entity_id: str


@dataclass(slots=True)
class SubAgentAddCommand:
    """CLI input for sub-agent registration."""

    db_path: Path | None
    owner_agent_id: str
    name: str
    email: str
    mobile: str | None
    capacity: int | None
    active: bool


@dataclass(slots=True)
class SubAgentListCommand:
    db_path: Path | None
    owner_agent_id: str
    page: int
    limit: int
    search: str | None


@dataclass(slots=True)
class SubAgentUpdateCommand:
    db_path: Path | None
    sub_agent_id: str
    name: str | None
    email: str | None
    mobile: str | None
    active: bool | None
    capacity: int | None
    clear_capacity: bool


@dataclass(slots=True)
class DistributeCommand:
    """CLI input for one upload batch.

    ``to_sub_agents`` selects owner rotation; otherwise the flat agent split.
    """

    db_path: Path | None
    items: tuple[str, ...]
    filename: str
    to_sub_agents: bool = False
    owner_agent_id: str | None = None


@dataclass(slots=True)
class TaskListCommand:
    db_path: Path | None
    upload_id: str | None
    agent_id: str | None
    owner_agent_id: str | None
    sub_agent_id: str | None
    status: str | None
    priority: str | None
    search: str | None
    page: int
    limit: int
    sort_by: str
    sort_order: str


@dataclass(slots=True)
class TaskStatusCommand:
    db_path: Path | None
    task_id: str
    status: str


@dataclass(slots=True)
class TaskPriorityCommand:
    db_path: Path | None
    task_id: str
    priority: str


class DispatchCliController:
    """Coordinates directory, distribution, and inspection CLI operations."""

    def add_agent(self, command: AgentAddCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            agent = repository.create_agent(
                AgentCreate(name=command.name, email=command.email, mobile=command.mobile),
            )
        return [f"Agent added: agent_id={agent.agent_id} name={agent.name} email={agent.email}"]

    def list_agents(self, command: ListCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            agents = repository.list_agents()
        if not agents:
            return ["No agents registered."]
        lines = [f"Agents: {len(agents)}"]
        lines.extend(
            f"- {agent.agent_id} name={agent.name} email={agent.email}" for agent in agents
        )
        return lines

    def update_agent(self, command: AgentUpdateCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            agent = repository.update_agent(
                command.agent_id,
                AgentUpdate(name=command.name, email=command.email, mobile=command.mobile),
            )
        if agent is None:
            raise RuntimeError(f"Agent not found: {command.agent_id}")
        return [
            f"Agent updated: agent_id={agent.agent_id} name={agent.name} email={agent.email} "
            f"mobile={agent.mobile or '-'}",
        ]

    def remove_agent(self, command: EntityCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            removed = repository.delete_agent(command.entity_id)
        if not removed:
            raise RuntimeError(f"Agent not found: {command.entity_id}")
        return [f"Agent removed: agent_id={command.entity_id}"]

    def add_sub_agent(self, command: SubAgentAddCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            sub_agent = repository.create_sub_agent(
                SubAgentCreate(
                    owner_agent_id=command.owner_agent_id,
                    name=command.name,
                    email=command.email,
                    mobile=command.mobile,
                    active=command.active,
                    capacity=command.capacity,
                ),
            )
        return [f"Sub-agent added: {_format_sub_agent(sub_agent)}"]

    def list_sub_agents(self, command: SubAgentListCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            page = repository.list_sub_agents(
                command.owner_agent_id,
                page=command.page,
                limit=command.limit,
                search=command.search,
            )
        lines = [
            f"Sub-agents of {command.owner_agent_id}: total={page.total} "
            f"page={page.page}/{max(page.total_pages, 1)}",
        ]
        lines.extend(f"- {_format_sub_agent(sub_agent)}" for sub_agent in page.items)
        return lines

    def update_sub_agent(self, command: SubAgentUpdateCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            sub_agent = repository.update_sub_agent(
                command.sub_agent_id,
                SubAgentUpdate(
                    name=command.name,
                    email=command.email,
                    mobile=command.mobile,
                    active=command.active,
                    capacity=command.capacity,
                    clear_capacity=command.clear_capacity,
                ),
            )
        if sub_agent is None:
            raise RuntimeError(f"Sub-agent not found: {command.sub_agent_id}")
        return [f"Sub-agent updated: {_format_sub_agent(sub_agent)}"]

    def remove_sub_agent(self, command: EntityCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            removed = repository.delete_sub_agent(command.entity_id)
        if not removed:
            raise RuntimeError(f"Sub-agent not found: {command.entity_id}")
        return [f"Sub-agent removed: sub_agent_id={command.entity_id}"]

    def distribute(self, command: DistributeCommand) -> list[str]:
        settings = _settings(command.db_path)
        items = tuple(WorkItem.parse(raw) for raw in command.items)
        if not items:
            raise ValueError("At least one --item is required.")
        batch = UploadBatch(
            items=items,
            uploaded_by=settings.user_context.user_id,
            filename=command.filename,
        )
        owner = command.owner_agent_id or settings.distribution.default_owner_scope
        with _repository(settings) as repository:
            service = DistributionService(
                repository=repository,
                flat_agent_limit=settings.distribution.flat_agent_limit,
            )
            if command.to_sub_agents:
                outcome = service.distribute_to_sub_agents(batch, owner)
            else:
                outcome = service.distribute_to_agents(batch)
        return [
            f"Upload saved: upload_id={outcome.upload_id}",
            *_render_distribution(outcome.result),
        ]

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        settings = _settings(command.db_path)
        filters = TaskFilters(
            upload_id=command.upload_id,
            agent_id=command.agent_id,
            owner_agent_id=command.owner_agent_id,
            sub_agent_id=command.sub_agent_id,
            status=AssignmentStatus(command.status) if command.status else None,
            priority=TaskPriority(command.priority) if command.priority else None,
            search=command.search,
        )
        with _repository(settings) as repository:
            page = repository.list_tasks(
                filters,
                page=command.page,
                limit=command.limit,
                sort_by=command.sort_by,
                sort_order=command.sort_order,
            )
        lines = [f"Tasks: total={page.total} page={page.page}/{max(page.total_pages, 1)}"]
        for task in page.items:
            assignee = task.sub_assigned_to or task.assigned_to or "-"
            lines.append(
                f"- {task.task_id} [{task.status.value}] {task.title} "
                f"assignee={assignee} upload={task.upload_id}",
            )
        return lines

    def set_task_status(self, command: TaskStatusCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = AssignmentStatus(command.status)
        with _repository(settings) as repository:
            task = repository.update_task_status(command.task_id, status)
        return [f"Task updated: task_id={task.task_id} status={task.status.value}"]

    def set_task_priority(self, command: TaskPriorityCommand) -> list[str]:
        settings = _settings(command.db_path)
        priority = TaskPriority(command.priority)
        with _repository(settings) as repository:
            task = repository.update_task(command.task_id, priority=priority)
        return [f"Task updated: task_id={task.task_id} priority={task.priority.value}"]

    def remove_task(self, command: EntityCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            removed = repository.delete_task(command.entity_id)
        if not removed:
            raise RuntimeError(f"Task not found: {command.entity_id}")
        return [f"Task removed: task_id={command.entity_id}"]

    def list_uploads(self, command: PageCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            page = repository.list_uploads(page=command.page, limit=command.limit)
        lines = [f"Uploads: total={page.total} page={page.page}/{max(page.total_pages, 1)}"]
        lines.extend(
            f"- {upload.upload_id} file={upload.filename} items={upload.total_items} "
            f"tasks={upload.task_count} by={upload.uploaded_by} "
            f"at={upload.created_at.isoformat(timespec='seconds')}"
            for upload in page.items
        )
        return lines

    def remove_upload(self, command: EntityCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            removed = repository.delete_upload(command.entity_id)
        if not removed:
            raise RuntimeError(f"Upload not found: {command.entity_id}")
        return [f"Upload removed: upload_id={command.entity_id} (its tasks were deleted too)"]

    def show_stats(self, command: ListCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            stats = repository.dashboard_stats()
        return _render_stats(stats)

    def show_cursor(self, command: EntityCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            value = repository.cursors.get(command.entity_id)
        if value is None:
            return [f"No rotation cursor for owner={command.entity_id}"]
        return [f"Rotation cursor: owner={command.entity_id} last_index={value}"]


def _render_distribution(result: DistributionResult) -> list[str]:
    lines = [
        f"Distribution: assigned={result.assigned_count}/{result.total_items} "
        f"unassigned={result.unassigned_count}",
    ]
    lines.extend(
        f"- {worker_id}: {count}" for worker_id, count in sorted(result.worker_counts.items())
    )
    if result.is_partial:
        lines.append("Warning: all workers reached capacity; leftover items were not assigned.")
    return lines


def _render_stats(stats: DashboardStats) -> list[str]:
    return [
        f"Agents: {stats.total_agents}",
        f"Uploads: {stats.total_uploads}",
        f"Tasks: total={stats.total_tasks} pending={stats.pending_tasks} "
        f"in-progress={stats.in_progress_tasks} completed={stats.completed_tasks}",
        f"Completion rate: {stats.completion_rate:.1f}%",
        f"Average tasks per agent: {stats.average_tasks_per_agent:.2f}",
    ]


def _format_sub_agent(sub_agent: SubAgentView) -> str:
    capacity = sub_agent.capacity if sub_agent.capacity else "unlimited"
    state = "active" if sub_agent.active else "inactive"
    return (
        f"sub_agent_id={sub_agent.sub_agent_id} owner={sub_agent.owner_agent_id} "
        f"name={sub_agent.name} email={sub_agent.email} {state} capacity={capacity}"
    )


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[DispatchRepository]:
    repository = DispatchRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
