"""Domain models for task distribution among agents and sub-agents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AssignmentStatus(str, Enum):
    """Task lifecycle states; the distributor only ever produces ``PENDING``."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DistributionError(RuntimeError):
    """Fatal distribution failure; nothing was assigned or persisted."""


class NoWorkersAvailableError(DistributionError):
    """Flat distribution was asked to split items across zero agents."""


class NoEligibleWorkersError(DistributionError):
    """Owner scope has no active sub-agents."""

    def __init__(self, owner_scope: str) -> None:
        super().__init__(f"No active sub-agents available for owner {owner_scope!r}")
        self.owner_scope = owner_scope


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One parsed task waiting for an assignee."""

    title: str
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Work item title must be a non-empty string.")

    @classmethod
    def parse(cls, raw: str) -> WorkItem:
        """Build an item from ``'<title>|<description>'``; description is optional."""

        title, sep, description = raw.partition("|")
        description = description.strip() if sep else ""
        return cls(title=title.strip(), description=description or None)


@dataclass(slots=True)
class Worker:
    """Agent or sub-agent as seen by the distributors."""

    id: str
    active: bool = True
    capacity: int | None = None
    name: str = ""

    @property
    def capacity_limit(self) -> int | None:
        """Per-run ceiling, or ``None`` when unlimited."""

        if self.capacity is None or self.capacity <= 0:
            return None
        return self.capacity


@dataclass(frozen=True, slots=True)
class Assignment:
    """Work item bound to a worker within one upload batch."""

    work_item: WorkItem
    worker_id: str
    upload_batch_id: str
    created_at: datetime
    updated_at: datetime
    status: AssignmentStatus = AssignmentStatus.PENDING
    owner_scope: str | None = None


@dataclass(slots=True)
class DistributionResult:
    """Outcome of one distribution run."""

    total_items: int
    assignments: list[Assignment] = field(default_factory=list)
    worker_counts: dict[str, int] = field(default_factory=dict)
    unassigned: list[WorkItem] = field(default_factory=list)
    final_cursor: int | None = None

    @property
    def assigned_count(self) -> int:
        return len(self.assignments)

    @property
    def unassigned_count(self) -> int:
        return len(self.unassigned)

    @property
    def is_partial(self) -> bool:
        """All workers ran out of capacity before every item was placed."""

        return self.assigned_count < self.total_items


@dataclass(slots=True)
class AgentCreate:
    """Input payload for registering a top-level agent."""

    name: str
    email: str
    mobile: str = ""
    agent_id: str | None = None


@dataclass(slots=True)
class AgentUpdate:
    """Partial agent update; ``None`` leaves a field unchanged."""

    name: str | None = None
    email: str | None = None
    mobile: str | None = None


@dataclass(slots=True)
class AgentView:
    agent_id: str
    name: str
    email: str
    mobile: str
    created_at: datetime
    updated_at: datetime

    def as_worker(self) -> Worker:
        return Worker(id=self.agent_id, name=self.name)


@dataclass(slots=True)
class SubAgentCreate:
    """Input payload for registering a sub-agent under an owner."""

    owner_agent_id: str
    name: str
    email: str
    mobile: str | None = None
    active: bool = True
    capacity: int | None = None
    sub_agent_id: str | None = None


@dataclass(slots=True)
class SubAgentUpdate:
    """Partial sub-agent update; ``None`` leaves a field unchanged."""

    name: str | None = None
    email: str | None = None
    mobile: str | None = None
    active: bool | None = None
    capacity: int | None = None
    clear_capacity: bool = False


@dataclass(slots=True)
class SubAgentView:
    sub_agent_id: str
    owner_agent_id: str
    name: str
    email: str
    mobile: str | None
    active: bool
    capacity: int | None
    created_at: datetime
    updated_at: datetime

    def as_worker(self) -> Worker:
        return Worker(
            id=self.sub_agent_id,
            active=self.active,
            capacity=self.capacity,
            name=self.name,
        )


@dataclass(slots=True)
class UploadCreate:
    """Upload batch record saved together with its assignments."""

    upload_id: str
    filename: str
    original_name: str
    total_items: int
    uploaded_by: str


@dataclass(slots=True)
class TaskView:
    task_id: str
    upload_id: str
    title: str
    description: str | None
    status: AssignmentStatus
    priority: TaskPriority
    assigned_to: str | None
    owner_agent_id: str | None
    sub_assigned_to: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class TaskFilters:
    upload_id: str | None = None
    agent_id: str | None = None
    owner_agent_id: str | None = None
    sub_agent_id: str | None = None
    status: AssignmentStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None


@dataclass(slots=True)
class Page:
    """One page of a listing plus totals for pagination controls."""

    items: list
    total: int
    page: int
    total_pages: int


@dataclass(slots=True)
class UploadView:
    upload_id: str
    filename: str
    original_name: str
    total_items: int
    uploaded_by: str
    created_at: datetime
    task_count: int = 0


@dataclass(slots=True)
class DashboardStats:
    """Directory-wide totals for the operator overview."""

    total_agents: int = 0
    total_tasks: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0
    total_uploads: int = 0

    @property
    def completion_rate(self) -> float:
        """Completed share of all tasks, in percent."""

        if self.total_tasks == 0:
            return 0.0
        return self.completed_tasks / self.total_tasks * 100

    @property
    def average_tasks_per_agent(self) -> float:
        if self.total_agents == 0:
            return 0.0
        return self.total_tasks / self.total_agents
