"""Persistence facade for agents, sub-agents, uploads and task assignments."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from pathlib import Path
from uuid import uuid4

from sqlalchemy import case, func, or_
from sqlalchemy import delete as sa_delete
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from agent_dispatch.distribution.cursor_store import SQLModelCursorStore
from agent_dispatch.distribution.models import (
    AgentCreate,
    AgentUpdate,
    AgentView,
    Assignment,
    AssignmentStatus,
    DashboardStats,
    Page,
    SubAgentCreate,
    SubAgentUpdate,
    SubAgentView,
    TaskFilters,
    TaskPriority,
    TaskView,
    UploadCreate,
    UploadView,
    Worker,
)
from agent_dispatch.distribution.validation import (
    normalize_email,
    normalize_mobile,
    normalize_name,
)
from agent_dispatch.storage.alembic_runner import upgrade_head
from agent_dispatch.storage.common import (
    build_sqlite_engine,
    connect_sqlite_with_policy,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from agent_dispatch.storage.sqlmodel_models import (
    Agent,
    SubAgent,
    TaskRow,
    UploadBatchRow,
)

logger = logging.getLogger(__name__)

TASK_SORT_COLUMNS = ("created_at", "updated_at", "title", "status", "priority")


class DispatchRepository:
    """Dispatch persistence facade backed by SQLModel + SQLite."""

    def __init__(
        self,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = 5_000,
    ) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)
        self.cursors = SQLModelCursorStore(self.engine)

        # Keep low-level connection for tests and ad-hoc debugging queries.
        self._connection = connect_sqlite_with_policy(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self._connection.close()
        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    # Agents

    def create_agent(self, payload: AgentCreate) -> AgentView:
        """Register a top-level agent; emails are unique case-insensitively."""

        now = to_db_datetime(utc_now())
        row = Agent(
            agent_id=payload.agent_id or str(uuid4()),
            name=normalize_name(payload.name),
            email=normalize_email(payload.email),
            mobile=normalize_mobile(payload.mobile) or "",
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise ValueError(f"Agent email already registered: {row.email}") from error
            session.refresh(row)
            return _to_agent_view(row)

    def get_agent(self, agent_id: str) -> AgentView | None:
        with Session(self.engine) as session:
            row = session.get(Agent, agent_id)
            return _to_agent_view(row) if row is not None else None

    def list_agents(self, *, limit: int | None = None) -> list[AgentView]:
        """Agents in registration order."""

        with Session(self.engine) as session:
            statement = select(Agent).order_by(
                col(Agent.created_at).asc(),
                col(Agent.agent_id).asc(),
            )
            if limit is not None:
                statement = statement.limit(limit)
            rows = session.exec(statement).all()
        return [_to_agent_view(row) for row in rows]

    def update_agent(self, agent_id: str, update: AgentUpdate) -> AgentView | None:
        """Apply a partial update; returns ``None`` for unknown ids."""

        name = normalize_name(update.name) if update.name is not None else None
        email = normalize_email(update.email) if update.email is not None else None
        mobile = normalize_mobile(update.mobile)
        with Session(self.engine) as session:
            row = session.get(Agent, agent_id)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if email is not None:
                row.email = email
            if mobile is not None:
                row.mobile = mobile
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise ValueError(f"Agent email already registered: {email}") from error
            session.refresh(row)
            return _to_agent_view(row)

    def delete_agent(self, agent_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(Agent, agent_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    # Sub-agents

    def create_sub_agent(self, payload: SubAgentCreate) -> SubAgentView:
        if payload.capacity is not None and payload.capacity < 0:
            raise ValueError("Sub-agent capacity must be >= 0.")
        now = to_db_datetime(utc_now())
        row = SubAgent(
            sub_agent_id=payload.sub_agent_id or str(uuid4()),
            owner_agent_id=payload.owner_agent_id,
            name=normalize_name(payload.name),
            email=normalize_email(payload.email),
            mobile=normalize_mobile(payload.mobile),
            active=payload.active,
            capacity=payload.capacity,
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_sub_agent_view(row)

    def get_sub_agent(self, sub_agent_id: str) -> SubAgentView | None:
        with Session(self.engine) as session:
            row = session.get(SubAgent, sub_agent_id)
            return _to_sub_agent_view(row) if row is not None else None

    def list_sub_agents(
        self,
        owner_agent_id: str,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
    ) -> Page:
        """Newest-first page of an owner's sub-agents, optionally filtered by search."""

        page = max(1, page)
        limit = max(1, limit)
        conditions = [col(SubAgent.owner_agent_id) == owner_agent_id]
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    col(SubAgent.name).ilike(pattern),
                    col(SubAgent.email).ilike(pattern),
                    col(SubAgent.mobile).ilike(pattern),
                ),
            )
        with Session(self.engine) as session:
            total = session.exec(
                select(func.count()).select_from(SubAgent).where(*conditions),
            ).one()
            rows = session.exec(
                select(SubAgent)
                .where(*conditions)
                .order_by(col(SubAgent.created_at).desc(), col(SubAgent.sub_agent_id).desc())
                .offset((page - 1) * limit)
                .limit(limit),
            ).all()
        return Page(
            items=[_to_sub_agent_view(row) for row in rows],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def update_sub_agent(self, sub_agent_id: str, update: SubAgentUpdate) -> SubAgentView | None:
        """Apply a partial update; returns ``None`` for unknown ids."""

        if update.capacity is not None and update.capacity < 0:
            raise ValueError("Sub-agent capacity must be >= 0.")
        name = normalize_name(update.name) if update.name is not None else None
        email = normalize_email(update.email) if update.email is not None else None
        mobile = normalize_mobile(update.mobile)
        with Session(self.engine) as session:
            row = session.get(SubAgent, sub_agent_id)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if email is not None:
                row.email = email
            if mobile is not None:
                row.mobile = mobile
            if update.active is not None:
                row.active = update.active
            if update.clear_capacity:
                row.capacity = None
            elif update.capacity is not None:
                row.capacity = update.capacity
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_sub_agent_view(row)

    def delete_sub_agent(self, sub_agent_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(SubAgent, sub_agent_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_active_workers(self, owner_scope: str) -> list[Worker]:
        """Active sub-agents of ``owner_scope`` in creation order."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(SubAgent)
                .where(
                    SubAgent.owner_agent_id == owner_scope,
                    col(SubAgent.active).is_(True),
                )
                .order_by(col(SubAgent.created_at).asc(), col(SubAgent.sub_agent_id).asc()),
            ).all()
        return [_to_sub_agent_view(row).as_worker() for row in rows]

    # Uploads and tasks

    def save_batch(self, upload: UploadCreate, assignments: Sequence[Assignment]) -> None:
        """Insert the upload record and every assignment in one transaction."""

        with Session(self.engine) as session:
            session.add(
                UploadBatchRow(
                    upload_id=upload.upload_id,
                    filename=upload.filename,
                    original_name=upload.original_name,
                    total_items=upload.total_items,
                    uploaded_by=upload.uploaded_by,
                    created_at=to_db_datetime(utc_now()),
                ),
            )
            # Parent row must exist before the task rows reference it.
            session.flush()
            session.add_all(_to_task_row(assignment) for assignment in assignments)
            session.commit()
        logger.info(
            "Saved upload=%s with %d task assignments",
            upload.upload_id,
            len(assignments),
        )

    def list_uploads(self, *, page: int = 1, limit: int = 10) -> Page:
        """Newest-first upload history with the number of tasks still attached."""

        page = max(1, page)
        limit = max(1, limit)
        task_count = func.count(col(TaskRow.task_id))
        with Session(self.engine) as session:
            total = session.exec(select(func.count()).select_from(UploadBatchRow)).one()
            rows = session.exec(
                select(UploadBatchRow, task_count)
                .outerjoin(TaskRow, col(TaskRow.upload_id) == col(UploadBatchRow.upload_id))
                .group_by(col(UploadBatchRow.upload_id))
                .order_by(
                    col(UploadBatchRow.created_at).desc(),
                    col(UploadBatchRow.upload_id).desc(),
                )
                .offset((page - 1) * limit)
                .limit(limit),
            ).all()
        return Page(
            items=[_to_upload_view(row, int(count)) for row, count in rows],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def delete_upload(self, upload_id: str) -> bool:
        """Remove an upload; its tasks go with it through ``ON DELETE CASCADE``."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_delete(UploadBatchRow).where(col(UploadBatchRow.upload_id) == upload_id),
            )
            deleted = result.rowcount == 1
            session.commit()
        if deleted:
            logger.info("Deleted upload=%s with its tasks", upload_id)
        return deleted

    def list_tasks(
        self,
        filters: TaskFilters | None = None,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Page:
        """Filtered, sorted page of task assignments."""

        if sort_by not in TASK_SORT_COLUMNS:
            raise ValueError(
                f"Unsupported sort column: {sort_by!r}. "
                f"Expected one of: {', '.join(TASK_SORT_COLUMNS)}.",
            )
        if sort_order not in {"asc", "desc"}:
            raise ValueError(f"Unsupported sort order: {sort_order!r}")
        page = max(1, page)
        limit = max(1, limit)
        conditions = _task_conditions(filters or TaskFilters())
        sort_column = _priority_rank() if sort_by == "priority" else col(getattr(TaskRow, sort_by))
        ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()

        with Session(self.engine) as session:
            total = session.exec(
                select(func.count()).select_from(TaskRow).where(*conditions),
            ).one()
            rows = session.exec(
                select(TaskRow)
                .where(*conditions)
                .order_by(ordering, col(TaskRow.task_id).asc())
                .offset((page - 1) * limit)
                .limit(limit),
            ).all()
        return Page(
            items=[_to_task_view(row) for row in rows],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def update_task(
        self,
        task_id: str,
        *,
        status: AssignmentStatus | None = None,
        priority: TaskPriority | None = None,
    ) -> TaskView:
        """Change status and/or priority of one task."""

        if status is None and priority is None:
            raise ValueError("Nothing to update: pass a status or a priority.")
        values: dict[str, object] = {"updated_at": to_db_datetime(utc_now())}
        if status is not None:
            values["status"] = status.value
        if priority is not None:
            values["priority"] = priority.value
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(TaskRow).where(col(TaskRow.task_id) == task_id).values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                raise RuntimeError(f"Task not found: {task_id}")
            session.commit()
            row = session.exec(select(TaskRow).where(TaskRow.task_id == task_id)).one()
            return _to_task_view(row)

    def update_task_status(self, task_id: str, status: AssignmentStatus) -> TaskView:
        return self.update_task(task_id, status=status)

    def delete_task(self, task_id: str) -> bool:
        with Session(self.engine) as session:
            result = session.exec(sa_delete(TaskRow).where(col(TaskRow.task_id) == task_id))
            deleted = result.rowcount == 1
            session.commit()
        return deleted

    def dashboard_stats(self) -> DashboardStats:
        """Agent, upload and per-status task totals."""

        with Session(self.engine) as session:
            total_agents = session.exec(select(func.count()).select_from(Agent)).one()
            total_uploads = session.exec(select(func.count()).select_from(UploadBatchRow)).one()
            rows = session.exec(
                select(col(TaskRow.status), func.count()).group_by(col(TaskRow.status)),
            ).all()
        by_status = {str(status): int(count) for status, count in rows}
        return DashboardStats(
            total_agents=int(total_agents),
            total_tasks=sum(by_status.values()),
            pending_tasks=by_status.get(AssignmentStatus.PENDING.value, 0),
            in_progress_tasks=by_status.get(AssignmentStatus.IN_PROGRESS.value, 0),
            completed_tasks=by_status.get(AssignmentStatus.COMPLETED.value, 0),
            total_uploads=int(total_uploads),
        )

    def task_counts_by_worker(self, upload_id: str) -> dict[str, int]:
        """Per-assignee task counts for one upload batch."""

        assignee = func.coalesce(col(TaskRow.sub_assigned_to), col(TaskRow.assigned_to))
        with Session(self.engine) as session:
            rows = session.exec(
                select(assignee, func.count())
                .where(TaskRow.upload_id == upload_id)
                .group_by(assignee),
            ).all()
        return {str(worker_id): int(count) for worker_id, count in rows}


def _priority_rank():
    """Urgency order low < medium < high < urgent, not alphabetical."""

    return case(
        {priority.value: rank for rank, priority in enumerate(TaskPriority)},
        value=col(TaskRow.priority),
        else_=len(TaskPriority),
    )


def _task_conditions(filters: TaskFilters) -> list:
    conditions: list = []
    if filters.upload_id:
        conditions.append(col(TaskRow.upload_id) == filters.upload_id)
    if filters.agent_id:
        conditions.append(col(TaskRow.assigned_to) == filters.agent_id)
    if filters.owner_agent_id:
        conditions.append(col(TaskRow.owner_agent_id) == filters.owner_agent_id)
    if filters.sub_agent_id:
        conditions.append(col(TaskRow.sub_assigned_to) == filters.sub_agent_id)
    if filters.status is not None:
        conditions.append(col(TaskRow.status) == filters.status.value)
    if filters.priority is not None:
        conditions.append(col(TaskRow.priority) == filters.priority.value)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        conditions.append(
            or_(col(TaskRow.title).ilike(pattern), col(TaskRow.description).ilike(pattern)),
        )
    return conditions


def _to_task_row(assignment: Assignment) -> TaskRow:
    is_sub_task = assignment.owner_scope is not None
    return TaskRow(
        task_id=str(uuid4()),
        upload_id=assignment.upload_batch_id,
        title=assignment.work_item.title,
        description=assignment.work_item.description,
        status=assignment.status.value,
        priority=TaskPriority.MEDIUM.value,
        assigned_to=None if is_sub_task else assignment.worker_id,
        owner_agent_id=assignment.owner_scope,
        sub_assigned_to=assignment.worker_id if is_sub_task else None,
        created_at=to_db_datetime(assignment.created_at),
        updated_at=to_db_datetime(assignment.updated_at),
    )


def _to_agent_view(row: Agent) -> AgentView:
    return AgentView(
        agent_id=row.agent_id,
        name=row.name,
        email=row.email,
        mobile=row.mobile,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_sub_agent_view(row: SubAgent) -> SubAgentView:
    return SubAgentView(
        sub_agent_id=row.sub_agent_id,
        owner_agent_id=row.owner_agent_id,
        name=row.name,
        email=row.email,
        mobile=row.mobile,
        active=bool(row.active),
        capacity=row.capacity,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_upload_view(row: UploadBatchRow, task_count: int) -> UploadView:
    return UploadView(
        upload_id=row.upload_id,
        filename=row.filename,
        original_name=row.original_name,
        total_items=row.total_items,
        uploaded_by=row.uploaded_by,
        created_at=to_utc_aware_datetime(row.created_at),
        task_count=task_count,
    )


def _to_task_view(row: TaskRow) -> TaskView:
    return TaskView(
        task_id=row.task_id,
        upload_id=row.upload_id,
        title=row.title,
        description=row.description,
        status=AssignmentStatus(row.status),
        priority=TaskPriority(row.priority),
        assigned_to=row.assigned_to,
        owner_agent_id=row.owner_agent_id,
        sub_assigned_to=row.sub_assigned_to,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
