"""Use-case services for distributing upload batches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from agent_dispatch.distribution.flat import distribute_flat
from agent_dispatch.distribution.models import (
    Assignment,
    DistributionResult,
    UploadCreate,
    WorkItem,
)
from agent_dispatch.distribution.repository import DispatchRepository
from agent_dispatch.distribution.rotation import RotationDistributor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UploadBatch:
    """Parsed upload handed over by the ingestion side."""

    items: tuple[WorkItem, ...]
    uploaded_by: str
    filename: str = "inline"
    original_name: str | None = None


@dataclass(slots=True)
class BatchOutcome:
    upload_id: str
    result: DistributionResult


class DistributionService:
    """Coordinates distribution with upload and task persistence.

    Nothing is written when a distributor raises. On success the upload
    record and its tasks are committed together, before the rotation cursor.
    """

    def __init__(
        self,
        *,
        repository: DispatchRepository,
        flat_agent_limit: int = 5,
    ) -> None:
        self.repository = repository
        self.flat_agent_limit = flat_agent_limit
        self.rotation = RotationDistributor(
            cursor_store=repository.cursors,
            worker_directory=repository,
        )

    def distribute_to_agents(self, batch: UploadBatch) -> BatchOutcome:
        """Split the batch evenly across the first registered agents."""

        upload_id = str(uuid4())
        agents = self.repository.list_agents(limit=self.flat_agent_limit)
        result = distribute_flat(
            batch.items,
            [agent.as_worker() for agent in agents],
            upload_id,
        )
        self.repository.save_batch(_upload_record(upload_id, batch), result.assignments)
        logger.info(
            "Distributed batch=%s across %d agents: %d tasks",
            upload_id,
            len(agents),
            result.assigned_count,
        )
        return BatchOutcome(upload_id=upload_id, result=result)

    def distribute_to_sub_agents(self, batch: UploadBatch, owner_scope: str) -> BatchOutcome:
        """Rotate the batch across the owner's active sub-agents."""

        if not owner_scope.strip():
            raise ValueError("Owner scope is required for sub-agent distribution.")
        upload_id = str(uuid4())
        upload = _upload_record(upload_id, batch)

        def _persist(assignments: list[Assignment]) -> None:
            self.repository.save_batch(upload, assignments)

        result = self.rotation.distribute(
            batch.items,
            owner_scope,
            upload_id,
            persist=_persist,
        )
        return BatchOutcome(upload_id=upload_id, result=result)


def _upload_record(upload_id: str, batch: UploadBatch) -> UploadCreate:
    return UploadCreate(
        upload_id=upload_id,
        filename=batch.filename,
        original_name=batch.original_name or batch.filename,
        total_items=len(batch.items),
        uploaded_by=batch.uploaded_by,
    )
