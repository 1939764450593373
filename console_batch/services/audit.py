"""
BatchAuditRecorder -- Persists settled batch jobs and their items.

Contract:
    ``record()`` adds one BatchJobModel and one BatchItemModel per target
    and flushes.  ``get_job()`` / ``get_job_items()`` read them back.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Is never consulted while a job runs; persistence is after the fact.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from console_kernel.domain.clock import Clock, SystemClock
from console_kernel.exceptions import BatchJobNotFoundError
from console_kernel.logging_config import get_logger

from console_batch.domain.types import BatchJob, BatchResult
from console_batch.models.batch import BatchItemModel, BatchJobModel

logger = get_logger("batch.audit")

# Attribution for jobs submitted without an actor.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


class BatchAuditRecorder:
    """Writes the audit trail of settled batch jobs."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def record(
        self,
        job: BatchJob,
        result: BatchResult,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> BatchJobModel:
        actor_id = job.actor_id or SYSTEM_ACTOR_ID
        now = self._clock.now()

        job_model = BatchJobModel.from_result(
            job,
            result,
            created_by_id=actor_id,
            started_at=started_at,
            completed_at=completed_at or now,
        )
        job_model.created_at = now
        self._session.add(job_model)
        self._session.flush()

        for item_model in BatchItemModel.from_result(job, result, created_by_id=actor_id):
            item_model.created_at = now
            self._session.add(item_model)
        self._session.flush()

        logger.info(
            "batch_job_recorded",
            extra={
                "job_id": str(job.job_id),
                "status": result.status.value,
                "succeeded": len(result.successful_ids),
                "failed": len(result.failed_ids),
            },
        )
        return job_model

    def get_job(self, job_id: UUID) -> BatchJobModel:
        """
        Raises:
            BatchJobNotFoundError: If no job was recorded under ``job_id``.
        """
        model = self._session.get(BatchJobModel, job_id)
        if model is None:
            raise BatchJobNotFoundError(str(job_id))
        return model

    def get_job_items(self, job_id: UUID) -> tuple[BatchItemModel, ...]:
        models = self._session.execute(
            select(BatchItemModel)
            .where(BatchItemModel.job_id == job_id)
            .order_by(BatchItemModel.item_index)
        ).scalars().all()
        return tuple(models)
