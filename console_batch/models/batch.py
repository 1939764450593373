"""
ORM models for persisted batch outcomes.

Contract:
    BatchJobModel holds one row per settled job, BatchItemModel one row per
    target id.  Both are built from a settled ``BatchResult`` with
    ``from_result()``; nothing here is written while a job is running.

Architecture: console_batch/models. Imports from console_kernel.db.base only
    (plus the pure domain types).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from console_kernel.db.base import TrackedBase, UUIDString

from console_batch.domain.types import BatchItemStatus, BatchJob, BatchResult


class BatchJobModel(TrackedBase):
    """Persistent record of a settled batch job."""

    __tablename__ = "batch_jobs"

    __table_args__ = (
        Index("ix_batch_jobs_status", "status"),
        Index("ix_batch_jobs_operation", "operation"),
        Index("ix_batch_jobs_created_at", "created_at"),
    )

    operation: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    succeeded_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reverted_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conflicted_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    barriers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cancelled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    correlation_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["BatchItemModel"]] = relationship(
        "BatchItemModel",
        back_populates="job",
        foreign_keys="BatchItemModel.job_id",
        order_by="BatchItemModel.item_index",
    )

    @classmethod
    def from_result(
        cls,
        job: BatchJob,
        result: BatchResult,
        created_by_id: UUID,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> BatchJobModel:
        failed = len(result.failed_ids)
        return cls(
            id=job.job_id,
            operation=job.operation.value,
            status=result.status.value,
            parameters=dict(job.parameters) or None,
            total_items=job.total,
            succeeded_items=len(result.successful_ids),
            failed_items=failed,
            reverted_items=len(result.reverted_ids),
            conflicted_items=len(result.conflicted_ids),
            barriers=result.barriers,
            cancelled=result.cancelled,
            started_at=started_at,
            completed_at=completed_at,
            correlation_id=job.correlation_id,
            error_summary=f"{failed} item(s) failed" if failed else None,
            created_by_id=created_by_id,
            updated_by_id=None,
        )


class BatchItemModel(TrackedBase):
    """Outcome of one target id within a settled job."""

    __tablename__ = "batch_items"

    __table_args__ = (
        Index("ix_batch_items_job_status", "job_id", "status"),
        Index("ix_batch_items_item_key", "item_key"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("batch_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_key: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    reverted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    job: Mapped["BatchJobModel"] = relationship(
        "BatchJobModel",
        back_populates="items",
        foreign_keys=[job_id],
    )

    @classmethod
    def from_result(
        cls,
        job: BatchJob,
        result: BatchResult,
        created_by_id: UUID,
    ) -> list[BatchItemModel]:
        succeeded = set(result.successful_ids)
        reverted = set(result.reverted_ids)
        rows = []
        for index, item_id in enumerate(job.target_ids):
            error = result.error_for(item_id)
            rows.append(
                cls(
                    job_id=job.job_id,
                    item_index=index,
                    item_key=item_id,
                    status=(
                        BatchItemStatus.SUCCEEDED.value
                        if item_id in succeeded
                        else BatchItemStatus.FAILED.value
                    ),
                    error_message=error.message if error else None,
                    reverted=item_id in reverted,
                    created_by_id=created_by_id,
                    updated_by_id=None,
                )
            )
        return rows
