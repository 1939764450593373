"""
console_batch.models -- ORM models for persisted batch outcomes.

Architecture: console_batch/models. Imports from console_kernel.db.base only.
"""

from console_batch.models.batch import BatchItemModel, BatchJobModel

__all__ = [
    "BatchItemModel",
    "BatchJobModel",
]
