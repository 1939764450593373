"""
console_batch.tasks -- Executor protocol, registry, and entity executors.
"""

from console_batch.tasks.base import BatchItemExecutor, ExecutorRegistry
from console_batch.tasks.users import (
    ActionResult,
    UserActions,
    UserMutationExecutor,
)

__all__ = [
    "ActionResult",
    "BatchItemExecutor",
    "ExecutorRegistry",
    "UserActions",
    "UserMutationExecutor",
]
