"""
BatchOrchestrator -- DI container for the batch-mutation engine.

Contract:
    Wires configuration, the shared SnapshotStore, the ExecutorRegistry,
    the permission gate, the resync hook, the clock and (optionally) an
    audit session into ReconciliationManager instances and the bulk facade.
    Single place where all engine dependencies are composed.

Invariants enforced:
    - Every manager built here shares the same store and clock.
    - Chunk size, concurrency cap and missing-entity policy come from the
      active EngineConfig.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from console_config import get_active_config
from console_config.loader import log_level
from console_config.schema import EngineConfig
from console_kernel.domain.clock import Clock, SystemClock
from console_kernel.logging_config import configure_logging, get_logger

from console_batch.bulk import BulkUserOperations
from console_batch.domain.permissions import AllowAllGate, PermissionGate
from console_batch.services.audit import BatchAuditRecorder
from console_batch.services.coordinator import BatchCoordinator
from console_batch.services.reconciliation import ReconciliationManager, ResyncHook
from console_batch.services.snapshot_store import SnapshotStore
from console_batch.tasks.base import ExecutorRegistry
from console_batch.tasks.users import ENTITY_KIND as USER_ENTITY_KIND
from console_batch.tasks.users import UserActions, UserMutationExecutor

logger = get_logger("batch.orchestrator")


class BatchOrchestrator:
    """DI container for the batch-mutation engine.

    Contract:
        - ``from_config()`` builds a fully wired orchestrator.
        - ``create_manager()`` returns a ReconciliationManager for one
          entity kind.
        - ``create_bulk_user_operations()`` returns the user bulk facade.

    Non-goals:
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: SnapshotStore,
        executor_registry: ExecutorRegistry,
        clock: Clock | None = None,
        gate: PermissionGate | None = None,
        resync: ResyncHook | None = None,
        audit_session: Session | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._registry = executor_registry
        self._clock = clock or SystemClock()
        self._gate = gate or AllowAllGate()
        self._resync = resync
        self._audit_session = audit_session

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: EngineConfig | None = None,
        *,
        store: SnapshotStore | None = None,
        user_actions: UserActions | None = None,
        executor_registry: ExecutorRegistry | None = None,
        clock: Clock | None = None,
        gate: PermissionGate | None = None,
        resync: ResyncHook | None = None,
        audit_session: Session | None = None,
    ) -> BatchOrchestrator:
        """Create a fully wired orchestrator.

        Args:
            config: Engine configuration; the packaged defaults if None.
            store: Shared snapshot store; a new empty one if None.
            user_actions: Registers a UserMutationExecutor for "user".
            executor_registry: Pre-populated registry to extend.
            clock: Optional clock for deterministic testing.
            gate: Permission gate; allow-all if None.
            resync: Hook called with every target id after settlement.
            audit_session: If given, settled jobs are persisted with it.
        """
        effective_config = config or get_active_config()
        configure_logging(level=log_level(effective_config))

        registry = executor_registry if executor_registry is not None else ExecutorRegistry()
        if user_actions is not None:
            registry.register(USER_ENTITY_KIND, UserMutationExecutor(user_actions))

        logger.info(
            "batch_orchestrator_created",
            extra={
                "config_checksum": effective_config.checksum,
                "entity_kinds": list(registry.list_kinds()),
                "audit_enabled": audit_session is not None,
            },
        )

        return cls(
            config=effective_config,
            store=store if store is not None else SnapshotStore(),
            executor_registry=registry,
            clock=clock,
            gate=gate,
            resync=resync,
            audit_session=audit_session,
        )

    # -------------------------------------------------------------------------
    # Managers
    # -------------------------------------------------------------------------

    def create_manager(
        self,
        entity_kind: str = USER_ENTITY_KIND,
        gate: PermissionGate | None = None,
    ) -> ReconciliationManager:
        """Build a manager for ``entity_kind``.

        Raises:
            KeyError: If no executor is registered for ``entity_kind``.
        """
        settings = self._config.batch
        audit = (
            BatchAuditRecorder(self._audit_session, clock=self._clock)
            if self._audit_session is not None
            else None
        )
        return ReconciliationManager(
            self._store,
            self._registry.get(entity_kind),
            gate=gate or self._gate,
            resync=self._resync,
            coordinator=BatchCoordinator(
                chunk_size=settings.chunk_size,
                max_concurrency=settings.max_concurrency,
            ),
            clock=self._clock,
            audit=audit,
            default_ban_reason=settings.default_ban_reason,
        )

    def create_bulk_user_operations(
        self,
        actor_id: UUID | None = None,
        gate: PermissionGate | None = None,
    ) -> BulkUserOperations:
        return BulkUserOperations(
            self.create_manager(USER_ENTITY_KIND, gate=gate),
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def executor_registry(self) -> ExecutorRegistry:
        return self._registry
