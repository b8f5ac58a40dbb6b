"""
Sync Coordinator

DESIGN DECISION: Every ledger mutation is a two-phase protocol:

    1. Apply locally (LedgerStore) and keep a handle
    2. Await the durable call
    3. On failure, run the compensation for that mutation kind

The compensation policy is a table, not scattered try/except blocks:

    kind         compensation        surfaced as
    append       none (keep local)   warning, no raise
    remove       re-insert record    error + PersistenceError
    replace_all  none (known gap)    error + PersistenceError

CRITICAL: Every durable call is scoped to the signed-in user.
A transaction owned by someone else is rejected before ANY change.
"""

import asyncio
from enum import Enum
from typing import Any, Coroutine, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from ledger_assistant.audit import AuditLogger
from ledger_assistant.ledger.store import LedgerStore, RemovalHandle
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.notification import (
    Notification,
    NotificationLevel,
    Notifier,
)
from ledger_assistant.models.session import SessionContext
from ledger_assistant.models.transaction import Transaction
from ledger_assistant.services.storage import (
    OwnerScopeError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class MutationKind(str, Enum):
    APPEND = "append"
    REMOVE = "remove"
    REPLACE_ALL = "replace_all"


class TaskCategory(str, Enum):
    """
    How a durable side effect is awaited.

    BEST_EFFORT  - runs detached, failures are logged and notified
    MUST_CONFIRM - awaited by the caller, failures are raised
    """
    BEST_EFFORT = "best_effort"
    MUST_CONFIRM = "must_confirm"


class Compensation(str, Enum):
    NONE = "none"
    REINSERT = "reinsert"


class CompensationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    compensation: Compensation
    category: TaskCategory
    level: NotificationLevel
    raises: bool
    message: str


COMPENSATIONS: dict[MutationKind, CompensationPolicy] = {
    MutationKind.APPEND: CompensationPolicy(
        compensation=Compensation.NONE,
        category=TaskCategory.BEST_EFFORT,
        level=NotificationLevel.WARNING,
        raises=False,
        message="Could not save to the cloud. The record is kept in this session only.",
    ),
    MutationKind.REMOVE: CompensationPolicy(
        compensation=Compensation.REINSERT,
        category=TaskCategory.MUST_CONFIRM,
        level=NotificationLevel.ERROR,
        raises=True,
        message="Could not delete the record. It has been restored.",
    ),
    MutationKind.REPLACE_ALL: CompensationPolicy(
        compensation=Compensation.NONE,
        category=TaskCategory.MUST_CONFIRM,
        level=NotificationLevel.ERROR,
        raises=True,
        message="The import could not be saved. The stored ledger may be incomplete.",
    ),
}


class PersistenceError(Exception):
    """A durable commit failed after the local mutation was applied."""

    def __init__(
        self,
        kind: MutationKind,
        message: str,
        phase: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.phase = phase

    @property
    def is_partial(self) -> bool:
        """A replace that failed after the remote delete went through."""
        return self.kind == MutationKind.REPLACE_ALL and self.phase == "insert"


class SyncResult(BaseModel):
    """What happened to one mutation."""
    model_config = ConfigDict(frozen=True)

    kind: MutationKind
    transaction_id: Optional[str] = None
    applied: bool
    persisted: bool
    error: Optional[str] = None


class SyncCoordinator:
    """
    Keeps the LedgerStore and the durable store in step.

    Usage:
        sync = SyncCoordinator(ledger, storage, session)
        await sync.commit_append(tx)
        task = sync.schedule_append(tx)     # detached, never raises
        await sync.commit_remove(tx.id)     # raises PersistenceError
    """

    def __init__(
        self,
        ledger: LedgerStore,
        storage: TransactionStorageInterface,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._ledger = ledger
        self._storage = storage
        self._session = session
        self._audit_logger = audit_logger
        self._notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    @property
    def owner_id(self) -> str:
        return self._session.user_id

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _scoped(self, transaction: Transaction) -> Transaction:
        """Stamp the session owner, rejecting foreign records."""
        if transaction.owner_id is not None and transaction.owner_id != self.owner_id:
            raise OwnerScopeError(
                f"Transaction {transaction.id} belongs to another owner"
            )
        return transaction.owned_by(self.owner_id)

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    def _compensate(
        self,
        kind: MutationKind,
        handle: Optional[RemovalHandle] = None,
    ) -> CompensationPolicy:
        """Apply the table entry for a failed commit of this kind."""
        policy = COMPENSATIONS[kind]
        if policy.compensation == Compensation.REINSERT and handle is not None:
            if not self._ledger.restore(handle):
                logger.info(
                    "compensation_skipped",
                    kind=kind.value,
                    transaction_id=handle.transaction.id,
                )
        if self._notifier:
            self._notifier(Notification(level=policy.level, message=policy.message))
        return policy

    def spawn_best_effort(
        self,
        coro: Coroutine[Any, Any, Any],
        description: str,
    ) -> asyncio.Task:
        """
        Run a side effect detached from the caller.

        The returned task never raises; a failure is logged and the
        task result is None.
        """
        async def runner():
            try:
                return await coro
            except Exception as e:
                logger.warning(
                    "best_effort_task_failed",
                    task=description,
                    error=str(e),
                )
                return None

        task = asyncio.get_running_loop().create_task(runner(), name=description)
        # Detached tasks need a strong reference until they finish
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_pending(self) -> None:
        """Wait for every detached task started so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    # =========================================================================
    # APPEND (best effort)
    # =========================================================================

    async def _persist_append(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID],
    ) -> SyncResult:
        try:
            await self._storage.insert_transaction(self.owner_id, transaction)
        except Exception as e:
            logger.warning(
                "transaction_save_failed",
                transaction_id=transaction.id,
                error=str(e),
            )
            await self._audit(AuditEventBuilder.save_failed(
                owner_id=self.owner_id,
                transaction_id=transaction.id,
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            self._compensate(MutationKind.APPEND)
            return SyncResult(
                kind=MutationKind.APPEND,
                transaction_id=transaction.id,
                applied=True,
                persisted=False,
                error=str(e),
            )

        await self._audit(AuditEventBuilder.transaction_saved(
            owner_id=self.owner_id,
            transaction_id=transaction.id,
            correlation_id=correlation_id,
        ))
        return SyncResult(
            kind=MutationKind.APPEND,
            transaction_id=transaction.id,
            applied=True,
            persisted=True,
        )

    def _apply_append(self, transaction: Transaction) -> Optional[Transaction]:
        transaction = self._scoped(transaction)
        if not self._ledger.append(transaction):
            return None
        return transaction

    async def commit_append(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> SyncResult:
        """
        Append locally, then insert durably.

        A duplicate id changes nothing and makes no remote call.
        A failed insert keeps the local record and is not raised.

        Raises:
            OwnerScopeError: If the transaction belongs to another owner
        """
        scoped = self._apply_append(transaction)
        if scoped is None:
            return SyncResult(
                kind=MutationKind.APPEND,
                transaction_id=transaction.id,
                applied=False,
                persisted=False,
            )
        await self._audit(AuditEventBuilder.transaction_added(
            owner_id=self.owner_id,
            transaction_id=scoped.id,
            description=scoped.description,
            amount=str(scoped.amount),
            correlation_id=correlation_id,
        ))
        return await self._persist_append(scoped, correlation_id)

    def schedule_append(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[asyncio.Task]:
        """
        Append locally now; insert durably in a detached task.

        Must be called from a running event loop.

        Returns:
            The background task, or None for a duplicate id

        Raises:
            OwnerScopeError: If the transaction belongs to another owner
        """
        scoped = self._apply_append(transaction)
        if scoped is None:
            return None

        async def persist() -> SyncResult:
            await self._audit(AuditEventBuilder.transaction_added(
                owner_id=self.owner_id,
                transaction_id=scoped.id,
                description=scoped.description,
                amount=str(scoped.amount),
                correlation_id=correlation_id,
            ))
            return await self._persist_append(scoped, correlation_id)

        return self.spawn_best_effort(persist(), f"save transaction {scoped.id}")

    # =========================================================================
    # REMOVE (must confirm)
    # =========================================================================

    async def commit_remove(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SyncResult:
        """
        Remove locally, then delete durably; restore the record on failure.

        Raises:
            OwnerScopeError: If the transaction belongs to another owner
            PersistenceError: If the durable delete failed (after restoring)
        """
        existing = self._ledger.get(transaction_id)
        if existing is None:
            return SyncResult(
                kind=MutationKind.REMOVE,
                transaction_id=transaction_id,
                applied=False,
                persisted=False,
            )
        self._scoped(existing)

        handle = self._ledger.remove(transaction_id)

        try:
            await self._storage.delete_transaction(self.owner_id, transaction_id)
        except Exception as e:
            logger.error(
                "transaction_delete_failed",
                transaction_id=transaction_id,
                error=str(e),
            )
            policy = self._compensate(MutationKind.REMOVE, handle)
            await self._audit(AuditEventBuilder.delete_rolled_back(
                owner_id=self.owner_id,
                transaction_id=transaction_id,
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            raise PersistenceError(MutationKind.REMOVE, policy.message) from e

        await self._audit(AuditEventBuilder.transaction_deleted(
            owner_id=self.owner_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))
        return SyncResult(
            kind=MutationKind.REMOVE,
            transaction_id=transaction_id,
            applied=True,
            persisted=True,
        )

    # =========================================================================
    # REPLACE ALL (must confirm, no compensation)
    # =========================================================================

    async def commit_replace_all(
        self,
        transactions: Iterable[Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> SyncResult:
        """
        Replace the ledger locally, then delete and re-insert durably.

        Not atomic. When the insert fails after the delete went through
        the durable store is left empty for this owner while the local
        ledger holds the new records.

        Raises:
            OwnerScopeError: If any transaction belongs to another owner
            PersistenceError: If either durable phase failed
        """
        scoped = [self._scoped(t) for t in transactions]
        self._ledger.replace_all(scoped)
        replaced = list(self._ledger.snapshot())

        phase = "delete"
        try:
            await self._storage.delete_all_for_owner(self.owner_id)
            phase = "insert"
            if replaced:
                await self._storage.insert_transactions(self.owner_id, replaced)
        except Exception as e:
            logger.error(
                "ledger_replace_failed",
                phase=phase,
                transaction_count=len(replaced),
                error=str(e),
            )
            policy = self._compensate(MutationKind.REPLACE_ALL)
            await self._audit(AuditEventBuilder.replace_failed(
                owner_id=self.owner_id,
                phase=phase,
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            raise PersistenceError(
                MutationKind.REPLACE_ALL,
                policy.message,
                phase=phase,
            ) from e

        await self._audit(AuditEventBuilder.ledger_replaced(
            owner_id=self.owner_id,
            transaction_count=len(replaced),
            correlation_id=correlation_id,
        ))
        return SyncResult(
            kind=MutationKind.REPLACE_ALL,
            applied=True,
            persisted=True,
        )
