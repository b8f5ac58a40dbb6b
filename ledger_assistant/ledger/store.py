"""
Ledger Store

The in-memory, authoritative ledger for one signed-in session.

DESIGN DECISION: Mutations are OPTIMISTIC.
The snapshot always reflects the most recently requested mutation,
whether or not the durable store has confirmed it yet. Durability and
rollback are the SyncCoordinator's job; this class only offers the
primitives it needs (remove returns a handle, restore takes it back).

Ordering is insertion order. Ids are unique within the ledger.
"""

from typing import Callable, Iterable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ledger_assistant.models.transaction import Transaction


logger = structlog.get_logger(__name__)


LedgerSnapshot = tuple[Transaction, ...]
Subscriber = Callable[[LedgerSnapshot], None]


class RemovalHandle(BaseModel):
    """Everything needed to undo a remove."""
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    index: int = Field(..., ge=0, description="Position before removal")
    generation: int = Field(
        default=0,
        ge=0,
        description="Ledger generation the removal happened in",
    )


class LedgerStore:
    """
    Ordered, id-unique collection of Transactions.

    Usage:
        ledger = LedgerStore()
        ledger.append(tx)
        handle = ledger.remove(tx.id)
        ledger.restore(handle)
    """

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._transactions: list[Transaction] = []
        self._subscribers: list[Subscriber] = []
        # Bumped by every whole-ledger swap
        self._generation = 0
        self._load(transactions)

    def _load(self, transactions: Iterable[Transaction]) -> None:
        seen: set[str] = set()
        loaded = []
        for tx in transactions:
            if tx.id in seen:
                continue
            seen.add(tx.id)
            loaded.append(tx)
        self._transactions = loaded

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            callback(snapshot)

    def _index_of(self, transaction_id: str) -> Optional[int]:
        for i, tx in enumerate(self._transactions):
            if tx.id == transaction_id:
                return i
        return None

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def append(self, transaction: Transaction) -> bool:
        """
        Add a transaction at the end.

        Returns:
            False if a transaction with the same id is already present
        """
        if transaction.id in self:
            logger.debug("ledger_duplicate_append", transaction_id=transaction.id)
            return False
        self._transactions.append(transaction)
        self._notify()
        return True

    def remove(self, transaction_id: str) -> Optional[RemovalHandle]:
        """
        Remove a transaction by id.

        Returns:
            A handle for restore(), or None if the id is absent
        """
        index = self._index_of(transaction_id)
        if index is None:
            return None
        transaction = self._transactions.pop(index)
        self._notify()
        return RemovalHandle(
            transaction=transaction,
            index=index,
            generation=self._generation,
        )

    def restore(self, handle: RemovalHandle) -> bool:
        """
        Put a removed transaction back at its original position.

        The position is clamped to the current length. A transaction
        whose id has reappeared in the meantime is not duplicated, and
        a handle from before a replace_all() or clear() is stale.
        """
        if handle.generation != self._generation:
            logger.debug("ledger_stale_restore", transaction_id=handle.transaction.id)
            return False
        if handle.transaction.id in self:
            return False
        index = min(handle.index, len(self._transactions))
        self._transactions.insert(index, handle.transaction)
        self._notify()
        return True

    def replace_all(self, transactions: Iterable[Transaction]) -> None:
        """Swap the whole snapshot. Duplicate ids keep the first occurrence."""
        self._load(transactions)
        self._generation += 1
        self._notify()

    def clear(self) -> None:
        self.replace_all(())

    # =========================================================================
    # READS
    # =========================================================================

    def snapshot(self) -> LedgerSnapshot:
        return tuple(self._transactions)

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, transaction_id: str) -> Optional[Transaction]:
        index = self._index_of(transaction_id)
        return None if index is None else self._transactions[index]

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback that receives the new snapshot after every mutation.

        Returns:
            A callable that unsubscribes the callback
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._transactions)

    def __contains__(self, transaction_id: object) -> bool:
        return any(tx.id == transaction_id for tx in self._transactions)
