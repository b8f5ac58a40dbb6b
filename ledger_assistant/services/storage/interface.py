"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Fall back to local files when no durable store is configured
3. Use in-memory storage for testing
4. Keep the sync logic decoupled from storage implementation

CRITICAL: Every operation is scoped by an owner identifier.
No implementation may return or modify another owner's records.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from ledger_assistant.models.audit import AuditEvent
from ledger_assistant.models.session import UserSettings
from ledger_assistant.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, local files, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_transactions(self, owner_id: str) -> list[Transaction]:
        """
        List every transaction belonging to an owner.

        Args:
            owner_id: The owning session identifier

        Returns:
            Transactions in insertion order
        """
        pass

    @abstractmethod
    async def insert_transaction(self, owner_id: str, transaction: Transaction) -> None:
        """
        Insert one transaction.

        Ids are idempotency keys: inserting an id the owner
        already has is a no-op.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def insert_transactions(
        self,
        owner_id: str,
        transactions: Iterable[Transaction],
    ) -> None:
        """
        Insert many transactions in one call.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        """
        Delete one transaction scoped to (transaction_id, owner_id).

        Deleting an id that does not exist is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def delete_all_for_owner(self, owner_id: str) -> None:
        """
        Delete every transaction of an owner.

        Raises:
            StorageError: If the delete fails
        """
        pass

    async def replace_all_transactions(
        self,
        owner_id: str,
        transactions: list[Transaction],
    ) -> None:
        """
        Replace an owner's transactions: delete, then insert.

        NOT atomic. If the insert fails after the delete succeeded
        the owner is left with no remote transactions.
        """
        await self.delete_all_for_owner(owner_id)
        if transactions:
            await self.insert_transactions(owner_id, transactions)


class SettingsStorageInterface(ABC):
    """Abstract interface for user settings storage."""

    @abstractmethod
    async def get_settings(self, owner_id: str) -> UserSettings:
        """
        Load settings for an owner.

        Returns:
            Stored settings, or defaults when none exist
        """
        pass

    @abstractmethod
    async def put_settings(self, owner_id: str, settings: UserSettings) -> None:
        """
        Create or overwrite settings for an owner.

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        owner_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events of an owner.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class OwnerScopeError(StorageError):
    """A record does not belong to the owner the operation is scoped to."""
    pass
