"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the durable backend; local JSON files are the fallback
when no durable store is configured.
"""

from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    OwnerScopeError,
    SettingsStorageInterface,
    StorageError,
    TransactionStorageInterface,
)
from ledger_assistant.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSettingsStorage,
    GoogleSheetsTransactionStorage,
)
from ledger_assistant.services.storage.local_files import (
    LocalKeyValueStore,
    LocalTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SettingsStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "OwnerScopeError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSettingsStorage",
    "GoogleSheetsTransactionStorage",
    # Local fallback
    "LocalKeyValueStore",
    "LocalTransactionStorage",
]
