"""Services package."""

from ledger_assistant.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSettingsStorage,
    GoogleSheetsTransactionStorage,
    LocalKeyValueStore,
    LocalTransactionStorage,
    OwnerScopeError,
    SettingsStorageInterface,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSettingsStorage",
    "GoogleSheetsTransactionStorage",
    "LocalKeyValueStore",
    "LocalTransactionStorage",
    "OwnerScopeError",
    "SettingsStorageInterface",
    "StorageError",
    "TransactionStorageInterface",
]
