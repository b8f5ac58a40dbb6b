"""
Ledger Package

In-memory ledger, its durable synchronisation and file backups.
"""

from ledger_assistant.ledger.store import LedgerSnapshot, LedgerStore, RemovalHandle
from ledger_assistant.ledger.sync import (
    COMPENSATIONS,
    Compensation,
    CompensationPolicy,
    MutationKind,
    PersistenceError,
    SyncCoordinator,
    SyncResult,
    TaskCategory,
)
from ledger_assistant.ledger.backup import (
    ImportValidationError,
    backup_filename,
    export_backup,
    parse_backup,
)

__all__ = [
    # Store
    "LedgerSnapshot",
    "LedgerStore",
    "RemovalHandle",
    # Sync
    "COMPENSATIONS",
    "Compensation",
    "CompensationPolicy",
    "MutationKind",
    "PersistenceError",
    "SyncCoordinator",
    "SyncResult",
    "TaskCategory",
    # Backup
    "ImportValidationError",
    "backup_filename",
    "export_backup",
    "parse_backup",
]
