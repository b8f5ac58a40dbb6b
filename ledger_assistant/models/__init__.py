"""
Data Models Package

This package contains all Pydantic models used in the Ledger Assistant.
All data flowing through the pipeline must conform to these schemas.
"""

from ledger_assistant.models.transaction import (
    Transaction,
    TransactionType,
    new_transaction_id,
    utc_now,
)
from ledger_assistant.models.classification import (
    AddTransaction,
    ChatOnly,
    ClassificationAction,
    ClassificationOutcome,
    ClassificationRequest,
    ClassifierResponse,
    InputModality,
    MediaPayload,
    TransactionData,
)
from ledger_assistant.models.session import SessionContext, UserSettings
from ledger_assistant.models.notification import (
    Notification,
    NotificationCenter,
    NotificationLevel,
    Notifier,
)
from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Transaction",
    "TransactionType",
    "new_transaction_id",
    "utc_now",
    # Classification models
    "AddTransaction",
    "ChatOnly",
    "ClassificationAction",
    "ClassificationOutcome",
    "ClassificationRequest",
    "ClassifierResponse",
    "InputModality",
    "MediaPayload",
    "TransactionData",
    # Session models
    "SessionContext",
    "UserSettings",
    # Notifications
    "Notification",
    "NotificationCenter",
    "NotificationLevel",
    "Notifier",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
