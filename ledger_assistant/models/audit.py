"""
Audit Models for Ledger Assistant

Every significant step of the ingestion and sync pipeline is logged.
This provides:
1. Traceability of every ledger mutation and its durable outcome
2. Debugging information when the classifier or store misbehaves
3. A record of every rollback and known inconsistency

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_assistant.models.transaction import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

    # Ingestion
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_REJECTED = "submission_rejected"
    CLASSIFICATION_COMPLETED = "classification_completed"
    CLASSIFICATION_FAILED = "classification_failed"

    # Ledger and durable sync
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_SAVED = "transaction_saved"
    SAVE_FAILED = "save_failed"
    TRANSACTION_DELETED = "transaction_deleted"
    DELETE_ROLLED_BACK = "delete_rolled_back"
    LEDGER_REPLACED = "ledger_replaced"
    REPLACE_FAILED = "replace_failed"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_REJECTED = "backup_rejected"

    # Settings
    SETTINGS_SAVED = "settings_saved"
    SETTINGS_SAVE_FAILED = "settings_save_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="Session the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'ledger', 'submission')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(owner_id, tx_id, ...)
        event = AuditEventBuilder.delete_rolled_back(owner_id, tx_id, ...)
    """

    @staticmethod
    def session_started(owner_id: str, transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            owner_id=owner_id,
            entity_type="session",
            entity_id=owner_id,
            description=f"Session started with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def session_ended(owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            owner_id=owner_id,
            entity_type="session",
            entity_id=owner_id,
            description="Session ended, ledger cleared",
            is_user_action=True,
        )

    @staticmethod
    def submission_received(
        owner_id: str,
        modality: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_RECEIVED,
            owner_id=owner_id,
            entity_type="submission",
            correlation_id=correlation_id,
            description=f"Submission received via {modality}",
            details={"modality": modality},
            is_user_action=True,
        )

    @staticmethod
    def submission_rejected(
        owner_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="submission",
            correlation_id=correlation_id,
            description="Submission rejected before classification",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def classification_completed(
        owner_id: Optional[str],
        action: str,
        model_name: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLASSIFICATION_COMPLETED,
            owner_id=owner_id,
            entity_type="submission",
            correlation_id=correlation_id,
            description=f"Classifier answered {action}",
            details={"action": action, "model": model_name},
        )

    @staticmethod
    def classification_failed(
        owner_id: Optional[str],
        model_name: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLASSIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="submission",
            correlation_id=correlation_id,
            description="Classification failed, fallback reply used",
            details={"model": model_name},
            error_message=error_message,
        )

    @staticmethod
    def transaction_added(
        owner_id: str,
        transaction_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added locally: {description} - {amount}",
            details={"description": description, "amount": amount},
        )

    @staticmethod
    def transaction_saved(
        owner_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction saved to durable store",
        )

    @staticmethod
    def save_failed(
        owner_id: str,
        transaction_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Durable save failed, transaction kept locally",
            error_message=error_message,
        )

    @staticmethod
    def transaction_deleted(
        owner_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def delete_rolled_back(
        owner_id: str,
        transaction_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Durable delete failed, transaction restored",
            error_message=error_message,
        )

    @staticmethod
    def ledger_replaced(
        owner_id: str,
        transaction_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            owner_id=owner_id,
            entity_type="ledger",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Ledger replaced with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def replace_failed(
        owner_id: str,
        phase: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPLACE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="ledger",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Bulk replace failed during {phase}",
            details={"phase": phase},
            error_message=error_message,
        )

    @staticmethod
    def backup_exported(owner_id: str, transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            owner_id=owner_id,
            entity_type="ledger",
            entity_id=owner_id,
            description=f"Backup exported with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        owner_id: str,
        transaction_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            owner_id=owner_id,
            entity_type="ledger",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Backup imported with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(
        owner_id: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="ledger",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Backup file rejected",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def settings_saved(owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_SAVED,
            owner_id=owner_id,
            entity_type="settings",
            entity_id=owner_id,
            description="Settings saved",
        )

    @staticmethod
    def settings_save_failed(owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_SAVE_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="settings",
            entity_id=owner_id,
            description="Settings save failed",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
