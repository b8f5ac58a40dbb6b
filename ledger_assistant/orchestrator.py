"""
Main Orchestrator for Ledger Assistant

This module ties together all the components and defines the
end-to-end flows for:
1. Submission (text/image/audio -> normalize -> classify -> ledger -> durable store)
2. Backup (ledger -> JSON file, JSON file -> validated replace)
3. Settings (persona override, saved in the background)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Unusable input is rejected before any network call
- The classifier only PROPOSES a record; the ledger decides
- Local changes are optimistic, durable failures are compensated
- Every step is audited under one correlation id

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ledger_assistant.agents import GeminiClassifierGateway, TransactionClassifier
from ledger_assistant.audit import AuditLogger, create_correlation_id
from ledger_assistant.config import AppSettings, get_settings
from ledger_assistant.ledger.backup import (
    ImportValidationError,
    backup_filename,
    export_backup,
    parse_backup,
)
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.classification import (
    AddTransaction,
    ClassificationOutcome,
)
from ledger_assistant.models.notification import NotificationCenter, Notifier
from ledger_assistant.models.session import SessionContext, UserSettings
from ledger_assistant.models.transaction import Transaction
from ledger_assistant.pipeline import InputError, InputNormalizer, recent_window
from ledger_assistant.pipeline.normalizer import DEFAULT_AUDIO_TYPE, DEFAULT_IMAGE_TYPE
from ledger_assistant.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSettingsStorage,
    GoogleSheetsTransactionStorage,
    LocalTransactionStorage,
)
from ledger_assistant.session import LedgerSession


logger = structlog.get_logger(__name__)


class SubmissionResult(BaseModel):
    """What one submission produced."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    correlation_id: UUID
    outcome: ClassificationOutcome
    transaction: Optional[Transaction] = Field(
        default=None,
        description="The record appended to the ledger, if any"
    )
    reply: str = Field(..., description="Text shown to the user")
    sync_task: Optional[asyncio.Task] = Field(
        default=None,
        exclude=True,
        description="Background save of the new record"
    )


def describe_submission(
    text: Optional[str],
    has_image: bool,
    has_audio: bool,
) -> str:
    """The user's side of the chat for one submission."""
    if text and text.strip():
        return text.strip()
    if has_audio:
        return "[Audio sent]"
    if has_image:
        return "[Image sent]"
    return ""


class SubmissionFlow:
    """
    Orchestrates one submission.

    Flow:
    1. Normalize -> one ClassificationRequest (InputError aborts here)
    2. Classify  -> AddTransaction | ChatOnly (never raises)
    3. Append    -> optimistic, the record is visible immediately
    4. Save      -> durable insert in the background (best effort)
    """

    def __init__(
        self,
        session: LedgerSession,
        classifier: Optional[TransactionClassifier] = None,
        normalizer: Optional[InputNormalizer] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._session = session
        self._settings = settings or get_settings().app
        self._normalizer = normalizer or InputNormalizer(self._settings)
        self._classifier = classifier or GeminiClassifierGateway(
            app_settings=self._settings,
            audit_logger=audit_logger,
        )
        self._audit_logger = audit_logger

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    async def submit(
        self,
        text: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        audio_bytes: Optional[bytes] = None,
        image_mime_type: str = DEFAULT_IMAGE_TYPE,
        audio_mime_type: str = DEFAULT_AUDIO_TYPE,
        wait_for_save: bool = False,
    ) -> SubmissionResult:
        """
        Process one raw submission end to end.

        Args:
            wait_for_save: Await the durable insert instead of scheduling it

        Raises:
            InputError: If the submission has no usable input
        """
        correlation_id = create_correlation_id()
        owner_id = self._session.user_id

        try:
            request = self._normalizer.normalize(
                text=text,
                image_bytes=image_bytes,
                audio_bytes=audio_bytes,
                recent_ledger=recent_window(
                    self._session.ledger.snapshot(),
                    self._settings.context_window_size,
                ),
                persona=self._session.settings.persona_text,
                image_mime_type=image_mime_type,
                audio_mime_type=audio_mime_type,
            )
        except InputError as e:
            await self._audit(AuditEventBuilder.submission_rejected(
                owner_id=owner_id,
                reason=str(e),
                correlation_id=correlation_id,
            ))
            raise

        await self._audit(AuditEventBuilder.submission_received(
            owner_id=owner_id,
            modality=request.modality.value,
            correlation_id=correlation_id,
        ))

        outcome = await self._classifier.classify(request, correlation_id)

        if not isinstance(outcome, AddTransaction):
            return SubmissionResult(
                correlation_id=correlation_id,
                outcome=outcome,
                reply=outcome.reply_message,
            )

        transaction = Transaction(
            description=outcome.description,
            amount=outcome.amount,
            category=outcome.category,
            type=outcome.type,
            owner_id=owner_id,
        )

        sync_task = None
        if wait_for_save:
            await self._session.sync.commit_append(transaction, correlation_id)
        else:
            sync_task = self._session.sync.schedule_append(transaction, correlation_id)

        logger.info(
            "transaction_submitted",
            transaction_id=transaction.id,
            type=transaction.type.value,
            correlation_id=str(correlation_id),
        )

        return SubmissionResult(
            correlation_id=correlation_id,
            outcome=outcome,
            transaction=transaction,
            reply=(
                f"Added {transaction.description} ({transaction.amount:.2f}). "
                f"{outcome.reply_message}"
            ),
            sync_task=sync_task,
        )


class BackupFlow:
    """
    Export and import of the whole ledger.

    Import is all-or-nothing on validation; the replace itself is
    must-confirm and raises PersistenceError on a durable failure.
    """

    def __init__(
        self,
        session: LedgerSession,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._audit_logger = audit_logger

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    def build_export(self, today: Optional[date] = None) -> tuple[str, str]:
        """
        Render the backup file without side effects.

        Returns:
            (file_name, json_text)
        """
        name = backup_filename(
            self._session.context.display_name,
            today or date.today(),
        )
        return name, export_backup(self._session.ledger.snapshot())

    async def record_export(self) -> None:
        """Audit a backup the user actually downloaded."""
        await self._audit(AuditEventBuilder.backup_exported(
            owner_id=self._session.user_id,
            transaction_count=len(self._session.ledger),
        ))

    async def import_backup(self, text: str) -> int:
        """
        Replace the ledger with the contents of a backup file.

        Records are re-homed to the signed-in user.

        Returns:
            Number of transactions now in the ledger

        Raises:
            ImportValidationError: If the file is rejected (nothing changes)
            PersistenceError: If the durable replace failed
        """
        correlation_id = create_correlation_id()
        owner_id = self._session.user_id

        try:
            transactions = parse_backup(text)
        except ImportValidationError as e:
            await self._audit(AuditEventBuilder.backup_rejected(
                owner_id=owner_id,
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            raise

        transactions = [
            t.model_copy(update={"owner_id": owner_id}) for t in transactions
        ]
        await self._session.sync.commit_replace_all(transactions, correlation_id)

        count = len(self._session.ledger)
        await self._audit(AuditEventBuilder.backup_imported(
            owner_id=owner_id,
            transaction_count=count,
            correlation_id=correlation_id,
        ))
        return count


def update_persona(session: LedgerSession, persona_text: str) -> asyncio.Task:
    """
    Change the assistant persona; takes effect on the next submission.

    The save runs in the background and never raises.
    """
    settings = UserSettings.model_validate({
        **session.settings.model_dump(),
        "persona_text": persona_text.strip(),
    })
    return session.update_settings(settings)


def create_app_components(
    context: SessionContext,
    use_storage: bool = True,
    notifier: Optional[Notifier] = None,
) -> tuple[LedgerSession, SubmissionFlow, BackupFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        context: The signed-in identity
        use_storage: Whether to try Google Sheets storage.
                    Local JSON files are used when it is off or not configured.
        notifier: Where user-facing notifications go

    Returns:
        (session, submission_flow, backup_flow, sheets_client)
    """
    sheets_client = None
    notifier = notifier or NotificationCenter()

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            settings_storage = GoogleSheetsSettingsStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue with local files
            logger.warning("durable_storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        local_storage = LocalTransactionStorage()
        transaction_storage = local_storage
        settings_storage = local_storage
        audit_logger = AuditLogger()  # Local-only logging

    session = LedgerSession(
        context=context,
        transaction_storage=transaction_storage,
        settings_storage=settings_storage,
        audit_logger=audit_logger,
        notifier=notifier,
    )

    submission_flow = SubmissionFlow(session=session, audit_logger=audit_logger)
    backup_flow = BackupFlow(session=session, audit_logger=audit_logger)

    return session, submission_flow, backup_flow, sheets_client
