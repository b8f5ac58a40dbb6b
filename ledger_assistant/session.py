"""
Ledger Session

Owns everything that belongs to one signed-in user:
- the SessionContext (identity, read-only)
- the LedgerStore (authoritative in-memory ledger)
- the UserSettings (persona override)
- the SyncCoordinator bound to that identity

DESIGN DECISION: There is no global ledger. The session is created on
sign-in, loaded from storage once, and cleared on sign-out.
"""

import asyncio
from typing import Optional

import structlog

from ledger_assistant.audit import AuditLogger
from ledger_assistant.ledger.store import LedgerStore
from ledger_assistant.ledger.sync import SyncCoordinator
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.notification import (
    Notification,
    NotificationLevel,
    Notifier,
)
from ledger_assistant.models.session import SessionContext, UserSettings
from ledger_assistant.services.storage import (
    SettingsStorageInterface,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class LedgerSession:
    """
    One signed-in user's ledger and settings.

    Usage:
        session = LedgerSession(context, storage, storage)
        await session.start()
        ...
        await session.end()
    """

    def __init__(
        self,
        context: SessionContext,
        transaction_storage: TransactionStorageInterface,
        settings_storage: SettingsStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.context = context
        self.ledger = LedgerStore()
        self.settings = UserSettings()
        self._transaction_storage = transaction_storage
        self._settings_storage = settings_storage
        self._audit_logger = audit_logger
        self._notifier = notifier
        self.sync = SyncCoordinator(
            ledger=self.ledger,
            storage=transaction_storage,
            session=context,
            audit_logger=audit_logger,
            notifier=notifier,
        )

    @property
    def user_id(self) -> str:
        return self.context.user_id

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    def greeting(self, assistant_name: str) -> str:
        return (
            f"Hello {self.context.display_name}! I'm {assistant_name}. "
            "How are your finances today?"
        )

    async def start(self) -> bool:
        """
        Load the ledger and settings concurrently.

        A failed load leaves the session empty and usable.

        Returns:
            True if both loads succeeded
        """
        try:
            transactions, settings = await asyncio.gather(
                self._transaction_storage.list_transactions(self.user_id),
                self._settings_storage.get_settings(self.user_id),
            )
        except Exception as e:
            logger.error("session_load_failed", owner_id=self.user_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                )
            if self._notifier:
                self._notifier(Notification(
                    level=NotificationLevel.WARNING,
                    message="Could not load your saved data. Starting with an empty ledger.",
                ))
            return False

        self.ledger.replace_all(
            t.owned_by(self.user_id)
            for t in transactions
            if t.owner_id in (None, self.user_id)
        )
        self.settings = settings

        await self._audit(AuditEventBuilder.session_started(
            owner_id=self.user_id,
            transaction_count=len(self.ledger),
        ))
        return True

    async def _save_settings(self, settings: UserSettings) -> None:
        try:
            await self._settings_storage.put_settings(self.user_id, settings)
        except Exception as e:
            await self._audit(AuditEventBuilder.settings_save_failed(
                owner_id=self.user_id,
                error_message=str(e),
            ))
            raise
        await self._audit(AuditEventBuilder.settings_saved(owner_id=self.user_id))

    def update_settings(self, settings: UserSettings) -> asyncio.Task:
        """
        Apply new settings immediately; save them in the background.

        Must be called from a running event loop.
        """
        self.settings = settings
        return self.sync.spawn_best_effort(
            self._save_settings(settings),
            "save settings",
        )

    async def end(self) -> None:
        """Sign-out: clear the ledger and settings."""
        self.ledger.clear()
        self.settings = UserSettings()
        await self._audit(AuditEventBuilder.session_ended(owner_id=self.user_id))
