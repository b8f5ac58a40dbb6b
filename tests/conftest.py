"""
Shared test fixtures.

Storage and classifier doubles live here so no test ever touches
Gemini, Google Sheets or the real filesystem data directory.
"""

from decimal import Decimal
from typing import Iterable, Optional

import pytest

from ledger_assistant.agents import TransactionClassifier
from ledger_assistant.audit import AuditLogger
from ledger_assistant.config import AppSettings, GeminiSettings
from ledger_assistant.models import (
    ChatOnly,
    NotificationCenter,
    SessionContext,
    Transaction,
    TransactionType,
    UserSettings,
)
from ledger_assistant.services.storage import (
    AuditStorageInterface,
    SettingsStorageInterface,
    StorageError,
    TransactionStorageInterface,
)
from ledger_assistant.session import LedgerSession


class InMemoryStorage(TransactionStorageInterface, SettingsStorageInterface):
    """
    Transaction and settings storage kept in dicts.

    Put an operation name in `fail_on` to make it raise StorageError.
    Every call is recorded in `calls` as (operation, owner_id, payload).
    """

    def __init__(self):
        self.transactions: dict[str, list[Transaction]] = {}
        self.user_settings: dict[str, UserSettings] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _record(self, operation: str, owner_id: str, payload=None) -> None:
        self.calls.append((operation, owner_id, payload))
        if operation in self.fail_on:
            raise StorageError(f"{operation} failed")

    def calls_to(self, operation: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == operation]

    async def list_transactions(self, owner_id: str) -> list[Transaction]:
        self._record("list_transactions", owner_id)
        return list(self.transactions.get(owner_id, []))

    async def insert_transaction(self, owner_id: str, transaction: Transaction) -> None:
        self._record("insert_transaction", owner_id, transaction)
        rows = self.transactions.setdefault(owner_id, [])
        if all(t.id != transaction.id for t in rows):
            rows.append(transaction)

    async def insert_transactions(
        self,
        owner_id: str,
        transactions: Iterable[Transaction],
    ) -> None:
        transactions = list(transactions)
        self._record("insert_transactions", owner_id, transactions)
        rows = self.transactions.setdefault(owner_id, [])
        for tx in transactions:
            if all(t.id != tx.id for t in rows):
                rows.append(tx)

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        self._record("delete_transaction", owner_id, transaction_id)
        self.transactions[owner_id] = [
            t for t in self.transactions.get(owner_id, []) if t.id != transaction_id
        ]

    async def delete_all_for_owner(self, owner_id: str) -> None:
        self._record("delete_all_for_owner", owner_id)
        self.transactions[owner_id] = []

    async def get_settings(self, owner_id: str) -> UserSettings:
        self._record("get_settings", owner_id)
        return self.user_settings.get(owner_id, UserSettings())

    async def put_settings(self, owner_id: str, settings: UserSettings) -> None:
        self._record("put_settings", owner_id, settings)
        self.user_settings[owner_id] = settings


class InMemoryAuditStorage(AuditStorageInterface):
    def __init__(self):
        self.events = []

    async def append_event(self, event) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, owner_id: str, limit: int = 100):
        owned = [e for e in self.events if e.owner_id == owner_id]
        return list(reversed(owned))[:limit]

    def event_types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


class FakeClassifier(TransactionClassifier):
    """Returns a fixed outcome and remembers every request."""

    def __init__(self, outcome=None):
        self.outcome = outcome or ChatOnly(reply_message="Hello!")
        self.requests = []

    async def classify(self, request, correlation_id=None):
        self.requests.append(request)
        return self.outcome


def make_transaction(
    id: str = "tx-1",
    amount: str = "10.00",
    type: TransactionType = TransactionType.EXPENSE,
    owner_id: Optional[str] = None,
    **kwargs,
) -> Transaction:
    return Transaction(
        id=id,
        amount=Decimal(amount),
        type=type,
        owner_id=owner_id,
        **kwargs,
    )


@pytest.fixture
def context() -> SessionContext:
    return SessionContext(user_id="user-1", display_name="Ana")


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def session(context, storage, audit_logger, notifications) -> LedgerSession:
    return LedgerSession(
        context=context,
        transaction_storage=storage,
        settings_storage=storage,
        audit_logger=audit_logger,
        notifier=notifications,
    )


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        context_window_size=10,
        assistant_name="Quirino",
        reply_language="English",
        max_upload_size_mb=1,
    )


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(
        api_key="test-key",
        primary_model="primary-model",
        audio_model="audio-model",
    )
