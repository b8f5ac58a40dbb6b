"""
Local Fallback Storage

Used when no durable store is configured. Each owner gets two JSON
documents in a data directory, one for the transaction array and
one for the settings object, keyed by owner identity.

Reads never fail: a missing or corrupt file degrades to an empty
default. Writes raise StorageError like any other backend.
"""

import hashlib
import json
import re
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog

from ledger_assistant.config import LocalStorageSettings, get_settings
from ledger_assistant.models.session import UserSettings
from ledger_assistant.models.transaction import Transaction
from ledger_assistant.services.storage.interface import (
    SettingsStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class LocalKeyValueStore:
    """Tiny key-value store: one JSON file per key."""

    def __init__(self, data_dir: str):
        self._data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key)
        if safe != key:
            # Keep distinct keys distinct after sanitizing
            digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
            safe = f"{safe}_{digest}"
        return self._data_dir / f"{safe}.json"

    def read(self, key: str, default: Any) -> Any:
        path = self.path_for(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return default
        except (OSError, ValueError) as e:
            logger.warning("local_read_failed", key=key, error=str(e))
            return default

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(value, indent=2), encoding="utf-8")
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {key}: {e}")


class LocalTransactionStorage(TransactionStorageInterface, SettingsStorageInterface):
    """
    File-backed implementation of the persistence contract.

    The whole transaction array of an owner is rewritten on every
    change, which is fine for a single user's ledger.
    """

    def __init__(
        self,
        settings: Optional[LocalStorageSettings] = None,
        store: Optional[LocalKeyValueStore] = None,
    ):
        self._settings = settings or get_settings().local_storage
        self._store = store or LocalKeyValueStore(self._settings.data_dir)

    def _data_key(self, owner_id: str) -> str:
        return f"{self._settings.data_prefix}{owner_id}"

    def _settings_key(self, owner_id: str) -> str:
        return f"{self._settings.settings_prefix}{owner_id}"

    def _load(self, owner_id: str) -> list[Transaction]:
        raw = self._store.read(self._data_key(owner_id), default=[])
        if not isinstance(raw, list):
            logger.warning("local_ledger_not_a_list", owner_id=owner_id)
            return []

        transactions = []
        for item in raw:
            try:
                transactions.append(Transaction.model_validate(item))
            except Exception as e:
                logger.warning("local_ledger_bad_record", owner_id=owner_id, error=str(e))
        return transactions

    def _save(self, owner_id: str, transactions: list[Transaction]) -> None:
        self._store.write(
            self._data_key(owner_id),
            [t.owned_by(owner_id).to_wire() for t in transactions],
        )

    async def list_transactions(self, owner_id: str) -> list[Transaction]:
        return self._load(owner_id)

    async def insert_transaction(self, owner_id: str, transaction: Transaction) -> None:
        transactions = self._load(owner_id)
        if any(t.id == transaction.id for t in transactions):
            return
        transactions.append(transaction)
        self._save(owner_id, transactions)

    async def insert_transactions(
        self,
        owner_id: str,
        transactions: Iterable[Transaction],
    ) -> None:
        existing = self._load(owner_id)
        known = {t.id for t in existing}
        for transaction in transactions:
            if transaction.id not in known:
                existing.append(transaction)
                known.add(transaction.id)
        self._save(owner_id, existing)

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        transactions = self._load(owner_id)
        remaining = [t for t in transactions if t.id != transaction_id]
        if len(remaining) != len(transactions):
            self._save(owner_id, remaining)

    async def delete_all_for_owner(self, owner_id: str) -> None:
        self._save(owner_id, [])

    async def get_settings(self, owner_id: str) -> UserSettings:
        raw = self._store.read(self._settings_key(owner_id), default={})
        try:
            return UserSettings.model_validate(raw)
        except Exception as e:
            logger.warning("local_settings_invalid", owner_id=owner_id, error=str(e))
            return UserSettings()

    async def put_settings(self, owner_id: str, settings: UserSettings) -> None:
        self._store.write(
            self._settings_key(owner_id),
            settings.model_dump(by_alias=True),
        )
