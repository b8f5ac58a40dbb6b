"""
Ledger Backup

File export and import of the whole ledger.

Format: a pretty-printed (indent 2) JSON array of transactions with
their wire names (`ownerId`, ISO-8601 `date`, numeric `amount`).

CRITICAL: An import is all-or-nothing. Every element is checked before
anything is returned, so a rejected file never touches the ledger.
"""

import json
import re
from datetime import date
from typing import Iterable

from pydantic import ValidationError

from ledger_assistant.models.transaction import Transaction


REQUIRED_FIELDS = ("id", "amount", "date")


class ImportValidationError(Exception):
    """The backup file is not a valid ledger export."""
    pass


def export_backup(transactions: Iterable[Transaction]) -> str:
    return json.dumps(
        [t.to_wire() for t in transactions],
        indent=2,
        ensure_ascii=False,
    )


def parse_backup(text: str) -> list[Transaction]:
    """
    Validate a backup file and return its transactions.

    An empty array is a valid (empty) ledger.

    Raises:
        ImportValidationError: If the file is not a JSON array, or any
            element lacks a non-empty id, amount or date, or fails
            Transaction validation
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportValidationError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ImportValidationError("Backup must be a JSON array of transactions")

    transactions = []
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            raise ImportValidationError(f"Element {position} is not an object")

        missing = [
            key for key in REQUIRED_FIELDS
            if item.get(key) is None or item.get(key) == ""
        ]
        if missing:
            raise ImportValidationError(
                f"Element {position} is missing {', '.join(missing)}"
            )

        try:
            transactions.append(Transaction.model_validate(item))
        except ValidationError as e:
            raise ImportValidationError(
                f"Element {position} is not a valid transaction: {e}"
            ) from e

    return transactions


def backup_filename(name: str, today: date) -> str:
    """Suggested download name, e.g. ledger_backup_Ana_2024-05-01.json."""
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "user"
    return f"ledger_backup_{slug}_{today.isoformat()}.json"
