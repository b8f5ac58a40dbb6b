"""
Ledger Summary Queries

DESIGN DECISION: Every number shown to the user is computed here,
DETERMINISTICALLY, from the ledger snapshot. The classifier never
answers "how much did I spend" from its own memory.

All functions are pure and take any sequence of Transactions
(normally LedgerStore.snapshot()).
"""

from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from ledger_assistant.models.transaction import Transaction, TransactionType


class LedgerSummary(BaseModel):
    """Totals for a set of transactions."""

    income: Decimal = Field(default=Decimal("0"), description="Sum of income amounts")
    expense: Decimal = Field(default=Decimal("0"), description="Sum of expense amounts")
    transaction_count: int = 0

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


def summarize(transactions: Iterable[Transaction]) -> LedgerSummary:
    income = Decimal("0")
    expense = Decimal("0")
    count = 0
    for tx in transactions:
        count += 1
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount
    return LedgerSummary(income=income, expense=expense, transaction_count=count)


def expenses_by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Expense totals per category, in order of first appearance."""
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.type != TransactionType.EXPENSE:
            continue
        totals[tx.category] = totals.get(tx.category, Decimal("0")) + tx.amount
    return [CategoryTotal(category=k, total=v) for k, v in totals.items()]


def _local_date(tx: Transaction, tz: Optional[tzinfo]) -> date:
    return tx.date.astimezone(tz).date() if tz else tx.date.date()


def filter_transactions(
    transactions: Iterable[Transaction],
    year: Optional[int] = None,
    month: Optional[int] = None,
    type: Optional[TransactionType] = None,
    tz: Optional[tzinfo] = None,
) -> list[Transaction]:
    """
    Filter by calendar month and/or direction.

    Args:
        year, month: Keep only transactions in that month (either may be None)
        type: Keep only income or only expense; None keeps both
        tz: Timezone the calendar is read in; None uses each date's own offset
    """
    result = []
    for tx in transactions:
        day = _local_date(tx, tz)
        if year is not None and day.year != year:
            continue
        if month is not None and day.month != month:
            continue
        if type is not None and tx.type != type:
            continue
        result.append(tx)
    return result


def group_by_day(
    transactions: Iterable[Transaction],
    tz: Optional[tzinfo] = None,
) -> list[tuple[date, list[Transaction]]]:
    """Newest first, both the days and the transactions within each day."""
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    groups: dict[date, list[Transaction]] = {}
    for tx in ordered:
        groups.setdefault(_local_date(tx, tz), []).append(tx)
    return list(groups.items())


def day_label(day: date, today: Optional[date] = None) -> str:
    today = today or datetime.now().date()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return day.strftime("%d/%m/%Y")
