"""Ledger summary queries package."""

from ledger_assistant.queries.summary import (
    CategoryTotal,
    LedgerSummary,
    day_label,
    expenses_by_category,
    filter_transactions,
    group_by_day,
    summarize,
)

__all__ = [
    "CategoryTotal",
    "LedgerSummary",
    "day_label",
    "expenses_by_category",
    "filter_transactions",
    "group_by_day",
    "summarize",
]
