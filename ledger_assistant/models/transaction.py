"""
Core Ledger Models for Ledger Assistant

These models define the strict schemas for every record that reaches
the ledger. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, backups and logging

DESIGN DECISION: A Transaction is immutable once created.
Corrections are modeled as delete + create, never as in-place edits,
so the optimistic ledger can always restore an exact prior copy.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


DEFAULT_LABEL = "General"


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_transaction_id() -> str:
    """Client-generated transaction id (also the retry idempotency key)."""
    return str(uuid4())


class TransactionType(str, Enum):
    """
    Direction of money.

    The amount is always non-negative; the sign lives here.
    """
    INCOME = "income"
    EXPENSE = "expense"


class Transaction(BaseModel):
    """
    A single financial event in the ledger.

    Wire names follow the backup/storage format (`ownerId`),
    Python code uses snake_case.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=new_transaction_id,
        min_length=1,
        description="Opaque client-generated identifier"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the event happened (ISO-8601 on the wire)"
    )
    description: str = Field(
        default=DEFAULT_LABEL,
        max_length=500,
        description="What the money was for"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, description="Non-negative amount")
    ]
    category: str = Field(
        default=DEFAULT_LABEL,
        max_length=100,
        description="Free-text category label"
    )
    type: TransactionType = Field(
        ...,
        description="income or expense"
    )
    owner_id: Optional[str] = Field(
        default=None,
        alias="ownerId",
        description="Owning session identifier; always set before persistence"
    )

    @field_validator('date')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> float:
        # Backups and storage rows carry the amount as a JSON number
        return float(amount)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the type."""
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount

    def owned_by(self, owner_id: str) -> "Transaction":
        """Return a copy stamped with the given owner."""
        if self.owner_id == owner_id:
            return self
        return self.model_copy(update={"owner_id": owner_id})

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire names, as stored in backups and sheets."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
