"""
Classification Models

Three groups of models live here:
1. ClassificationRequest - the canonical input built by the normalizer
2. ClassifierResponse - the wire schema the classifier must answer with
3. ClassificationOutcome - the typed result the rest of the system sees

CRITICAL: Outcomes are never persisted. Only a Transaction built from
an AddTransaction outcome reaches the ledger.
"""

from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger_assistant.models.transaction import Transaction, TransactionType


class InputModality(str, Enum):
    """
    Which path a submission takes.

    The classifier routes models per modality, so only one
    binary payload survives normalization.
    """
    AUDIO = "audio"
    IMAGE = "image"
    TEXT = "text"


class ClassificationAction(str, Enum):
    ADD_TRANSACTION = "ADD_TRANSACTION"
    CHAT_ONLY = "CHAT_ONLY"


class MediaPayload(BaseModel):
    """Opaque binary blob; never decoded or transcoded."""
    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: bytes = Field(..., min_length=1)


class ClassificationRequest(BaseModel):
    """One submission, ready for the classifier."""
    model_config = ConfigDict(frozen=True)

    modality: InputModality
    text: Optional[str] = None
    image: Optional[MediaPayload] = None
    audio: Optional[MediaPayload] = None
    recent_transactions: tuple[Transaction, ...] = Field(
        default=(),
        description="Recent ledger entries, most recent first"
    )
    persona: str = ""

    @model_validator(mode='after')
    def check_payloads(self) -> 'ClassificationRequest':
        """Modality must match exactly one payload path."""
        if self.image is not None and self.audio is not None:
            raise ValueError("Only one of image or audio may be present")

        if self.modality == InputModality.AUDIO and self.audio is None:
            raise ValueError("Audio modality requires an audio payload")
        if self.modality == InputModality.IMAGE and self.image is None:
            raise ValueError("Image modality requires an image payload")
        if self.modality == InputModality.TEXT and not self.text:
            raise ValueError("Text modality requires text")

        return self


# =============================================================================
# WIRE SCHEMA - what the classifier must return
# =============================================================================

class TransactionData(BaseModel):
    """The `transactionData` object of a classifier response."""

    description: str = ""
    amount: Decimal = Field(..., ge=0)
    category: str = ""
    type: TransactionType


class ClassifierResponse(BaseModel):
    """Schema-constrained classifier response body."""
    model_config = ConfigDict(populate_by_name=True)

    action: ClassificationAction
    transaction_data: Optional[TransactionData] = Field(
        default=None,
        alias="transactionData"
    )
    reply_message: str = Field(
        ...,
        min_length=1,
        alias="replyMessage"
    )


# =============================================================================
# OUTCOMES - what the rest of the system sees
# =============================================================================

class AddTransaction(BaseModel):
    """The input described a financial event."""
    model_config = ConfigDict(frozen=True)

    action: Literal[ClassificationAction.ADD_TRANSACTION] = (
        ClassificationAction.ADD_TRANSACTION
    )
    description: str
    amount: Decimal = Field(..., ge=0)
    category: str
    type: TransactionType
    reply_message: str


class ChatOnly(BaseModel):
    """Conversational input, or the fallback after a failed classification."""
    model_config = ConfigDict(frozen=True)

    action: Literal[ClassificationAction.CHAT_ONLY] = ClassificationAction.CHAT_ONLY
    reply_message: str
    is_fallback: bool = False


ClassificationOutcome = Union[AddTransaction, ChatOnly]
