"""AI classifier package."""

from ledger_assistant.agents.classifier import (
    FALLBACK_REPLY,
    ClassificationError,
    GeminiClassifierGateway,
    TransactionClassifier,
    parse_classifier_response,
)

__all__ = [
    "FALLBACK_REPLY",
    "ClassificationError",
    "GeminiClassifierGateway",
    "TransactionClassifier",
    "parse_classifier_response",
]
