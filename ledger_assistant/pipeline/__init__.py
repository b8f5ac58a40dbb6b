"""Input normalization package."""

from ledger_assistant.pipeline.normalizer import (
    InputError,
    InputNormalizer,
    InvalidInputError,
    recent_window,
)

__all__ = [
    "InputError",
    "InputNormalizer",
    "InvalidInputError",
    "recent_window",
]
