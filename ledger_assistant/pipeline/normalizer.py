"""
Input Normalizer

Turns one raw submission (text, a receipt photo, or a voice note)
plus recent ledger context into a single ClassificationRequest.

Payloads are passed through as opaque bytes. The normalizer only
decides which path the submission takes, because the classifier
routes models per modality:

    audio present  -> audio path (any image is dropped)
    image present  -> image path
    otherwise      -> text path

This is a pure transform. Bounding the ledger context is the caller's
job; recent_window() is the helper for it.
"""

from typing import Optional, Sequence

from ledger_assistant.config import AppSettings, get_settings
from ledger_assistant.models.classification import (
    ClassificationRequest,
    InputModality,
    MediaPayload,
)
from ledger_assistant.models.transaction import Transaction


SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
SUPPORTED_AUDIO_TYPES = frozenset({
    "audio/wav",
    "audio/webm",
    "audio/ogg",
    "audio/mpeg",
    "audio/mp4",
})

DEFAULT_IMAGE_TYPE = "image/jpeg"
DEFAULT_AUDIO_TYPE = "audio/wav"


class InputError(Exception):
    """Base exception for unusable submissions."""
    pass


class InvalidInputError(InputError):
    """No usable input, or a payload we refuse to send."""
    pass


def recent_window(
    transactions: Sequence[Transaction],
    limit: int,
) -> tuple[Transaction, ...]:
    """
    The last `limit` ledger entries, most recent first.

    Ledger order is insertion order, so the tail is the most recent.
    """
    if limit <= 0:
        return ()
    return tuple(reversed(transactions[-limit:]))


class InputNormalizer:
    """Builds ClassificationRequests from raw submissions."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _payload(
        self,
        data: bytes,
        mime_type: str,
        allowed: frozenset[str],
        kind: str,
    ) -> MediaPayload:
        mime_type = mime_type.lower()
        if mime_type not in allowed:
            raise InvalidInputError(
                f"Unsupported {kind} type: {mime_type}. Allowed: {sorted(allowed)}"
            )
        if len(data) > self._settings.max_upload_size_bytes:
            raise InvalidInputError(
                f"{kind.capitalize()} is larger than "
                f"{self._settings.max_upload_size_mb} MB"
            )
        return MediaPayload(mime_type=mime_type, data=data)

    def normalize(
        self,
        text: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        audio_bytes: Optional[bytes] = None,
        recent_ledger: Sequence[Transaction] = (),
        persona: str = "",
        image_mime_type: str = DEFAULT_IMAGE_TYPE,
        audio_mime_type: str = DEFAULT_AUDIO_TYPE,
    ) -> ClassificationRequest:
        """
        Build the canonical request for one submission.

        Raises:
            InvalidInputError: If no input is present, or a payload
                has an unsupported type or is too large
        """
        text = text.strip() if text else None
        text = text or None
        image_bytes = image_bytes or None
        audio_bytes = audio_bytes or None

        if text is None and image_bytes is None and audio_bytes is None:
            raise InvalidInputError("No text, image or audio was provided")

        image = audio = None
        if audio_bytes is not None:
            modality = InputModality.AUDIO
            audio = self._payload(audio_bytes, audio_mime_type, SUPPORTED_AUDIO_TYPES, "audio")
        elif image_bytes is not None:
            modality = InputModality.IMAGE
            image = self._payload(image_bytes, image_mime_type, SUPPORTED_IMAGE_TYPES, "image")
        else:
            modality = InputModality.TEXT

        return ClassificationRequest(
            modality=modality,
            text=text,
            image=image,
            audio=audio,
            recent_transactions=tuple(recent_ledger),
            persona=persona.strip(),
        )
