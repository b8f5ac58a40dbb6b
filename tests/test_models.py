"""
Tests for Ledger Assistant models

Test strategy:
1. Unit tests for individual components (models, ledger, normalizer)
2. Integration tests for flows (with in-memory storage and mocked Gemini)
3. No real API calls in tests (use mocks)
"""

import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from ledger_assistant.models.transaction import (
    DEFAULT_LABEL,
    Transaction,
    TransactionType,
)
from ledger_assistant.models.classification import (
    ClassificationRequest,
    ClassifierResponse,
    InputModality,
    MediaPayload,
)
from ledger_assistant.models.session import SessionContext, UserSettings
from ledger_assistant.models.notification import NotificationCenter, NotificationLevel
from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_defaults(self):
        """Test that id, date, description and category get defaults."""
        tx = Transaction(amount=Decimal("30"), type=TransactionType.EXPENSE)
        assert tx.id
        assert tx.date.tzinfo is not None
        assert tx.description == DEFAULT_LABEL
        assert tx.category == DEFAULT_LABEL
        assert tx.owner_id is None

    def test_generated_ids_are_unique(self):
        a = Transaction(amount=Decimal("1"), type=TransactionType.INCOME)
        b = Transaction(amount=Decimal("1"), type=TransactionType.INCOME)
        assert a.id != b.id

    def test_rejects_negative_amount(self):
        """Sign lives in the type, never in the amount."""
        with pytest.raises(ValidationError):
            Transaction(amount=Decimal("-5"), type=TransactionType.EXPENSE)

    def test_zero_amount_allowed(self):
        tx = Transaction(amount=Decimal("0"), type=TransactionType.EXPENSE)
        assert tx.amount == Decimal("0")

    def test_is_frozen(self):
        """Transactions are immutable once created."""
        tx = Transaction(amount=Decimal("1"), type=TransactionType.EXPENSE)
        with pytest.raises(ValidationError):
            tx.amount = Decimal("2")

    def test_naive_date_is_utc(self):
        tx = Transaction(
            amount=Decimal("1"),
            type=TransactionType.EXPENSE,
            date=datetime(2024, 5, 1, 12, 0),
        )
        assert tx.date.tzinfo == timezone.utc

    def test_signed_amount(self):
        expense = Transaction(amount=Decimal("30"), type=TransactionType.EXPENSE)
        income = Transaction(amount=Decimal("30"), type=TransactionType.INCOME)
        assert expense.signed_amount == Decimal("-30")
        assert income.signed_amount == Decimal("30")

    def test_owned_by_returns_stamped_copy(self):
        tx = Transaction(amount=Decimal("1"), type=TransactionType.EXPENSE)
        owned = tx.owned_by("user-1")
        assert owned.owner_id == "user-1"
        assert owned.id == tx.id
        assert tx.owner_id is None
        assert owned.owned_by("user-1") is owned

    def test_to_wire_uses_wire_names(self):
        """Test serialization for backups and storage."""
        tx = Transaction(
            id="abc",
            date=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
            description="Bakery",
            amount=Decimal("30.50"),
            category="Food",
            type=TransactionType.EXPENSE,
            owner_id="user-1",
        )
        wire = tx.to_wire()
        assert wire["ownerId"] == "user-1"
        assert wire["amount"] == 30.5
        assert wire["type"] == "expense"
        assert wire["date"].startswith("2024-05-01T09:30:00")
        assert "owner_id" not in wire

    def test_wire_format_validates_back(self):
        tx = Transaction(amount=Decimal("12.5"), type=TransactionType.INCOME, owner_id="u")
        assert Transaction.model_validate(tx.to_wire()) == tx

    def test_wire_omits_missing_owner(self):
        tx = Transaction(amount=Decimal("1"), type=TransactionType.EXPENSE)
        assert "ownerId" not in tx.to_wire()


class TestClassificationModels:
    """Tests for requests and the classifier wire schema."""

    def test_text_request(self):
        request = ClassificationRequest(modality=InputModality.TEXT, text="hi")
        assert request.recent_transactions == ()
        assert request.persona == ""

    def test_text_modality_requires_text(self):
        with pytest.raises(ValidationError):
            ClassificationRequest(modality=InputModality.TEXT)

    def test_rejects_image_and_audio_together(self):
        payload = MediaPayload(mime_type="audio/wav", data=b"x")
        with pytest.raises(ValidationError):
            ClassificationRequest(
                modality=InputModality.AUDIO,
                audio=payload,
                image=MediaPayload(mime_type="image/jpeg", data=b"y"),
            )

    def test_audio_modality_requires_audio(self):
        with pytest.raises(ValidationError):
            ClassificationRequest(modality=InputModality.AUDIO, text="hi")

    def test_media_payload_rejects_empty_data(self):
        with pytest.raises(ValidationError):
            MediaPayload(mime_type="image/png", data=b"")

    def test_response_parses_wire_names(self):
        body = json.dumps({
            "action": "ADD_TRANSACTION",
            "transactionData": {
                "description": "Bakery",
                "amount": 30,
                "category": "Food",
                "type": "expense",
            },
            "replyMessage": "Noted!",
        })
        response = ClassifierResponse.model_validate_json(body)
        assert response.transaction_data.amount == Decimal("30")
        assert response.reply_message == "Noted!"

    def test_response_requires_reply(self):
        with pytest.raises(ValidationError):
            ClassifierResponse.model_validate_json('{"action": "CHAT_ONLY"}')

    def test_response_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            ClassifierResponse.model_validate_json(
                '{"action": "DELETE_EVERYTHING", "replyMessage": "ok"}'
            )


class TestSessionModels:
    """Tests for session and settings models."""

    def test_session_context_is_frozen(self):
        context = SessionContext(user_id="u1", display_name="Ana")
        with pytest.raises(ValidationError):
            context.user_id = "u2"

    def test_credential_hidden_from_repr(self):
        context = SessionContext(user_id="u1", display_name="Ana", credential="secret")
        assert "secret" not in repr(context)

    def test_user_settings_wire_name(self):
        settings = UserSettings.model_validate({"personaText": "Be strict"})
        assert settings.persona_text == "Be strict"
        assert settings.model_dump(by_alias=True) == {"personaText": "Be strict"}

    def test_user_settings_length_limit(self):
        with pytest.raises(ValidationError):
            UserSettings(persona_text="x" * 2001)


class TestNotificationCenter:
    """Tests for user-facing notifications."""

    def test_collects_and_drains(self):
        center = NotificationCenter()
        center.warning("Saved locally only")
        center.error("Delete failed")
        drained = center.drain()
        assert [n.level for n in drained] == [
            NotificationLevel.WARNING,
            NotificationLevel.ERROR,
        ]
        assert center.pending == []

    def test_dismiss(self):
        center = NotificationCenter()
        center.info("one")
        center.info("two")
        first = center.pending[0]
        center.dismiss(first.notification_id)
        assert [n.message for n in center.pending] == ["two"]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SUBMISSION_RECEIVED,
            description="Submission received",
        )
        assert event.event_type == AuditEventType.SUBMISSION_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            owner_id="user-1",
            description="Transaction saved",
            details={"amount": "30"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_saved"
        assert log_dict["owner_id"] == "user-1"
        assert log_dict["details"]["amount"] == "30"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            owner_id="user-1",
            description="Ledger replaced",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "ledger_replaced"  # event_type
        assert row[4] == "user-1"  # owner_id
        assert row[11] == "True"  # is_user_action

    def test_builder_delete_rolled_back(self):
        """Test AuditEventBuilder.delete_rolled_back."""
        correlation_id = uuid4()

        event = AuditEventBuilder.delete_rolled_back(
            owner_id="user-1",
            transaction_id="tx-1",
            error_message="timeout",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.DELETE_ROLLED_BACK
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == "tx-1"
        assert event.correlation_id == correlation_id

    def test_builder_submission_received(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.submission_received(
            owner_id="user-1",
            modality="audio",
            correlation_id=correlation_id,
        )
        assert event.is_user_action is True
        assert event.details == {"modality": "audio"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
