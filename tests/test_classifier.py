"""
Tests for the Gemini classifier gateway.

The google.generativeai module is patched; no request leaves the process.
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest

from conftest import make_transaction
from ledger_assistant.agents import (
    FALLBACK_REPLY,
    ClassificationError,
    GeminiClassifierGateway,
    parse_classifier_response,
)
from ledger_assistant.agents.classifier import IMAGE_PROMPT, RESPONSE_SCHEMA
from ledger_assistant.models import (
    AddTransaction,
    ChatOnly,
    ClassificationRequest,
    InputModality,
    MediaPayload,
    TransactionType,
)


BAKERY_RESPONSE = json.dumps({
    "action": "ADD_TRANSACTION",
    "transactionData": {
        "description": "Bakery",
        "amount": 30,
        "category": "Food",
        "type": "expense",
    },
    "replyMessage": "Got it, bakery expense noted.",
})


def fixed_clock():
    return datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def mock_genai():
    with patch("ledger_assistant.agents.classifier.genai") as mock:
        yield mock


@pytest.fixture
def gateway(mock_genai, gemini_settings, app_settings, audit_logger):
    return GeminiClassifierGateway(
        settings=gemini_settings,
        app_settings=app_settings,
        audit_logger=audit_logger,
        clock=fixed_clock,
    )


def respond_with(mock_genai, text=None, error=None):
    """Make the patched model answer with `text` or raise `error`."""
    model = mock_genai.GenerativeModel.return_value
    if error is not None:
        model.generate_content_async = AsyncMock(side_effect=error)
    else:
        model.generate_content_async = AsyncMock(return_value=MagicMock(text=text))
    return model


def text_request(text="Spent 30 on bakery today", **kwargs) -> ClassificationRequest:
    return ClassificationRequest(modality=InputModality.TEXT, text=text, **kwargs)


class TestWellFormedResponses:
    """Responses that match the schema."""

    def test_add_transaction(self, gateway, mock_genai):
        respond_with(mock_genai, BAKERY_RESPONSE)
        outcome = asyncio.run(gateway.classify(text_request()))
        assert isinstance(outcome, AddTransaction)
        assert outcome.type == TransactionType.EXPENSE
        assert outcome.amount == Decimal("30")
        assert outcome.category == "Food"
        assert outcome.description == "Bakery"
        assert outcome.reply_message == "Got it, bakery expense noted."

    def test_chat_only(self, gateway, mock_genai):
        respond_with(mock_genai, json.dumps({
            "action": "CHAT_ONLY",
            "transactionData": None,
            "replyMessage": "You spent 30 this week.",
        }))
        outcome = asyncio.run(gateway.classify(text_request("How much did I spend?")))
        assert isinstance(outcome, ChatOnly)
        assert outcome.is_fallback is False
        assert outcome.reply_message == "You spent 30 this week."

    def test_add_without_data_is_chat(self, gateway, mock_genai):
        """Nothing to record, but the model's reply is kept."""
        respond_with(mock_genai, json.dumps({
            "action": "ADD_TRANSACTION",
            "replyMessage": "How much was it?",
        }))
        outcome = asyncio.run(gateway.classify(text_request("bought bread")))
        assert isinstance(outcome, ChatOnly)
        assert outcome.reply_message == "How much was it?"
        assert outcome.is_fallback is False

    def test_blank_labels_default_to_general(self):
        outcome = parse_classifier_response(json.dumps({
            "action": "ADD_TRANSACTION",
            "transactionData": {"description": " ", "amount": 5, "category": "", "type": "income"},
            "replyMessage": "ok",
        }))
        assert outcome.description == "General"
        assert outcome.category == "General"


class TestFallback:
    """Any failure becomes the fixed apology; classify never raises."""

    def test_invalid_json(self, gateway, mock_genai):
        respond_with(mock_genai, "not json at all")
        outcome = asyncio.run(gateway.classify(text_request()))
        assert isinstance(outcome, ChatOnly)
        assert outcome.is_fallback is True
        assert outcome.reply_message == FALLBACK_REPLY

    def test_missing_reply_message(self, gateway, mock_genai):
        respond_with(mock_genai, '{"action": "CHAT_ONLY"}')
        outcome = asyncio.run(gateway.classify(text_request()))
        assert outcome.reply_message == FALLBACK_REPLY

    def test_negative_amount(self, gateway, mock_genai):
        respond_with(mock_genai, json.dumps({
            "action": "ADD_TRANSACTION",
            "transactionData": {"description": "x", "amount": -3, "category": "y", "type": "expense"},
            "replyMessage": "ok",
        }))
        outcome = asyncio.run(gateway.classify(text_request()))
        assert outcome.reply_message == FALLBACK_REPLY

    def test_network_error(self, gateway, mock_genai):
        respond_with(mock_genai, error=RuntimeError("connection reset"))
        outcome = asyncio.run(gateway.classify(text_request()))
        assert outcome.is_fallback is True

    def test_blocked_response(self, gateway, mock_genai):
        """response.text raises when the model returned no candidate."""
        response = MagicMock()
        type(response).text = PropertyMock(side_effect=ValueError("blocked"))
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=response)
        outcome = asyncio.run(gateway.classify(text_request()))
        assert outcome.reply_message == FALLBACK_REPLY

    def test_failure_is_audited(self, gateway, mock_genai, audit_storage):
        respond_with(mock_genai, error=RuntimeError("boom"))
        asyncio.run(gateway.classify(text_request()))
        assert audit_storage.event_types() == ["classification_failed"]
        assert audit_storage.events[0].error_message == "boom"

    def test_parse_empty_body_raises(self):
        with pytest.raises(ClassificationError):
            parse_classifier_response("")


class TestRequestConstruction:
    """What the gateway sends to Gemini."""

    def test_text_uses_primary_model(self, gateway, mock_genai):
        respond_with(mock_genai, BAKERY_RESPONSE)
        asyncio.run(gateway.classify(text_request()))
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs["model_name"] == "primary-model"

    def test_audio_uses_audio_model(self, gateway, mock_genai):
        model = respond_with(mock_genai, BAKERY_RESPONSE)
        request = ClassificationRequest(
            modality=InputModality.AUDIO,
            audio=MediaPayload(mime_type="audio/wav", data=b"RIFF"),
        )
        asyncio.run(gateway.classify(request))
        assert mock_genai.GenerativeModel.call_args.kwargs["model_name"] == "audio-model"

        contents = model.generate_content_async.call_args.args[0]
        assert contents[0] == {"mime_type": "audio/wav", "data": b"RIFF"}
        assert isinstance(contents[1], str)

    def test_image_without_caption_gets_default_prompt(self, gateway, mock_genai):
        model = respond_with(mock_genai, BAKERY_RESPONSE)
        request = ClassificationRequest(
            modality=InputModality.IMAGE,
            image=MediaPayload(mime_type="image/jpeg", data=b"\xff\xd8"),
        )
        asyncio.run(gateway.classify(request))
        contents = model.generate_content_async.call_args.args[0]
        assert contents == [
            {"mime_type": "image/jpeg", "data": b"\xff\xd8"},
            IMAGE_PROMPT,
        ]

    def test_generation_config(self, gateway, mock_genai):
        respond_with(mock_genai, BAKERY_RESPONSE)
        asyncio.run(gateway.classify(text_request()))
        config = mock_genai.GenerativeModel.call_args.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
        assert config["response_schema"] is RESPONSE_SCHEMA
        assert config["temperature"] == 0.2

    def test_no_timeout_by_default(self, gateway, mock_genai):
        model = respond_with(mock_genai, BAKERY_RESPONSE)
        asyncio.run(gateway.classify(text_request()))
        assert model.generate_content_async.call_args.kwargs["request_options"] is None

    def test_timeout_passed_as_request_option(self, mock_genai, gemini_settings, app_settings):
        settings = gemini_settings.model_copy(update={"request_timeout": 15.0})
        gateway = GeminiClassifierGateway(settings=settings, app_settings=app_settings)
        model = respond_with(mock_genai, BAKERY_RESPONSE)
        asyncio.run(gateway.classify(text_request()))
        assert model.generate_content_async.call_args.kwargs["request_options"] == {"timeout": 15.0}

    def test_configures_api_key(self, gateway, mock_genai):
        mock_genai.configure.assert_called_once_with(api_key="test-key")


class TestSystemInstruction:
    """Persona, time and recent context."""

    def test_default_persona(self, gateway):
        instruction = gateway.build_system_instruction(text_request())
        assert "You are Quirino." in instruction
        assert "friendly personal finance assistant" in instruction
        assert "PERSONALITY" not in instruction
        assert "Always reply in English" in instruction

    def test_persona_override(self, gateway):
        instruction = gateway.build_system_instruction(text_request(persona="Be sarcastic"))
        assert "IMPORTANT - PERSONALITY: Be sarcastic." in instruction
        assert "friendly personal finance assistant" not in instruction

    def test_includes_time_and_recent_ledger(self, gateway):
        recent = (make_transaction(id="r1", description="Bakery", owner_id="user-1"),)
        instruction = gateway.build_system_instruction(
            text_request(recent_transactions=recent)
        )
        assert "Wednesday, 01 May 2024 09:30" in instruction
        assert '"description": "Bakery"' in instruction
        assert "user-1" not in instruction


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
