"""
Classifier Gateway

DESIGN DECISION: The classifier is a black box behind one narrow call:

    outcome = await classifier.classify(request)

Nothing else in the system knows about Gemini, its transport or its
wire format. Tests inject doubles of TransactionClassifier.

CRITICAL BOUNDARIES:
- The model answers in a strict JSON schema; anything else is a failure
- A failure of ANY kind (network, empty body, blocked response, bad JSON,
  schema violation) becomes the ChatOnly fallback
- classify() never raises past its boundary

The LLM is a TRANSLATOR, not a BOOKKEEPER.
It proposes one record; the ledger and the sync layer decide what happens.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from ledger_assistant.audit import AuditLogger
from ledger_assistant.config import AppSettings, GeminiSettings, get_settings
from ledger_assistant.models.audit import AuditEventBuilder
from ledger_assistant.models.classification import (
    AddTransaction,
    ChatOnly,
    ClassificationAction,
    ClassificationOutcome,
    ClassificationRequest,
    ClassifierResponse,
    InputModality,
)
from ledger_assistant.models.transaction import DEFAULT_LABEL


logger = structlog.get_logger(__name__)


FALLBACK_REPLY = (
    "Sorry, I had a problem processing your request. Please try again."
)

DEFAULT_PERSONA = "You are a smart and friendly personal finance assistant."

AUDIO_PROMPT = (
    "Analyse this audio. Is the user reporting an expense or an income? "
    "Or asking a question?"
)
IMAGE_PROMPT = (
    "Analyse this image (receipt or invoice) and extract the financial data."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "action": {
            "type": "STRING",
            "format": "enum",
            "enum": [a.value for a in ClassificationAction],
            "description": "Whether the user wants to add a financial record or just chat.",
        },
        "transactionData": {
            "type": "OBJECT",
            "nullable": True,
            "properties": {
                "description": {"type": "STRING"},
                "amount": {"type": "NUMBER"},
                "category": {
                    "type": "STRING",
                    "description": "Category e.g. Food, Transport, Leisure, Home, Salary",
                },
                "type": {
                    "type": "STRING",
                    "format": "enum",
                    "enum": ["income", "expense"],
                },
            },
        },
        "replyMessage": {
            "type": "STRING",
            "description": "A friendly, short response to the user.",
        },
    },
    "required": ["action", "replyMessage"],
}


class ClassificationError(Exception):
    """The classifier call or its response was unusable."""
    pass


class TransactionClassifier(ABC):
    """Narrow interface: one request in, one outcome out, never raises."""

    @abstractmethod
    async def classify(
        self,
        request: ClassificationRequest,
        correlation_id: Optional[UUID] = None,
    ) -> ClassificationOutcome:
        pass


def parse_classifier_response(text: Optional[str]) -> ClassificationOutcome:
    """
    Validate a raw response body and turn it into an outcome.

    Raises:
        ClassificationError: If the body is empty or breaks the schema
    """
    if not text or not text.strip():
        raise ClassificationError("Empty response from classifier")

    try:
        parsed = ClassifierResponse.model_validate_json(text)
    except ValidationError as e:
        raise ClassificationError(f"Response does not match schema: {e}") from e

    data = parsed.transaction_data
    if parsed.action == ClassificationAction.ADD_TRANSACTION and data is not None:
        return AddTransaction(
            description=data.description.strip()[:500] or DEFAULT_LABEL,
            amount=data.amount,
            category=data.category.strip()[:100] or DEFAULT_LABEL,
            type=data.type,
            reply_message=parsed.reply_message,
        )

    # ADD_TRANSACTION without data carries nothing to record
    return ChatOnly(reply_message=parsed.reply_message)


class GeminiClassifierGateway(TransactionClassifier):
    """
    Gemini implementation of the classifier.

    ROUTING (fixed policy):
    - audio        -> audio_model (lower latency)
    - text / image -> primary_model
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._app_settings = app_settings or get_settings().app
        self._audit_logger = audit_logger
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)

    def model_for(self, modality: InputModality) -> str:
        if modality == InputModality.AUDIO:
            return self._settings.audio_model
        return self._settings.primary_model

    def build_system_instruction(self, request: ClassificationRequest) -> str:
        """Persona, current time, recent ledger context and task rules."""
        if request.persona:
            # The override replaces the default wording entirely
            personality = (
                f"IMPORTANT - PERSONALITY: {request.persona}. "
                "Act according to this personality."
            )
        else:
            personality = DEFAULT_PERSONA

        history = json.dumps(
            [
                t.model_dump(mode="json", exclude={"owner_id"})
                for t in request.recent_transactions
            ],
            ensure_ascii=False,
        )
        now = self._clock().strftime("%A, %d %B %Y %H:%M %Z").strip()
        language = self._app_settings.reply_language

        return f"""You are {self._app_settings.assistant_name}.
{personality}

CURRENT DATE/TIME: {now}

Recent context (latest transactions, most recent first): {history}

Instructions:
1. Analyse the user's input.
2. If it reports money spent or received, use ADD_TRANSACTION and fill 'transactionData'.
3. Amounts are always positive numbers; use 'type' for income or expense.
4. If it is conversation or a question, use CHAT_ONLY.
5. Categorize automatically.
6. Always reply in {language}."""

    def build_contents(self, request: ClassificationRequest) -> list:
        """Inline blob parts first, then the text part."""
        parts: list = []

        if request.modality == InputModality.AUDIO:
            parts.append({
                "mime_type": request.audio.mime_type,
                "data": request.audio.data,
            })
            parts.append(request.text or AUDIO_PROMPT)
        elif request.modality == InputModality.IMAGE:
            parts.append({
                "mime_type": request.image.mime_type,
                "data": request.image.data,
            })
            parts.append(request.text or IMAGE_PROMPT)
        else:
            parts.append(request.text)

        return parts

    async def _generate(self, model_name: str, request: ClassificationRequest) -> str:
        """One round trip. Raises on any transport or response problem."""
        model = genai.GenerativeModel(
            model_name=model_name,
            system_instruction=self.build_system_instruction(request),
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            },
        )

        request_options = None
        if self._settings.request_timeout:
            request_options = {"timeout": self._settings.request_timeout}

        response = await model.generate_content_async(
            self.build_contents(request),
            request_options=request_options,
        )
        # .text raises ValueError when the response was blocked or empty
        return response.text

    async def classify(
        self,
        request: ClassificationRequest,
        correlation_id: Optional[UUID] = None,
    ) -> ClassificationOutcome:
        """
        Classify one submission.

        Always returns a well-formed outcome; failures degrade
        to ChatOnly with the fixed apology.
        """
        model_name = self.model_for(request.modality)

        try:
            outcome = parse_classifier_response(
                await self._generate(model_name, request)
            )
        except Exception as e:
            logger.warning(
                "classification_failed",
                model=model_name,
                modality=request.modality.value,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.classification_failed(
                        owner_id=None,
                        model_name=model_name,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                )
            return ChatOnly(reply_message=FALLBACK_REPLY, is_fallback=True)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.classification_completed(
                    owner_id=None,
                    action=outcome.action.value,
                    model_name=model_name,
                    correlation_id=correlation_id,
                )
            )
        return outcome
