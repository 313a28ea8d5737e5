"""
Collaborator services - server side of the Jura endpoints

QuestionService answers /api/jura-question with plain question text.
ExtractionService answers /api/jura-extract-answer with
{answer, unsure[, error]}.

Both take an optional model client (HuggingFaceClient or anything with
chat(system_message, user_message, max_tokens, temperature) -> str).
Without one they answer with fixed fallbacks so the conversation keeps
moving on static step text.

Error codes (extraction):
    NO_MODEL          no model client configured
    MISSING_FIELDS    fieldId, fieldKind or userInput absent
    EXTRACTION_ERROR  model call raised
"""

import logging
from typing import Any, Dict, Optional

from dv100.core.answer_extractor import deterministic_override
from dv100.utils.answer_patterns import UNSURE_SENTINEL, has_digit, is_case_number_field
from dv100.utils.prompt_builder import (
    EXTRACTION_SYSTEM_MESSAGE,
    QUESTION_SYSTEM_MESSAGE,
    ExtractionRequest,
    PromptBuildError,
    build_extraction_prompt,
    build_question_prompt,
)

logger = logging.getLogger(__name__)

FALLBACK_QUESTION = "Could you share more about this step?"

ERROR_NO_MODEL = "NO_MODEL"
ERROR_MISSING_FIELDS = "MISSING_FIELDS"
ERROR_EXTRACTION = "EXTRACTION_ERROR"


def _validate_model_client(model_client) -> None:
    if model_client is not None and not callable(getattr(model_client, "chat", None)):
        raise TypeError("model_client must have callable chat() method")


def _strip_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1].strip()
    return text


class QuestionService:
    """Generates one warm question per step"""

    def __init__(self, model_client=None, max_tokens: int = 260, temperature: float = 0.9):
        _validate_model_client(model_client)
        self.model_client = model_client
        self.max_tokens = max_tokens
        self.temperature = temperature

    def generate(self, payload: Optional[Dict[str, Any]]) -> str:
        """
        Args:
            payload: {currentFieldId, context, answers, lastUserMessage}

        Returns:
            str: Question text (FALLBACK_QUESTION on no model, empty output or error)
        """
        if self.model_client is None:
            return FALLBACK_QUESTION

        payload = payload or {}
        logger.info(f"Question requested for field: {payload.get('currentFieldId')}")

        try:
            text = self.model_client.chat(
                QUESTION_SYSTEM_MESSAGE,
                build_question_prompt(payload),
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )
        except Exception as e:
            logger.error(f"Failed to generate question: {e}")
            return FALLBACK_QUESTION

        text = (text or "").strip()
        return text or FALLBACK_QUESTION


class ExtractionService:
    """Strict single-field answer extraction"""

    def __init__(self, model_client=None, max_tokens: int = 40):
        _validate_model_client(model_client)
        self.model_client = model_client
        self.max_tokens = max_tokens

    def extract(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Args:
            payload: {fieldId, fieldKind, context, userInput}

        Returns:
            dict: {'answer': str, 'unsure': bool} plus 'error' on failure
        """
        if self.model_client is None:
            return {"answer": "", "error": ERROR_NO_MODEL}

        try:
            request = ExtractionRequest.from_payload(payload)
        except PromptBuildError as e:
            logger.warning(str(e))
            return {"answer": "", "unsure": True, "error": ERROR_MISSING_FIELDS}

        override = deterministic_override(request.field_id, request.user_input)
        if override is not None:
            return {"answer": override.cleaned, "unsure": False}

        try:
            raw = self.model_client.chat(
                EXTRACTION_SYSTEM_MESSAGE,
                build_extraction_prompt(request),
                max_tokens=self.max_tokens,
                temperature=0.0
            )
        except Exception as e:
            logger.error(f"Failed to extract answer for {request.field_id}: {e}")
            return {"answer": "", "unsure": True, "error": ERROR_EXTRACTION}

        answer = _strip_quotes(raw or "")
        unsure = not answer or answer == UNSURE_SENTINEL

        if not unsure and is_case_number_field(request.field_id, request.context) and not has_digit(answer):
            unsure = True

        if unsure:
            logger.info(f"UNSURE for field {request.field_id}")
            return {"answer": UNSURE_SENTINEL, "unsure": True}

        logger.info(f"Clean answer for {request.field_id}: '{answer}'")
        return {"answer": answer, "unsure": False}


class LocalJuraClient:
    """
    In-process stand-in for JuraApiClient.

    Same request_question/extract_answer interface, answered directly by
    the services instead of over HTTP (the web app and the console
    harness use this unless collaborators are remote).
    """

    def __init__(self, question_service: QuestionService, extraction_service: ExtractionService):
        self.question_service = question_service
        self.extraction_service = extraction_service

    def request_question(self, payload: Dict[str, Any]) -> str:
        return self.question_service.generate(payload)

    def extract_answer(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.extraction_service.extract(payload)
