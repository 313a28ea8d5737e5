"""
Answer Extractor - turn a raw chat answer into a clean field value

Responsibilities:
- Short-circuit explicit "no fax" and self-representation answers
- Call the extraction collaborator with the field's rule
- Normalize the collaborator response to ExtractionResult
- Force unsure for case-number fields without a digit
- Degrade every collaborator failure to unsure

Contract toward the collaborator:
    request:  {fieldId, fieldKind, context, userInput}
    response: {answer: str, unsure: bool, error?: str}
The collaborator only reuses text from the input and answers with
UNSURE_SENTINEL when it isn't confident.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from dv100.contracts import ExtractionResult, FlowStep
from dv100.core.flow import get_field_rule
from dv100.utils.answer_patterns import (
    NO_FAX_ANSWER,
    SELF_REPRESENTED_ANSWER,
    UNSURE_SENTINEL,
    has_digit,
    is_case_number_field,
    is_fax_field,
    is_representation_field,
    looks_like_no_fax,
    looks_like_self_represented,
)

logger = logging.getLogger(__name__)


def deterministic_override(field_id: str, user_input: str) -> Optional[ExtractionResult]:
    """
    Fixed answers that never need the collaborator.

    Returns:
        ExtractionResult, or None when no override applies
    """
    if is_fax_field(field_id) and looks_like_no_fax(user_input):
        logger.info(f"[{field_id}] Explicit no fax detected")
        return ExtractionResult(cleaned=NO_FAX_ANSWER, unsure=False)

    if is_representation_field(field_id) and looks_like_self_represented(user_input):
        logger.info(f"[{field_id}] Self-representation detected")
        return ExtractionResult(cleaned=SELF_REPRESENTED_ANSWER, unsure=False)

    return None


def normalize_extraction(
    response: Dict[str, Any],
    field_id: str,
    context: Optional[str] = None
) -> ExtractionResult:
    """
    Collapse a collaborator response into cleaned/unsure.

    Unsure when the flag is set, the answer is empty or the sentinel, or
    a case-number field has no digit.
    """
    raw_answer = response.get("answer")
    answer = raw_answer.strip() if isinstance(raw_answer, str) else ""

    if bool(response.get("unsure")) or not answer or answer == UNSURE_SENTINEL:
        return ExtractionResult.unsure_result()

    if is_case_number_field(field_id, context) and not has_digit(answer):
        logger.info(f"[{field_id}] Case-number answer without digits: '{answer}'")
        return ExtractionResult.unsure_result()

    return ExtractionResult(cleaned=answer, unsure=False)


class AnswerExtractor:
    """Adapter between the dialogue manager and the extraction collaborator"""

    def __init__(self, api_client) -> None:
        """
        Args:
            api_client: Object with callable extract_answer(payload) -> dict

        Raises:
            TypeError: If api_client lacks extract_answer()
        """
        if not callable(getattr(api_client, "extract_answer", None)):
            raise TypeError("api_client must have callable extract_answer() method")

        self.api_client = api_client
        logger.info("Answer Extractor initialized")

    def extract(self, step: FlowStep, user_input: str) -> ExtractionResult:
        """
        Clean a raw answer for a step.

        Args:
            step: Step being answered
            user_input: Raw user text

        Returns:
            ExtractionResult (never raises for collaborator failures)
        """
        override = deterministic_override(step.id, user_input)
        if override is not None:
            return override

        payload = {
            "fieldId": step.id,
            "fieldKind": get_field_rule(step).kind,
            "context": step.context,
            "userInput": user_input,
        }

        try:
            response = self.api_client.extract_answer(payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[{step.id}] Extraction collaborator failed: {e}")
            return ExtractionResult.unsure_result()

        if response.get("error"):
            logger.warning(f"[{step.id}] Extraction collaborator reported: {response['error']}")

        result = normalize_extraction(response, step.id, step.context)
        logger.info(f"[{step.id}] Extraction: unsure={result.unsure}, cleaned='{result.cleaned}'")
        return result
