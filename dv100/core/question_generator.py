"""
Question Generator - next conversational question for a step

Asks the question collaborator for a warm, single-field question.
Falls back to the step's static context (or its id) on any failure.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from dv100.contracts import FlowStep

logger = logging.getLogger(__name__)


def fallback_question(step: FlowStep) -> str:
    return step.context or step.id


class QuestionGenerator:
    """Adapter between the dialogue manager and the question collaborator"""

    def __init__(self, api_client) -> None:
        """
        Args:
            api_client: Object with callable request_question(payload) -> str

        Raises:
            TypeError: If api_client lacks request_question()
        """
        if not callable(getattr(api_client, "request_question", None)):
            raise TypeError("api_client must have callable request_question() method")

        self.api_client = api_client
        logger.info("Question Generator initialized")

    def generate(
        self,
        step: FlowStep,
        answers: Dict[str, Any],
        last_user_message: Optional[str]
    ) -> str:
        """
        Question text for step.

        Args:
            step: Step to ask about
            answers: Full form data document
            last_user_message: What the user just said (None if nothing)

        Returns:
            str: Question text, never empty
        """
        payload = {
            "currentFieldId": step.id,
            "context": step.context,
            "answers": answers,
            "lastUserMessage": last_user_message,
        }

        try:
            text = self.api_client.request_question(payload)
        except httpx.HTTPError as e:
            logger.warning(f"[{step.id}] Question collaborator failed, using context: {e}")
            return fallback_question(step)

        text = (text or "").strip()
        logger.debug(f"[{step.id}] Question received: {text[:80]}")
        return text or fallback_question(step)
