"""
Jura API Client - HTTP access to the question and extraction collaborators

Thin wrapper over httpx. Raises on transport errors and non-2xx
responses; callers (QuestionGenerator, AnswerExtractor) own the
fallback policy.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from dv100 import config

logger = logging.getLogger(__name__)


class JuraApiClient:
    """POSTs JSON payloads to the two collaborator endpoints"""

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        timeout: float = config.HTTP_TIMEOUT,
        http_client: Optional[httpx.Client] = None
    ) -> None:
        """
        Args:
            base_url: Server hosting the collaborator endpoints
            timeout: Request timeout in seconds
            http_client: Pre-built httpx client (tests pass one with a
                MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout)
        logger.info(f"Jura API client initialized ({self.base_url})")

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> httpx.Response:
        response = self._client.post(f"{self.base_url}{endpoint}", json=payload)
        response.raise_for_status()
        return response

    def request_question(self, payload: Dict[str, Any]) -> str:
        """
        Ask for the next conversational question.

        Args:
            payload: {currentFieldId, context, answers, lastUserMessage}

        Returns:
            str: Plain-text question (untrimmed)

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
        """
        return self._post(config.QUESTION_ENDPOINT, payload).text

    def extract_answer(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ask for a clean field value.

        Args:
            payload: {fieldId, fieldKind, context, userInput}

        Returns:
            dict: {answer, unsure, error?}

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
            ValueError: Body is not a JSON object
        """
        data = self._post(config.EXTRACT_ENDPOINT, payload).json()
        if not isinstance(data, dict):
            raise ValueError(f"Extraction response must be a JSON object, got {type(data).__name__}")
        return data

    def close(self) -> None:
        self._client.close()
