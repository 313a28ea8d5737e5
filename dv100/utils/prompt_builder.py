"""
Prompt Builder - collaborator prompts for question and extraction

Responsibilities:
- Build the extraction prompt for one field answer
- Build the question prompt (known answers, last user message, field hint)
- Fail fast when a request lacks what the prompt needs

NOT responsible for:
- Model formatting (PromptFormatter)
- Deterministic overrides and unsure rules (services / answer_patterns)
- Model calls

Design principles:
- Prompts are deterministic text built from request fields only
- Field kind selects the extraction rules the model sees
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dv100.contracts import FIELD_KINDS
from dv100.utils.answer_patterns import UNSURE_SENTINEL

logger = logging.getLogger(__name__)


class PromptBuildError(Exception):
    """Raised when a prompt cannot be built from an incomplete request"""
    pass


@dataclass(frozen=True)
class ExtractionRequest:
    """Extraction collaborator request (wire keys: fieldId, fieldKind, context, userInput)"""
    field_id: str
    field_kind: str
    user_input: str
    context: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ExtractionRequest":
        """
        Raises:
            PromptBuildError: If fieldId, fieldKind or userInput is missing
        """
        payload = payload or {}
        missing = [key for key in ("fieldId", "fieldKind", "userInput") if not payload.get(key)]
        if missing:
            raise PromptBuildError(f"Extraction request missing: {', '.join(missing)}")

        field_kind = payload["fieldKind"]
        if field_kind not in FIELD_KINDS:
            logger.warning(f"Unknown field kind '{field_kind}', prompting as shortText rules")

        return cls(
            field_id=str(payload["fieldId"]),
            field_kind=str(field_kind),
            user_input=str(payload["userInput"]),
            context=payload.get("context"),
        )


EXTRACTION_SYSTEM_MESSAGE = (
    "You are a strict extraction engine. You never invent new facts. You only "
    f"reuse text from the user input. If unsure, output \"{UNSURE_SENTINEL}\"."
)

KIND_RULES = {
    "name": (
        "- Return a short name (1-3 words) that appears in the user input.\n"
        "- Do NOT include emotions or extra commentary.\n"
        "- Example output: \"Zoho\", \"Maria Lopez\"."
    ),
    "shortText": (
        "- Return a SHORT phrase (max 3-6 words) that directly answers the context.\n"
        "- Do NOT return full sentences.\n"
        "- Example for court: \"Contra Costa County Superior Court\".\n"
        "- If the user only says generic phrases like \"I have it\", \"I know it\", or "
        f"\"I'll give it later\", return \"{UNSURE_SENTINEL}\"."
    ),
    "yesNo": (
        "- If the user clearly means yes, return exactly \"yes\".\n"
        "- If clearly no, return exactly \"no\".\n"
        f"- If unclear, return \"{UNSURE_SENTINEL}\"."
    ),
    "number": (
        "- Return only the numeric part (e.g., \"37\").\n"
        f"- If no clear number, return \"{UNSURE_SENTINEL}\"."
    ),
    "date": (
        "- Extract only the date-like part (e.g., \"May 2024\", \"around June 3rd\").\n"
        f"- If no clear date, return \"{UNSURE_SENTINEL}\"."
    ),
    "longNarrative": (
        "- Return the user's narrative text, trimmed and lightly cleaned.\n"
        "- Do NOT add new facts."
    ),
}


def build_extraction_prompt(request: ExtractionRequest) -> str:
    kind_rules = KIND_RULES.get(request.field_kind, KIND_RULES["shortText"])

    return "\n".join([
        "You are a STRICT factual extractor for DV-100 fields.",
        "",
        "User input:",
        f"\"{request.user_input}\"",
        "",
        f"Field id: {request.field_id}",
        f"Field kind: {request.field_kind}",
        f"Context: {request.context or 'N/A'}",
        "",
        "YOUR JOB:",
        "- Extract ONLY the minimal, clean answer that belongs in this field.",
        "- Use ONLY words, numbers, or phrases that appear in the user input.",
        "- NEVER return the whole sentence or emotional content.",
        "- NEVER \"fix\" spelling or guess missing information.",
        "- NEVER return meta responses like \"I have it\", \"I know it\", \"I'll share later\", etc.",
        "",
        f"RULES FOR FIELD KIND {request.field_kind}:",
        kind_rules,
        "",
        "SPECIAL CASE: case numbers",
        "- If the field id or context suggests a case number, only return a string with at least one digit.",
        "- Accept letters + digits + dashes (e.g., \"22FL01234\").",
        f"- If the user never provides digits, return \"{UNSURE_SENTINEL}\".",
        "",
        "GLOBAL CRITICAL RULE:",
        f"- If you cannot confidently extract a clean, field-appropriate answer, return \"{UNSURE_SENTINEL}\".",
        "- Do NOT guess. Do NOT fix spelling. Do NOT invent.",
        "- Return ONLY the final answer text with no quotes or explanation.",
    ])


QUESTION_SYSTEM_MESSAGE = """
You are Jura, a warm, trauma-aware companion helping someone complete a domestic violence restraining order request in California.

The person you're talking to may feel hurt, betrayed, unsafe, angry, numb, or overwhelmed.

In each reply:
1) Show them you really heard what they said, in a specific way.
2) Normalize their feelings and offer calm reassurance.
3) Then gently connect to ONE small question that moves the process forward.

STYLE:
- Use 3-8 sentences when needed.
- Reflect their feelings in your own words (do NOT just say "It sounds like...").
- Be steady, calm, and non-judgmental.

DO NOT:
- Mention forms, fields, schemas, or DV-100.
- Use robotic phrases like "Please provide" or "What is".
- Give legal advice or strategies.
""".strip()


def build_question_prompt(payload: Dict[str, Any]) -> str:
    """
    Question prompt from a question request.

    Args:
        payload: {currentFieldId, context, answers, lastUserMessage}; every key optional
    """
    payload = payload or {}
    answers = json.dumps(payload.get("answers") or {}, indent=2, ensure_ascii=False)
    last = (payload.get("lastUserMessage") or "").strip()

    return "\n".join([
        f"Current field id: {payload.get('currentFieldId') or 'unknown'}",
        f"Context hint: {payload.get('context') or 'N/A'}",
        "Known answers (JSON):",
        answers,
        "",
        f"The user just said (verbatim): \"{last}\"" if last
        else "The user has not shared anything yet for this field.",
        "",
        "TASK:",
        "- First, respond directly to what the user just said with emotional intelligence (2-5 sentences).",
        "- Mention at least one specific detail or emotion they expressed, in your own words.",
        "- Then, in 1-3 sentences, gently ask ONE clear question that will help them answer ONLY this field.",
        "",
        "CONSTRAINTS:",
        "- Do not repeat the user's sentence word-for-word.",
        "- Do not mention forms, fields, or DV-100.",
        "- Do not be robotic or overly formal.",
    ])
