"""
Answer Patterns - deterministic checks on raw user answers

Used ahead of (and after) the extraction collaborator:
- "don't know" and meta non-answers never fill a required field
- explicit "no fax" / self-representation answers short-circuit
  extraction with a fixed clean value
- case-number-like fields must contain a digit
"""

import re

# Reserved marker for "no confident extraction"
UNSURE_SENTINEL = "__UNSURE__"

NO_FAX_ANSWER = "No fax"
SELF_REPRESENTED_ANSWER = "self-represented"

DONT_KNOW_PATTERN = re.compile(
    r"\b(i don'?t know|dont know|not sure|no idea|i can'?t remember|cant remember)\b"
)

# "I have it", "I'll give it later": acknowledges the question without answering
META_RESPONSE_PATTERN = re.compile(
    r"\b(i have it|i know it|i got it|i will give it later|i'll give it later|later)\b"
)

SELF_REPRESENTED_PHRASES = (
    "self representing",
    "self-representing",
    "self represented",
    "self-represented",
    "represent myself",
    "pro se",
)

REPRESENTATION_FIELD_HINTS = ("represent", "attorney", "lawyer")

DIGIT_PATTERN = re.compile(r"\d")


def looks_like_dont_know(raw: str) -> bool:
    lower = raw.lower().strip()
    if not lower:
        return False
    return bool(DONT_KNOW_PATTERN.search(lower))


def looks_like_meta_response(raw: str) -> bool:
    lower = raw.lower().strip()
    if not lower:
        return False
    return bool(META_RESPONSE_PATTERN.search(lower))


def looks_like_no_fax(raw: str) -> bool:
    """
    Examples:
        >>> looks_like_no_fax("I don't have a fax number")
        True
        >>> looks_like_no_fax("555-1234")
        False
    """
    lower = raw.lower()
    if "no fax" in lower or "have no fax" in lower:
        return True
    if "don't have fax" in lower or "do not have fax" in lower:
        return True
    return "fax" in lower and ("none" in lower or "don't" in lower or "no number" in lower)


def looks_like_self_represented(raw: str) -> bool:
    lower = raw.lower()
    return any(phrase in lower for phrase in SELF_REPRESENTED_PHRASES)


def is_fax_field(field_id: str) -> bool:
    return "fax" in (field_id or "").lower()


def is_representation_field(field_id: str) -> bool:
    lower = (field_id or "").lower()
    return any(hint in lower for hint in REPRESENTATION_FIELD_HINTS)


def is_case_number_field(field_id: str, context: str = None) -> bool:
    """Field id or context mentions a case"""
    return "case" in (field_id or "").lower() or "case" in (context or "").lower()


def has_digit(text: str) -> bool:
    return bool(DIGIT_PATTERN.search(text or ""))


def is_missing_answer(raw: str, cleaned: str, unsure: bool) -> bool:
    """
    True when an answer can't fill a required field.

    Unsure or empty extraction, or raw input that is a "don't know" or a
    meta non-answer.
    """
    return unsure or not cleaned or looks_like_dont_know(raw) or looks_like_meta_response(raw)
