"""
Semantic contracts for the DV-100 intake assistant.

This module defines the small data structures passed between modules.
They define shape and semantics without enforcing rules.

Design principles:
- Frozen dataclasses for static definitions (flow steps, field rules)
- Plain dataclasses for values that are serialized (chat messages)
- No dependencies on other modules in this package

Contents:
- FlowStep: One entry of the static flow definition
- FieldRule: Per-field extraction policy
- ExtractionResult: Normalized output of the answer extraction adapter
- ChatMessage: One entry of the persisted message log
- ProgressSnapshot: Progress exposed to the UI

Usage:
    from dv100.contracts import FlowStep, FieldRule, ChatMessage
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Field kinds understood by the extraction collaborator
FIELD_KINDS = ("name", "shortText", "yesNo", "number", "date", "longNarrative")

ROLE_JURA = "jura"
ROLE_USER = "user"


def now_ms() -> int:
    """Current time as epoch milliseconds (message timestamps)"""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FlowStep:
    """
    One step of the static flow definition.

    Loaded once from the flow file. Steps flagged ``auto`` are computed
    and never asked; steps whose id is a derivation target are removed
    from the askable sequence by the flow loader.

    Attributes:
        page: Form page the field appears on
        id: Field identifier (bare key, dotted path, or override key)
        type: Widget type hint ('text', 'textarea', 'checkbox', 'date')
        context: Short description of what the field captures.
            Sent to both collaborators and used as the fallback question.
        required: Whether the user must give a usable answer
        auto: Computed field, never asked

    Examples:
        >>> step = FlowStep(page=1, id='petitionerName', type='text',
        ...                 context='Your full legal name', required=True)
        >>> step.required
        True
    """
    page: int
    id: str
    type: str
    context: Optional[str] = None
    required: bool = False
    auto: bool = False


@dataclass(frozen=True)
class FieldRule:
    """
    Extraction policy for a field.

    Attributes:
        kind: One of FIELD_KINDS. Tells the extraction collaborator what
            shape of answer to return.
        required: Whether an unusable answer triggers the retry loop
        max_length: Optional length hint for the collaborator
    """
    kind: str
    required: bool = False
    max_length: Optional[int] = None


@dataclass(frozen=True)
class ExtractionResult:
    """
    Output of the answer extraction adapter.

    ``cleaned`` is empty whenever ``unsure`` is True.
    """
    cleaned: str
    unsure: bool

    @classmethod
    def unsure_result(cls) -> "ExtractionResult":
        return cls(cleaned="", unsure=True)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Completed askable steps out of total (total is never 0)"""
    completed: int
    total: int


@dataclass
class ChatMessage:
    """
    One message of the conversation log.

    ``rendered_text`` and ``complete`` belong to the typing animation in
    the UI. The sequencer never reads them; they are written only so the
    UI can resume an animation, and are reset to the final text on reload.

    Serialized form (persisted slot):
        {"id": str, "from": "jura"|"user", "text": str, "createdAt": int}
    """
    id: str
    role: str
    text: str
    created_at: int
    rendered_text: Optional[str] = None
    complete: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "from": self.role,
            "text": self.text,
            "createdAt": self.created_at,
        }
        if self.rendered_text is not None:
            result["renderedText"] = self.rendered_text
        if self.complete is not None:
            result["complete"] = self.complete
        return result

    @classmethod
    def jura(cls, message_id: str, text: str) -> "ChatMessage":
        return cls(id=message_id, role=ROLE_JURA, text=text,
                   created_at=now_ms(), rendered_text="", complete=False)

    @classmethod
    def user(cls, message_id: str, text: str) -> "ChatMessage":
        return cls(id=message_id, role=ROLE_USER, text=text,
                   created_at=now_ms(), rendered_text=text, complete=True)
