"""
Retry Template Registry

Scripted re-prompts shown when a required field gets no usable answer.
Three variants escalate in reassurance; attempts past the third keep
showing the third. The count is unbounded: the flow never skips a
required field on its own.

Template text is presentation copy. The dialogue manager only asks for
"the retry prompt for attempt N" and may be given a different provider.
"""

from enum import Enum
from typing import Dict


class RetryTemplateID(str, Enum):
    """
    Template identifiers for retry prompts.

    Naming convention: RETRY_<ATTEMPT>
    """
    RETRY_FIRST = "retry_first"
    RETRY_SECOND = "retry_second"
    RETRY_FINAL = "retry_final"


# Attempt number (1-indexed) -> template
ATTEMPT_TEMPLATES = (
    RetryTemplateID.RETRY_FIRST,
    RetryTemplateID.RETRY_SECOND,
    RetryTemplateID.RETRY_FINAL,
)

TEMPLATE_TEXT: Dict[RetryTemplateID, str] = {
    RetryTemplateID.RETRY_FIRST: (
        "I really appreciate you sharing what you have so far - even telling me "
        "you're unsure takes effort when you're already overwhelmed. For this part, "
        "the court does need at least a little something, but it doesn't have to be "
        "perfect. If you think about it slowly, is there any small detail - a number, "
        "a city, or even a rough idea - that feels okay to share right now?"
    ),
    RetryTemplateID.RETRY_SECOND: (
        "Thank you for hanging in there with me. Lots of people in your situation "
        "aren't sure what to say here at first, and that's completely normal. We're "
        "just looking for a small piece that belongs in this spot, not your whole "
        "story. As you sit with it for a moment, does any little clue come to mind "
        "that we could use - even if it feels incomplete?"
    ),
    RetryTemplateID.RETRY_FINAL: (
        "You're doing your best in a really hard moment, and I don't take that "
        "lightly. It's okay if your memory feels foggy or if this part feels "
        "uncomfortable. If truly nothing clear is coming up, we can leave this "
        "limited for now and you can come back to it later - but if there's even a "
        "tiny detail you feel okay sharing, I'm here to help you gently put it into words."
    ),
}


def template_for_attempt(attempt: int) -> RetryTemplateID:
    """
    Template for a retry attempt (clamped to 1..3).

    Examples:
        >>> template_for_attempt(0)
        <RetryTemplateID.RETRY_FIRST: 'retry_first'>
        >>> template_for_attempt(7)
        <RetryTemplateID.RETRY_FINAL: 'retry_final'>
    """
    safe = min(max(attempt, 1), len(ATTEMPT_TEMPLATES))
    return ATTEMPT_TEMPLATES[safe - 1]


def get_retry_text(attempt: int) -> str:
    return TEMPLATE_TEXT[template_for_attempt(attempt)]
