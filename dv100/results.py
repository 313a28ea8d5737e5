"""
Result types returned by DialogueManager and FormExporter.

These are the ONLY return types of the public operations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TurnResult:
    """
    Outcome of one user message.

    Attributes:
        system_output: Text to show the user (question or retry prompt),
            None when the turn produced no reply
        state: Persisted snapshot after the turn ({data, messages, step})
        debug: Extraction outcome, retry attempt, resolved path, etc.
        turn_metadata: step_id, step_index, status
        flow_complete: No askable steps left
    """
    system_output: Optional[str]
    state: Dict[str, Any]
    debug: Dict[str, Any]
    turn_metadata: Dict[str, Any]
    flow_complete: bool


@dataclass(frozen=True)
class IllegalCommand:
    """
    Message rejected without any state change.

    Examples:
    - Input while a previous turn is still being processed
    - Empty or whitespace-only input

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected operation
    """
    reason: str
    command_type: str


@dataclass(frozen=True)
class ExportReport:
    """
    Filled PDF written to disk.

    Attributes:
        pdf_path: Absolute path to the filled PDF
        pdf_filename: Filename only (for display/download)
        fields_filled: Mapping entries written to the PDF
        fields_skipped: Mapping entries with no matching widget
    """
    pdf_path: str
    pdf_filename: str
    fields_filled: int
    fields_skipped: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExportBlocked:
    """
    Export refused by validation; no PDF was generated.

    Attributes:
        validation: Full validate_all() result
        messages: Blocking messages for the user
        issue_path: First path to focus in the preview
    """
    validation: Dict[str, Any]
    messages: List[str]
    issue_path: Optional[str] = None
