"""
Flow Definition - static step catalog and field rules

Responsibilities:
- Load the ordered flow definition once
- Decide which steps are askable (not auto, not derivation targets)
- Provide the extraction policy (FieldRule) for a step

The flow file is the authoritative source of form structure:
    {"steps": [{"page": 1, "id": "...", "type": "...", "context": "...",
                "required": false, "auto": false}, ...]}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from dv100.contracts import FieldRule, FlowStep

logger = logging.getLogger(__name__)


class FlowDefinitionError(ValueError):
    """Raised when the flow file is structurally invalid"""
    pass


FIELD_RULES: Dict[str, FieldRule] = {
    "courtName": FieldRule(kind="shortText", required=False, max_length=120),
    "caseNumber": FieldRule(kind="shortText", required=False, max_length=60),
    "petitionerName": FieldRule(kind="name", required=True, max_length=80),
    "respondentName": FieldRule(kind="name", required=True, max_length=80),
    "abuse_details_description": FieldRule(kind="longNarrative", required=True),
    "abuse_additional_details_description": FieldRule(kind="longNarrative", required=False),
    "abuse_more_details_description": FieldRule(kind="longNarrative", required=False),
}


def get_field_rule(step: FlowStep) -> FieldRule:
    """
    Extraction policy for a step.

    Listed fields use their rule; anything else is short text, required
    as the flow says.
    """
    return FIELD_RULES.get(step.id, FieldRule(kind="shortText", required=bool(step.required)))


def _parse_step(raw: Any, position: int) -> FlowStep:
    if not isinstance(raw, dict):
        raise FlowDefinitionError(f"Step {position} must be an object, got {type(raw).__name__}")

    missing = {"page", "id", "type"} - set(raw.keys())
    if missing:
        raise FlowDefinitionError(f"Step {position} missing keys: {sorted(missing)}")

    return FlowStep(
        page=int(raw["page"]),
        id=str(raw["id"]),
        type=str(raw["type"]),
        context=raw.get("context"),
        required=bool(raw.get("required", False)),
        auto=bool(raw.get("auto", False)),
    )


def load_flow(path: Union[str, Path]) -> List[FlowStep]:
    """
    Load ordered flow steps.

    Args:
        path: Path to flow JSON

    Returns:
        list: FlowStep in flow order

    Raises:
        FileNotFoundError: If file doesn't exist
        FlowDefinitionError: If structure is invalid
    """
    flow_file = Path(path)
    if not flow_file.exists():
        raise FileNotFoundError(f"Flow definition not found: {path}")

    with open(flow_file, "r", encoding="utf-8") as f:
        raw = json.load(f)

    steps = raw.get("steps") if isinstance(raw, dict) else None
    if not isinstance(steps, list):
        raise FlowDefinitionError(f"Flow definition has no 'steps' list: {path}")

    parsed = [_parse_step(step, position) for position, step in enumerate(steps)]
    logger.info(f"Loaded flow {raw.get('form', '')} v{raw.get('version', 'unknown')}: {len(parsed)} steps")
    return parsed


def filter_askable_steps(steps: Iterable[FlowStep], derived_targets: Iterable[str]) -> List[FlowStep]:
    """
    Steps the user is actually asked about.

    Drops steps with no id, auto steps, and steps whose id is a
    derivation target. Order is preserved.
    """
    targets = set(derived_targets)
    return [
        step for step in steps
        if step.id and not step.auto and step.id not in targets
    ]
