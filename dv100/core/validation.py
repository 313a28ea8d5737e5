"""
Export Validation - required fields and one-of group consistency

Runs at export time only. During the conversation, missing required
answers go through the retry loop instead.
"""

import logging
from typing import Any, Dict, List, Optional

from dv100.core.object_path import get_at_path
from dv100.core.one_of import describe_conflict, evaluate_all_one_of, normalize_boolean

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    {"path": "protectedPerson.petitionerName", "label": "Petitioner name"},
    {"path": "restrainedPerson.respondentName", "label": "Respondent name"},
    {"path": "abuse.abuse_details_description", "label": "Abuse details"},
)

# At least one of these orders must be requested (Section 12)
REQUIRED_ORDER_OPTIONS = (
    "ordersRequested.order_noAbuse_checkbox",
    "ordersRequested.order_noContact_checkbox",
    "ordersRequested.order_stayAway",
)
ORDERS_LABEL = "At least one protection order (Section 12)"


def _is_missing(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() == ""
    return value is None


def validate_required(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check required paths and the order selection.

    Args:
        document: Form data document

    Returns:
        dict: {
            'ok': bool,
            'missing': [{'path': str, 'label': str}, ...],
            'ordersSelected': bool
        }
    """
    missing: List[Dict[str, str]] = [
        {"path": field["path"], "label": field["label"]}
        for field in REQUIRED_FIELDS
        if _is_missing(get_at_path(document, field["path"]))
    ]

    orders_selected = any(normalize_boolean(get_at_path(document, path)) for path in REQUIRED_ORDER_OPTIONS)
    if not orders_selected:
        missing.append({"path": REQUIRED_ORDER_OPTIONS[0], "label": ORDERS_LABEL})

    return {
        "ok": not missing,
        "missing": missing,
        "ordersSelected": orders_selected,
    }


def validate_one_of(document: Dict[str, Any]) -> Dict[str, Any]:
    return evaluate_all_one_of(document)


def validate_all(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Full export gate.

    Returns:
        dict: {'ok': bool, 'required': {...}, 'oneOf': {...}}
    """
    required = validate_required(document)
    one_of = validate_one_of(document)
    ok = required["ok"] and one_of["ok"]

    if not ok:
        logger.info(
            f"Validation failed: {len(required['missing'])} missing, "
            f"{sum(1 for r in one_of['results'] if not r.ok)} group conflicts"
        )

    return {
        "ok": ok,
        "required": required,
        "oneOf": one_of,
    }


def validation_messages(result: Dict[str, Any]) -> List[str]:
    """Blocking messages shown to the user, missing fields first"""
    messages = [f"Missing: {entry['label']}" for entry in result["required"]["missing"]]
    messages.extend(
        f"Conflict: {describe_conflict(evaluation)}"
        for evaluation in result["oneOf"]["results"]
        if not evaluation.ok
    )
    return messages


def find_issue_path(result: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Path of the first problem to focus in the preview.

    First missing required path, else the first filled (or first member)
    field of the first failing group, else None.
    """
    if not result:
        return None

    missing = result["required"]["missing"]
    if missing:
        return missing[0]["path"]

    for evaluation in result["oneOf"]["results"]:
        if evaluation.ok:
            continue
        filled = evaluation.conflicts["filled"] if evaluation.conflicts else []
        if filled:
            return filled[0]
        return evaluation.group.fields[0] if evaluation.group.fields else None

    return None
