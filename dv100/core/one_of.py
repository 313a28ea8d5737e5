"""
One-Of Groups - cardinality checks over boolean-like fields

Rules:
- exactly-one: exactly one member set
- zero-or-one: at most one member set (yes/no pairs)
- one-of-or-other: at least one member set (the 'other' option counts)

Members are read through the path accessor and boolean-coerced, so
checkbox values stored as 'yes', 'on' or 'true' strings count as set.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dv100.core.object_path import get_at_path

logger = logging.getLogger(__name__)

RULE_EXACTLY_ONE = "exactly-one"
RULE_ZERO_OR_ONE = "zero-or-one"
RULE_ONE_OF_OR_OTHER = "one-of-or-other"

VALID_RULES = {RULE_EXACTLY_ONE, RULE_ZERO_OR_ONE, RULE_ONE_OF_OR_OTHER}

RULE_DESCRIPTIONS = {
    RULE_EXACTLY_ONE: "choose exactly one",
    RULE_ZERO_OR_ONE: "choose at most one",
    RULE_ONE_OF_OR_OTHER: "choose at least one (or 'other')",
}


@dataclass(frozen=True)
class OneOfGroup:
    """A named set of boolean-like fields with a cardinality rule"""
    name: str
    rule: str
    fields: Tuple[str, ...]

    def __post_init__(self):
        if self.rule not in VALID_RULES:
            raise ValueError(f"Unknown one-of rule '{self.rule}' for group '{self.name}'")


@dataclass(frozen=True)
class OneOfEvaluation:
    """
    Result of evaluating one group.

    conflicts is None when ok, otherwise:
        {'filled': [...], 'missing': [...], 'rule': str}
    """
    group: OneOfGroup
    ok: bool
    conflicts: Optional[Dict[str, Any]] = None


def _yes_no(name: str, section: str, stem: str) -> OneOfGroup:
    return OneOfGroup(
        name=name,
        rule=RULE_ZERO_OR_ONE,
        fields=(f"{section}.{stem}_yes", f"{section}.{stem}_no"),
    )


ONE_OF_GROUPS: Tuple[OneOfGroup, ...] = (
    OneOfGroup(
        name="respondentGender",
        rule=RULE_ZERO_OR_ONE,
        fields=(
            "restrainedPerson.respondentGenderMale",
            "restrainedPerson.respondentGenderFemale",
            "restrainedPerson.respondentGenderNonbinary",
        ),
    ),
    OneOfGroup(
        name="relationshipStatus",
        rule=RULE_ONE_OF_OR_OTHER,
        fields=tuple(f"relationship.relationship_{kind}" for kind in (
            "married", "usedToBeMarried", "dating", "engaged", "related",
            "parent", "child", "spouseOfChild", "sibling", "grandparent",
            "grandchild", "otherRelated", "cohabiting", "roommate", "other",
        )),
    ),
    _yes_no("abuseWeapons", "abuse", "abuse_weapons"),
    _yes_no("abuseGunUse", "abuse", "abuse_gun_used"),
    _yes_no("abuseThreatenedWithGun", "abuse", "abuse_threatened_with_gun"),
    _yes_no("abuseGunOwner", "abuse", "abuse_gun_owner"),
    _yes_no("abuseImmediateDanger", "abuse", "abuse_immediate_danger"),
    _yes_no("abusePoliceReport", "abuse", "abuse_police_report"),
    _yes_no("abuseOngoingCase", "abuse", "abuse_ongoing_case"),
    _yes_no("abuseChildrenHarmed", "abuse", "abuse_children_harmed"),
    _yes_no("abuseAnimalsHarmed", "abuse", "abuse_animals_harmed"),
    _yes_no("gunsRemove", "guns", "guns_remove"),
    _yes_no("gunsReturn", "guns", "guns_return"),
    _yes_no("gunsSurrender", "guns", "guns_surrender"),
    _yes_no("gunsRestrict", "guns", "guns_restrict"),
)


def normalize_boolean(value: Any) -> bool:
    """
    Coerce a stored field value to bool.

    Examples:
        >>> normalize_boolean('TRUE'), normalize_boolean('on'), normalize_boolean('no')
        (True, True, False)
        >>> normalize_boolean(0), normalize_boolean(2.5)
        (False, True)
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true" or value in ("on", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def evaluate_one_of_group(document: Any, group: OneOfGroup) -> OneOfEvaluation:
    """
    Check one group against its rule.

    Args:
        document: Form data document
        group: Group definition

    Returns:
        OneOfEvaluation (conflicts listed when not ok)
    """
    filled = [path for path in group.fields if normalize_boolean(get_at_path(document, path))]
    count = len(filled)

    if group.rule == RULE_EXACTLY_ONE:
        ok = count == 1
    elif group.rule == RULE_ZERO_OR_ONE:
        ok = count <= 1
    else:
        ok = count >= 1

    if ok:
        return OneOfEvaluation(group=group, ok=True)

    logger.debug(f"One-of group '{group.name}' failed ({group.rule}): filled={filled}")
    return OneOfEvaluation(
        group=group,
        ok=False,
        conflicts={
            "filled": filled,
            "missing": [path for path in group.fields if path not in filled],
            "rule": group.rule,
        },
    )


def evaluate_all_one_of(
    document: Any,
    groups: Sequence[OneOfGroup] = ONE_OF_GROUPS
) -> Dict[str, Any]:
    """
    Evaluate every group.

    Returns:
        dict: {'ok': bool, 'results': [OneOfEvaluation, ...]}
    """
    results: List[OneOfEvaluation] = [evaluate_one_of_group(document, group) for group in groups]
    return {
        "ok": all(result.ok for result in results),
        "results": results,
    }


def describe_conflict(evaluation: OneOfEvaluation) -> str:
    """Human-readable message for a failed group"""
    if evaluation.ok or evaluation.conflicts is None:
        return ""

    rule_text = RULE_DESCRIPTIONS[evaluation.conflicts["rule"]]
    filled = evaluation.conflicts["filled"]
    if filled:
        offending = ", ".join(filled)
    else:
        offending = "none selected from " + ", ".join(evaluation.group.fields)
    return f"{evaluation.group.name}: {rule_text} ({offending})"
