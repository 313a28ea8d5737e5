"""
Unit tests for one-of group consistency checks
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from dv100.core.one_of import (
    ONE_OF_GROUPS,
    RULE_EXACTLY_ONE,
    RULE_ONE_OF_OR_OTHER,
    RULE_ZERO_OR_ONE,
    OneOfGroup,
    describe_conflict,
    evaluate_all_one_of,
    evaluate_one_of_group,
    normalize_boolean,
)

PAIR = OneOfGroup(name="weapons", rule=RULE_ZERO_OR_ONE, fields=("abuse.w_yes", "abuse.w_no"))


def test_normalize_boolean():
    """Test checkbox values stored as strings/numbers coerce correctly"""
    for value in (True, "true", "TRUE", "on", "yes", 1, 2.5):
        assert normalize_boolean(value) is True, value
    for value in (False, "false", "no", "off", "", 0, None, "Yes"):
        assert normalize_boolean(value) is False, value

    print("✓ normalize_boolean test passed")


def test_zero_or_one_pair():
    """Test yes/no pair: both set is a conflict, none set is fine"""
    both = evaluate_one_of_group({"abuse": {"w_yes": True, "w_no": True}}, PAIR)
    assert both.ok is False
    assert both.conflicts["filled"] == ["abuse.w_yes", "abuse.w_no"]
    assert both.conflicts["missing"] == []
    assert both.conflicts["rule"] == RULE_ZERO_OR_ONE

    none_set = evaluate_one_of_group({"abuse": {"w_yes": False, "w_no": False}}, PAIR)
    assert none_set.ok is True
    assert none_set.conflicts is None

    one_set = evaluate_one_of_group({"abuse": {"w_yes": "yes", "w_no": False}}, PAIR)
    assert one_set.ok is True

    print("✓ Zero-or-one test passed")


def test_exactly_one_and_one_of_or_other():
    exactly = OneOfGroup(name="g", rule=RULE_EXACTLY_ONE, fields=("a", "b"))
    assert evaluate_one_of_group({}, exactly).ok is False
    assert evaluate_one_of_group({"a": True}, exactly).ok is True
    assert evaluate_one_of_group({"a": True, "b": "on"}, exactly).ok is False

    at_least = OneOfGroup(name="r", rule=RULE_ONE_OF_OR_OTHER, fields=("a", "other"))
    missing = evaluate_one_of_group({}, at_least)
    assert missing.ok is False
    assert missing.conflicts["filled"] == []
    assert missing.conflicts["missing"] == ["a", "other"]
    assert evaluate_one_of_group({"other": True}, at_least).ok is True


def test_unknown_rule_rejected():
    with pytest.raises(ValueError, match="Unknown one-of rule"):
        OneOfGroup(name="bad", rule="two-of", fields=("a",))


def test_evaluate_all_reports_each_group():
    document = {"relationship": {"relationship_dating": True}}
    result = evaluate_all_one_of(document)

    assert result["ok"] is True
    assert len(result["results"]) == len(ONE_OF_GROUPS)

    document["abuse"] = {"abuse_weapons_yes": True, "abuse_weapons_no": True}
    result = evaluate_all_one_of(document)
    failed = [r.group.name for r in result["results"] if not r.ok]
    assert result["ok"] is False
    assert failed == ["abuseWeapons"]


def test_describe_conflict():
    both = evaluate_one_of_group({"abuse": {"w_yes": True, "w_no": True}}, PAIR)
    assert describe_conflict(both) == "weapons: choose at most one (abuse.w_yes, abuse.w_no)"

    ok = evaluate_one_of_group({}, PAIR)
    assert describe_conflict(ok) == ""
