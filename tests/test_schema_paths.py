"""
Unit tests for step id -> schema path resolution
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dv100 import config
from dv100.core.schema_paths import SchemaPathResolver, build_path_map

SCHEMA = {
    "protectedPerson": {"petitionerName": "", "caseNumber": ""},
    "court": {"caseNumber": ""},
    "otherProtected": {"people": [{"name": "", "age": ""}]},
    "empty": {},
}


def test_bare_key_first_match_wins():
    """Test a key appearing in two sections resolves to the first"""
    path_map = build_path_map(SCHEMA)

    assert path_map["caseNumber"] == "protectedPerson.caseNumber"
    assert path_map["court.caseNumber"] == "court.caseNumber"
    assert path_map["petitionerName"] == "protectedPerson.petitionerName"

    print("✓ First-match-wins test passed")


def test_lists_walked_by_index_and_empty_containers_are_leaves():
    path_map = build_path_map(SCHEMA)

    assert path_map["otherProtected.people.0.name"] == "otherProtected.people.0.name"
    assert path_map["name"] == "otherProtected.people.0.name"
    assert path_map["empty"] == "empty"


def test_resolve_priority():
    """Test override, then table, then the id itself"""
    resolver = SchemaPathResolver(SCHEMA, {"petitionerName": "custom.path"})

    assert resolver.resolve("petitionerName") == "custom.path"
    assert resolver.resolve("caseNumber") == "protectedPerson.caseNumber"
    assert resolver.resolve("otherProtected.people[0].age") == "otherProtected.people.0.age"
    assert resolver.resolve("unknownField") == "unknownField"
    assert resolver.lookup("") is None


def test_shipped_schema_resolves_flow_ids():
    """Test the shipped files map the ids the flow asks about"""
    resolver = SchemaPathResolver.from_files(config.SCHEMA_PATH, config.SCHEMA_OVERRIDES_PATH)

    assert resolver.resolve("petitionerName") == "protectedPerson.petitionerName"
    assert resolver.resolve("respondentName") == "restrainedPerson.respondentName"
    assert resolver.resolve("caseNumber") == "court.caseNumber"
    assert resolver.resolve("faxNumber") == "protectedPerson.petitionerFax"
    assert resolver.resolve("otherProtectedName1") == "otherProtected.people[0].name"
    assert resolver.resolve("abuse_details_description") == "abuse.abuse_details_description"
