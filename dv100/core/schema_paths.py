"""
Schema Paths - resolve flow step ids to schema paths

The lookup table is built once from the schema template:
- every leaf is reachable by its full dotted path
- every leaf is also reachable by its bare key, first occurrence in a
  depth-first walk (document order) wins when keys collide across
  sections ('petitionerName' -> 'protectedPerson.petitionerName', not
  'caption.petitionerName')
- non-empty lists are walked by index; empty dicts and lists are leaves

Explicit overrides (step id -> path) take priority over the table.
Ids that resolve to nothing fall back to themselves.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dv100.core.object_path import ARRAY_INDEX_PATTERN

logger = logging.getLogger(__name__)


def load_schema_template(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load the form data template (every field present with its default).

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    schema_file = Path(path)
    if not schema_file.exists():
        raise FileNotFoundError(f"Form schema template not found: {path}")

    with open(schema_file, "r", encoding="utf-8") as f:
        return json.load(f)


def build_path_map(schema: Any) -> Dict[str, str]:
    """
    Flatten schema into {key or dotted path: dotted path}.

    Args:
        schema: Schema template (nested dicts/lists)

    Returns:
        dict: lookup table
    """
    path_map: Dict[str, str] = {}

    def walk(value: Any, path: List[str]) -> None:
        if isinstance(value, list):
            for index, item in enumerate(value):
                walk(item, path + [str(index)])
            return

        if isinstance(value, dict):
            for key, child in value.items():
                next_path = path + [key]
                if isinstance(child, (dict, list)) and child:
                    walk(child, next_path)
                else:
                    joined = ".".join(next_path)
                    path_map.setdefault(key, joined)
                    path_map[joined] = joined
            return

        if path:
            joined = ".".join(path)
            path_map[joined] = joined

    walk(schema, [])
    return path_map


class SchemaPathResolver:
    """Maps flow step ids to schema paths"""

    def __init__(self, schema: Dict[str, Any], overrides: Optional[Dict[str, str]] = None):
        """
        Args:
            schema: Schema template
            overrides: step id -> explicit schema path
        """
        self.path_map = build_path_map(schema)
        self.overrides = dict(overrides or {})
        logger.info(
            f"Schema path table built: {len(self.path_map)} entries, "
            f"{len(self.overrides)} overrides"
        )

    @classmethod
    def from_files(
        cls,
        schema_path: Union[str, Path],
        overrides_path: Optional[Union[str, Path]] = None
    ) -> "SchemaPathResolver":
        schema = load_schema_template(schema_path)

        overrides = {}
        if overrides_path is not None and Path(overrides_path).exists():
            with open(overrides_path, "r", encoding="utf-8") as f:
                overrides = json.load(f)

        return cls(schema, overrides)

    def lookup(self, field_id: str) -> Optional[str]:
        """Table lookup only (no overrides, no fallback)"""
        if not field_id:
            return None
        if field_id in self.path_map:
            return self.path_map[field_id]
        normalized = ARRAY_INDEX_PATTERN.sub(r".\1", field_id)
        return self.path_map.get(normalized)

    def resolve(self, step_id: str) -> str:
        """
        Schema path to write a step's answer to.

        Priority: override, lookup table, the id itself.
        """
        if step_id in self.overrides:
            return self.overrides[step_id]
        return self.lookup(step_id) or step_id
