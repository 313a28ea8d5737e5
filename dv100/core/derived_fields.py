"""
Derived Fields - mirror values between schema paths

The derivation table maps target path -> source path. Several targets
may share one source (page captions repeat the petitioner name, the
signature block repeats it again).

Rules:
- Only non-empty source values are copied (None and '' are skipped)
- A target is never cleared
- Applying the table twice gives the same result as applying it once
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from dv100.core.object_path import get_at_path, set_at_path

logger = logging.getLogger(__name__)

DerivedMap = Dict[str, str]


def load_derived_map(path: Union[str, Path]) -> DerivedMap:
    """
    Load derivation table from JSON.

    Args:
        path: Path to derived fields JSON ({target: source})

    Returns:
        dict: target path -> source path

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file isn't a flat string mapping
    """
    map_file = Path(path)
    if not map_file.exists():
        raise FileNotFoundError(f"Derived fields table not found: {path}")

    with open(map_file, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
    ):
        raise ValueError(f"Derived fields table must map strings to strings: {path}")

    logger.info(f"Loaded {len(raw)} derived field mappings")
    return raw


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


def apply_derived_fields(document: Dict[str, Any], derived_map: DerivedMap) -> Dict[str, Any]:
    """
    Copy source values onto their targets.

    Mutates document in place and also returns the copied values as a
    separate overlay (only targets that received a value appear there).

    Args:
        document: Form data document
        derived_map: target path -> source path

    Returns:
        dict: {'derived': overlay}
    """
    derived: Dict[str, Any] = {}

    for target_path, source_path in derived_map.items():
        value = get_at_path(document, source_path)
        if _has_value(value):
            set_at_path(document, target_path, value)
            set_at_path(derived, target_path, copy.deepcopy(value))

    return {"derived": derived}


def merge_derived(document: Dict[str, Any], derived: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep copy of document with the derived overlay merged in.

    Nested dicts merge key by key; any other overlay value replaces the
    document value.
    """
    merged = copy.deepcopy(document)

    def assign(target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict):
                if not isinstance(target.get(key), dict):
                    target[key] = {}
                assign(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    assign(merged, derived)
    return merged
