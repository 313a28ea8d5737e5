"""
Display Helpers - Convert form data to a human-readable preview

Used by the preview endpoint and the console harness. Every schema
section becomes a group; every leaf becomes one {key, label, value} row.
"""

import math
import re
from typing import Any, Dict, List, Optional

NOT_PROVIDED = "Not provided"

# Section titles that humanize() would get wrong
GROUP_TITLES = {
    "protectedPerson": "Protected Person (You)",
    "restrainedPerson": "Restrained Person",
    "otherProtected": "Other Protected People",
    "ordersRequested": "Orders Requested",
}


def humanize(key: str) -> str:
    """
    Convert technical key to a label.

    Examples:
        >>> humanize('petitionerName')
        'Petitioner Name'
        >>> humanize('abuse_details_description')
        'Abuse Details Description'
    """
    text = re.sub(r"[_#]", " ", key)
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    text = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text)


def format_value(value: Any) -> str:
    """
    Field value as preview text.

    None, blank strings, NaN and empty lists read 'Not provided';
    booleans read Yes/No; lists are comma-joined.
    """
    if value is None:
        return NOT_PROVIDED
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return NOT_PROVIDED
        return str(value)
    if isinstance(value, str):
        return value if value.strip() else NOT_PROVIDED
    if isinstance(value, list):
        return ", ".join(format_value(item) for item in value) if value else NOT_PROVIDED
    return NOT_PROVIDED


def collect_entries(value: Any, path: List[str]) -> List[Dict[str, str]]:
    """Flatten a subtree into preview rows keyed by dotted path"""
    if isinstance(value, list):
        entries = []
        for index, item in enumerate(value):
            entries.extend(collect_entries(item, path + [str(index)]))
        return entries

    if isinstance(value, dict):
        entries = []
        for key, child in value.items():
            entries.extend(collect_entries(child, path + [key]))
        return entries

    label = humanize(path[-1]) if path else ""
    return [{
        "key": ".".join(path),
        "label": label or "(Field)",
        "value": format_value(value),
    }]


def build_groups(
    document: Dict[str, Any],
    group_keys: Optional[List[str]] = None
) -> List[Dict[str, Any]]:
    """
    Preview groups in schema order.

    Args:
        document: Form data (usually merged with the derived overlay)
        group_keys: Section order (default: document key order)

    Returns:
        list: [{'key', 'title', 'entries': [...]}, ...] (empty groups dropped)
    """
    groups = []
    for group_key in group_keys or list(document.keys()):
        entries = collect_entries(document.get(group_key), [group_key])
        if entries:
            groups.append({
                "key": group_key,
                "title": GROUP_TITLES.get(group_key, humanize(group_key)),
                "entries": entries,
            })
    return groups
