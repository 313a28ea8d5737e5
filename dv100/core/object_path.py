"""
Object Path - get/set over nested dict/list documents

Paths use '.' for object descent and '[n]' for list indices
('a.b[2].c' and 'a.b.2.c' are the same path). A segment made only of ASCII
digits is a list index.

Missing segments read as None. Writes create intermediate containers:
a list when the next segment is an index, a dict otherwise.
"""

import re
from typing import Any, List, Sequence, Union

PathPart = Union[str, int]
PathLike = Union[str, Sequence[PathPart]]

ARRAY_INDEX_PATTERN = re.compile(r"\[([0-9]+)\]")
INDEX_SEGMENT_PATTERN = re.compile(r"[0-9]+")


def tokenize(path: PathLike) -> List[PathPart]:
    """
    Split a path into segments.

    Args:
        path: Path string, or an already tokenized sequence

    Returns:
        list: Segments, digit-only segments converted to int

    Examples:
        >>> tokenize('otherProtected.people[0].name')
        ['otherProtected', 'people', 0, 'name']
        >>> tokenize('')
        []
    """
    if not isinstance(path, str):
        return list(path)

    parts: List[PathPart] = []
    for segment in ARRAY_INDEX_PATTERN.sub(r".\1", path).split("."):
        if not segment:
            continue
        parts.append(int(segment) if INDEX_SEGMENT_PATTERN.fullmatch(segment) else segment)
    return parts


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def get_at_path(document: Any, path: PathLike) -> Any:
    """
    Read the value at path.

    Args:
        document: Nested dict/list structure
        path: Path string or token sequence

    Returns:
        Value at path, the whole document for an empty path, or None if
        any segment is missing
    """
    parts = tokenize(path)
    if not parts:
        return document

    current = document
    for part in parts:
        if isinstance(current, list):
            if not isinstance(part, int) or part >= len(current):
                return None
            current = current[part]
        elif isinstance(current, dict):
            # Dict keys are strings even for numeric segments
            key = part if part in current else str(part)
            if key not in current:
                return None
            current = current[key]
        else:
            return None

        if current is None:
            return None

    return current


def _assign(container: Any, part: PathPart, value: Any) -> None:
    if isinstance(container, list) and isinstance(part, int):
        if part >= len(container):
            container.extend([None] * (part + 1 - len(container)))
        container[part] = value
    elif isinstance(container, dict):
        container[part if isinstance(part, str) else str(part)] = value


def _child(container: Any, part: PathPart) -> Any:
    if isinstance(container, list):
        if isinstance(part, int) and part < len(container):
            return container[part]
        return None
    key = part if isinstance(part, str) else str(part)
    return container.get(key)


def set_at_path(document: Any, path: PathLike, value: Any) -> Any:
    """
    Write value at path, creating intermediate containers.

    Mutates document in place.

    Args:
        document: Nested dict/list structure
        path: Path string or token sequence
        value: Value to store

    Returns:
        The same document (unchanged when path is empty)
    """
    parts = tokenize(path)
    if not parts:
        return document

    current = document
    for index, part in enumerate(parts[:-1]):
        next_part = parts[index + 1]
        child = _child(current, part)

        if not _is_container(child):
            child = [] if isinstance(next_part, int) else {}
            _assign(current, part, child)

        current = child

    _assign(current, parts[-1], value)
    return document
