"""Nested value extraction from JSON-shaped data.

Paths are dot-separated segments; ``items[2]`` is shorthand for the two
segments ``items`` and ``2``. Absence is the only failure signal: malformed
paths and missing branches both resolve to ``MISSING``.
"""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# items[0] or matrix[1][2] -> bracketed index groups
BRACKET_PATTERN = re.compile(r"\[([^\[\]]*)\]")

# List indices must be all digits
INDEX_PATTERN = re.compile(r"^\d+$")


class _Missing:
    """Sentinel type for a path that does not resolve."""

    _instance = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    """Check whether an extraction result is the not-found sentinel."""
    return value is MISSING


def split_path(path: str) -> list[str]:
    """Split a dot/bracket path into segments.

    Example:
        >>> split_path("data.contacts[0].value")
        ['data', 'contacts', '0', 'value']
    """
    return BRACKET_PATTERN.sub(r".\1", path).split(".")


def extract(value: Any, path: str) -> Any:
    """Locate a value inside a nested structure.

    Args:
        value: Parsed JSON body (dicts, lists, scalars)
        path: Dot/bracket path, e.g. "data.items[1]"

    Returns:
        The addressed value, or MISSING when any step of the walk fails.
    """
    current = value
    for segment in split_path(path):
        if current is None:
            return MISSING
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            if not INDEX_PATTERN.match(segment):
                return MISSING
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def extract_mapping(value: Any, mapping: dict[str, str], label: str) -> dict[str, Any]:
    """Extract every ``context key -> path`` entry that resolves.

    Misses are non-fatal: the key is left out and a warning is logged.

    Args:
        value: Parsed response body
        mapping: Context key -> path
        label: Request or step label used in the warning

    Returns:
        Dictionary of context keys whose path resolved
    """
    found: dict[str, Any] = {}
    for key, path in mapping.items():
        extracted = extract(value, path)
        if is_missing(extracted):
            logger.warning("%s: nothing found at '%s' for context key '%s'", label, path, key)
            continue
        found[key] = extracted
    return found
