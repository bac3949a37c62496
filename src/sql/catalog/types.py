"""
SQL type normalization and compatibility checks used by pruning and typecasts.
"""

import re
from typing import Optional

from src.config.constants import (
    ANY_TYPE,
    COERCIBLE_FAMILIES,
    COMPATIBLE_FAMILIES,
    TYPE_FAMILIES,
)

_PARAMS = re.compile(r"\(.*?\)")
_SPACES = re.compile(r"\s+")


def normalize_type(type_name: Optional[str]) -> str:
    """
    Canonical lower-case type name without length/precision parameters.

    Example:
        >>> normalize_type("VARCHAR(50)")
        'varchar'
        >>> normalize_type("NUMERIC(10, 2)[]")
        'numeric[]'
    """
    if not type_name:
        return ""
    name = _PARAMS.sub("", str(type_name).lower())
    return _SPACES.sub(" ", name).strip()


def type_family(type_name: Optional[str]) -> Optional[str]:
    """Type family of a SQL type; None when the type is unknown or polymorphic."""
    name = normalize_type(type_name)
    if not name or name in (ANY_TYPE, "unknown", "null"):
        return None
    if name.endswith("[]") or name.startswith("_") or name.startswith("array"):
        return "array"
    return TYPE_FAMILIES.get(name, "other")


def is_compatible(candidate_type: Optional[str], expected_type: Optional[str]) -> bool:
    """True unless both types are known and belong to incompatible families."""
    candidate = type_family(candidate_type)
    expected = type_family(expected_type)
    if candidate is None or expected is None:
        return True
    if candidate == "other" or expected == "other":
        return True
    return expected in COMPATIBLE_FAMILIES.get(candidate, frozenset())


def is_coercible(source_type: Optional[str], target_type: Optional[str]) -> bool:
    """True when an explicit CAST from source to target type is defined."""
    source = type_family(source_type)
    target = type_family(target_type)
    if source is None or target is None:
        return False
    if normalize_type(source_type) == normalize_type(target_type):
        return False
    return target in COERCIBLE_FAMILIES.get(source, frozenset())
