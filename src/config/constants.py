"""
Application constants

Centralized constants used across the refinement engine.
"""

from typing import Dict, FrozenSet, List, Tuple

# ============================================================================
# Type System
# ============================================================================

# Type family per normalized type name; unknown names fall back to "other"
TYPE_FAMILIES: Dict[str, str] = {
    # numeric
    "smallint": "numeric", "int2": "numeric", "integer": "numeric", "int": "numeric",
    "int4": "numeric", "bigint": "numeric", "int8": "numeric", "real": "numeric",
    "float": "numeric", "float4": "numeric", "float8": "numeric", "double": "numeric",
    "double precision": "numeric", "numeric": "numeric", "decimal": "numeric",
    "serial": "numeric", "bigserial": "numeric", "tinyint": "numeric", "mediumint": "numeric",
    # text
    "text": "text", "varchar": "text", "character varying": "text", "char": "text",
    "character": "text", "bpchar": "text", "string": "text", "name": "text",
    "citext": "text", "clob": "text", "nvarchar": "text",
    # temporal
    "date": "temporal", "time": "temporal", "timestamp": "temporal", "timestamptz": "temporal",
    "timestamp without time zone": "temporal", "timestamp with time zone": "temporal",
    "datetime": "temporal", "interval": "temporal",
    # boolean
    "boolean": "boolean", "bool": "boolean",
    # json
    "json": "json", "jsonb": "json",
}

# Families that accept each other without an explicit cast
COMPATIBLE_FAMILIES: Dict[str, FrozenSet[str]] = {
    "numeric": frozenset({"numeric"}),
    "text": frozenset({"text"}),
    "temporal": frozenset({"temporal", "text"}),
    "boolean": frozenset({"boolean"}),
    "json": frozenset({"json"}),
    "array": frozenset({"array"}),
    "other": frozenset({"other"}),
}

# Explicit casts allowed from one family to another
COERCIBLE_FAMILIES: Dict[str, FrozenSet[str]] = {
    "numeric": frozenset({"numeric", "text"}),
    "text": frozenset({"text", "numeric", "temporal", "boolean", "json"}),
    "temporal": frozenset({"temporal", "text"}),
    "boolean": frozenset({"boolean", "text", "numeric"}),
    "json": frozenset({"json", "text"}),
    "array": frozenset({"array", "text"}),
    "other": frozenset({"text"}),
}

# Placeholder accepted by every argument position
ANY_TYPE = "any"


# ============================================================================
# Built-in Function Signatures
# ============================================================================

# (name, argument types, return type)
_COMMON_FUNCTIONS: List[Tuple[str, Tuple[str, ...], str]] = [
    ("upper", ("text",), "text"),
    ("lower", ("text",), "text"),
    ("length", ("text",), "integer"),
    ("trim", ("text",), "text"),
    ("replace", ("text", "text", "text"), "text"),
    ("substr", ("text", "integer"), "text"),
    ("substr", ("text", "integer", "integer"), "text"),
    ("abs", ("numeric",), "numeric"),
    ("round", ("numeric",), "numeric"),
    ("round", ("numeric", "integer"), "numeric"),
    ("count", (ANY_TYPE,), "bigint"),
    ("sum", ("numeric",), "numeric"),
    ("avg", ("numeric",), "numeric"),
    ("min", (ANY_TYPE,), ANY_TYPE),
    ("max", (ANY_TYPE,), ANY_TYPE),
    ("coalesce", (ANY_TYPE, ANY_TYPE), ANY_TYPE),
]

BUILTIN_FUNCTIONS: Dict[str, List[Tuple[str, Tuple[str, ...], str]]] = {
    "postgres": _COMMON_FUNCTIONS + [
        ("initcap", ("text",), "text"),
        ("btrim", ("text",), "text"),
        ("left", ("text", "integer"), "text"),
        ("right", ("text", "integer"), "text"),
        ("date_part", ("text", "timestamp"), "double precision"),
        ("date_trunc", ("text", "timestamp"), "timestamp"),
        ("to_char", ("timestamp", "text"), "text"),
        ("now", (), "timestamptz"),
        ("ceil", ("numeric",), "numeric"),
        ("floor", ("numeric",), "numeric"),
    ],
    "sqlite": _COMMON_FUNCTIONS + [
        ("instr", ("text", "text"), "integer"),
        ("ifnull", (ANY_TYPE, ANY_TYPE), ANY_TYPE),
        ("typeof", (ANY_TYPE,), "text"),
        ("strftime", ("text", "text"), "text"),
        ("date", ("text",), "text"),
        ("total", ("numeric",), "real"),
    ],
    "mysql": _COMMON_FUNCTIONS + [
        ("date_format", ("datetime", "text"), "text"),
        ("year", ("date",), "integer"),
        ("month", ("date",), "integer"),
        ("ifnull", (ANY_TYPE, ANY_TYPE), ANY_TYPE),
        ("ceil", ("numeric",), "numeric"),
        ("floor", ("numeric",), "numeric"),
    ],
}


# ============================================================================
# Argument Format Translation
# ============================================================================

# strftime-style formats rejected by date_part/extract, mapped to field names
STRFTIME_TO_DATEPART: Dict[str, str] = {
    "%Y": "year",
    "%y": "year",
    "%m": "month",
    "%d": "day",
    "%H": "hour",
    "%M": "minute",
    "%S": "second",
    "%w": "dow",
    "%j": "doy",
    "%U": "week",
    "%W": "week",
    "%s": "epoch",
    "%z": "timezone",
    "%Z": "timezone_abbrev",
}


# ============================================================================
# Dialect Names
# ============================================================================

# SQLAlchemy dialect name -> sqlglot dialect name
SQLALCHEMY_TO_SQLGLOT: Dict[str, str] = {
    "postgresql": "postgres",
    "sqlite": "sqlite",
    "mysql": "mysql",
    "mariadb": "mysql",
}
