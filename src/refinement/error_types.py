"""
Semantic error kinds the refinement search reasons about.

The DBMS reports failures as free text whose wording differs per engine;
error_parser maps that text onto the closed set below once, and the rest of
the engine only ever sees NormalizedError.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional


class SQLErrorType(Enum):
    """Kinds of execution failure, independent of the reporting DBMS"""

    # A name the catalog does not resolve
    UNKNOWN_TABLE = "unknown_table"
    UNKNOWN_COLUMN = "unknown_column"
    AMBIGUOUS_COLUMN = "ambiguous_column"
    UNKNOWN_FUNCTION = "unknown_function"
    MISSING_JOIN = "missing_join"           # qualifier names a relation absent from FROM

    OPERATOR_MISMATCH = "operator_mismatch"  # comparison between incompatible types

    # Literal problems
    INVALID_VALUE = "invalid_value"
    INVALID_ARGUMENT_FORMAT = "invalid_argument_format"
    EMPTY_RESULT = "empty_result"            # synthesized, never reported by the DBMS

    SYNTAX_ERROR = "syntax_error"
    OTHER = "other"                          # timeouts, permissions, anything unmatched


# Kinds no edit of the query can address
UNREFINABLE: FrozenSet[SQLErrorType] = frozenset({SQLErrorType.SYNTAX_ERROR, SQLErrorType.OTHER})


@dataclass
class NormalizedError:
    """
    One DBMS failure, normalized.

    Attributes:
        error_type: Kind of failure
        raw_message: Message as the DBMS reported it
        details: Names pulled out of the message, e.g. {"column": "dept", "table": "e"}
        position: 1-based offset of the offending token, when the DBMS reports one

    Example:
        >>> error = NormalizedError(SQLErrorType.UNKNOWN_TABLE, 'relation "employes" does not exist',
        ...                         {"table": "employes"})
        >>> error.get_detail("table"), error.refinable
        ('employes', True)
    """
    error_type: SQLErrorType
    raw_message: str
    details: Dict[str, Any] = field(default_factory=dict)
    position: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.error_type, SQLErrorType):
            raise TypeError(f"error_type must be SQLErrorType, got {type(self.error_type)}")

    @property
    def refinable(self) -> bool:
        return self.error_type not in UNREFINABLE

    def get_detail(self, key: str, default: Any = None) -> Any:
        return self.details.get(key, default)

    def __str__(self) -> str:
        return f"{self.error_type.value}: {self.raw_message}"
