"""
SQL error parser - converts raw database errors to semantic error types.

This module is the ONLY place where we match against database-specific error strings.
All other code works with NormalizedError objects. Postgres, SQLite and MySQL
message shapes are recognized.
"""

import re
from typing import Dict, List, Optional

from loguru import logger

from src.refinement.error_types import NormalizedError, SQLErrorType
from src.sql.execution.executor import ExecutionError, ExecutionOutcome

EMPTY_RESULT_MESSAGE = "query returned no rows"


def normalize_error(
    error_message: str,
    position: Optional[int] = None,
    code: Optional[str] = None,
) -> NormalizedError:
    """
    Parse a raw database error message into a semantic error type.

    This function matches against known error patterns and extracts structured
    details. If no pattern matches, returns SQLErrorType.OTHER.

    Args:
        error_message: Raw error message from the database
        position: 1-based offending position, if the database reported one
        code: SQLSTATE / vendor code, if available

    Returns:
        NormalizedError with semantic type and extracted details

    Example:
        >>> error = normalize_error('column "dept" does not exist')
        >>> error.error_type
        <SQLErrorType.UNKNOWN_COLUMN: 'unknown_column'>
        >>> error.details["column"]
        'dept'
    """
    message = error_message.strip()

    # Order matters: "missing FROM-clause entry" also mentions a table,
    # and "column ... of relation ..." also mentions a relation
    for detect, parse in _PARSERS:
        if detect(message):
            normalized = parse(message)
            normalized.position = position
            if code:
                normalized.details.setdefault("code", code)
            return normalized

    logger.debug(f"Could not normalize error, classifying as OTHER: {message[:100]}")
    details = {"code": code} if code else {}
    return NormalizedError(
        error_type=SQLErrorType.OTHER,
        raw_message=error_message,
        details=details,
        position=position,
    )


def normalize_execution_error(error: ExecutionError) -> NormalizedError:
    """Normalize a structured ExecutionError from the executor."""
    return normalize_error(error.message, position=error.position, code=error.code)


def normalize_outcome(outcome: ExecutionOutcome, treat_empty_as_error: bool = True) -> Optional[NormalizedError]:
    """
    Normalize an execution outcome.

    Returns:
        None for a successful outcome; a NormalizedError for a failed one, or
        EMPTY_RESULT for a clean but empty result when treat_empty_as_error
    """
    if outcome.error is not None:
        return normalize_execution_error(outcome.error)
    if treat_empty_as_error and outcome.columns and not outcome.rows:
        return NormalizedError(
            error_type=SQLErrorType.EMPTY_RESULT,
            raw_message=EMPTY_RESULT_MESSAGE,
            details={},
        )
    return None


def split_qualified(name: str) -> Dict[str, str]:
    """
    Split 'table.column' (or 'schema.table.column') into details.

    Example:
        >>> split_qualified("e.dept")
        {'table': 'e', 'column': 'dept'}
    """
    parts = [p.strip('"`\'') for p in name.split(".")]
    if len(parts) >= 2:
        return {"table": parts[-2], "column": parts[-1]}
    return {"column": parts[0]}


# ============================================================================
# Pattern Detection Functions
# ============================================================================

def _is_missing_join(error_message: str) -> bool:
    """Check if error is a reference to a relation absent from FROM."""
    return "missing FROM-clause entry" in error_message


def _is_unknown_column(error_message: str) -> bool:
    """Check if error is an unknown column."""
    return (
        bool(re.search(r"\bcolumn\b.*\bdoes not exist", error_message)) or
        "no such column" in error_message or
        "Unknown column" in error_message
    )


def _is_unknown_table(error_message: str) -> bool:
    """Check if error is an unknown table."""
    return (
        bool(re.search(r'relation ".+" does not exist', error_message)) or
        "no such table" in error_message or
        "Table" in error_message and "doesn't exist" in error_message
    )


def _is_ambiguous_column(error_message: str) -> bool:
    """Check if error is an ambiguous column reference."""
    return (
        "is ambiguous" in error_message or
        "ambiguous column name" in error_message
    )


def _is_operator_mismatch(error_message: str) -> bool:
    """Check if error is an operator applied to incompatible types."""
    return (
        "operator does not exist" in error_message or
        "could not identify an equality operator" in error_message
    )


def _is_unknown_function(error_message: str) -> bool:
    """Check if error is an unknown function or a call with a wrong signature."""
    return (
        bool(re.search(r"function .+\(.*\) does not exist", error_message)) or
        "no such function" in error_message or
        "wrong number of arguments to function" in error_message or
        bool(re.search(r"FUNCTION \S+ does not exist", error_message))
    )


def _is_invalid_argument_format(error_message: str) -> bool:
    """Check if error is a rejected format/unit string in a function argument."""
    return (
        bool(re.search(r'unit\s+".+?"\s+not\s+recognized', error_message)) or
        bool(re.search(r'invalid\s+format\s+(?:string\s+)?"', error_message))
    )


def _is_invalid_value(error_message: str) -> bool:
    """Check if error is a literal outside a value domain."""
    return (
        "invalid input value for enum" in error_message or
        "invalid input syntax for" in error_message
    )


def _is_syntax_error(error_message: str) -> bool:
    """Check if error is a syntax error."""
    return (
        "syntax error" in error_message or
        "You have an error in your SQL syntax" in error_message
    )


# ============================================================================
# Error Parsing Functions
# ============================================================================

def _parse_missing_join(error_message: str) -> NormalizedError:
    """
    Parse missing FROM entry error.

    Example error:
    'missing FROM-clause entry for table "d"'
    """
    details = {}
    match = re.search(r'table "([^"]+)"', error_message)
    if match:
        details["table"] = match.group(1)

    logger.debug(f"Parsed MISSING_JOIN: {details}")
    return NormalizedError(SQLErrorType.MISSING_JOIN, error_message, details)


def _parse_unknown_column(error_message: str) -> NormalizedError:
    """
    Parse unknown column error.

    Example errors:
    'column "dept" does not exist'
    'column e.dept does not exist'
    'column "dept" of relation "employees" does not exist'
    'no such column: e.dept'
    "Unknown column 'e.dept' in 'field list'"
    """
    details: Dict[str, str] = {}

    of_relation = re.search(r'column "([^"]+)" of relation "([^"]+)" does not exist', error_message)
    quoted = re.search(r'column "([^"]+)" does not exist', error_message)
    dotted = re.search(r"column ([\w$]+(?:\.[\w$]+)+) does not exist", error_message)
    sqlite = re.search(r"no such column: (\S+)", error_message)
    mysql = re.search(r"Unknown column '([^']+)'", error_message)

    if of_relation:
        details = {"column": of_relation.group(1), "table": of_relation.group(2)}
    elif quoted:
        details = split_qualified(quoted.group(1)) if "." in quoted.group(1) else {"column": quoted.group(1)}
    elif dotted:
        details = split_qualified(dotted.group(1))
    elif sqlite:
        details = split_qualified(sqlite.group(1))
    elif mysql:
        details = split_qualified(mysql.group(1))
        location = re.search(r"in '([^']+)'", error_message)
        if location:
            details["location"] = location.group(1)

    logger.debug(f"Parsed UNKNOWN_COLUMN: {details}")
    return NormalizedError(SQLErrorType.UNKNOWN_COLUMN, error_message, details)


def _parse_unknown_table(error_message: str) -> NormalizedError:
    """
    Parse unknown table error.

    Example errors:
    'relation "employes" does not exist'
    'no such table: employes'
    "Table 'hr.employes' doesn't exist"
    """
    details = {}
    match = (
        re.search(r'relation "([^"]+)" does not exist', error_message) or
        re.search(r"no such table: (\S+)", error_message) or
        re.search(r"[Tt]able '([^']+)' doesn't exist", error_message)
    )
    if match:
        details["table"] = match.group(1).split(".")[-1]

    logger.debug(f"Parsed UNKNOWN_TABLE: {details}")
    return NormalizedError(SQLErrorType.UNKNOWN_TABLE, error_message, details)


def _parse_ambiguous_column(error_message: str) -> NormalizedError:
    """
    Parse ambiguous column error.

    Example errors:
    'column reference "id" is ambiguous'
    'ambiguous column name: id'
    "Column 'id' in field list is ambiguous"
    """
    details = {}
    match = (
        re.search(r'column reference "([^"]+)" is ambiguous', error_message) or
        re.search(r"ambiguous column name: (\S+)", error_message) or
        re.search(r"[Cc]olumn '([^']+)'", error_message)
    )
    if match:
        details["column"] = match.group(1).split(".")[-1]

    logger.debug(f"Parsed AMBIGUOUS_COLUMN: {details}")
    return NormalizedError(SQLErrorType.AMBIGUOUS_COLUMN, error_message, details)


_OPERATOR = r"(=|<>|!=|<=|>=|<|>|!?~~\*?|\|\||[+\-*/%^&|#@~!]+)"


def _parse_operator_mismatch(error_message: str) -> NormalizedError:
    """
    Parse operator type mismatch error.

    Example errors:
    'operator does not exist: integer = text'
    'could not identify an equality operator for type json'
    """
    details = {}
    match = re.search(r"operator does not exist:\s*(.+?)\s+" + _OPERATOR + r"\s+(.+?)\s*$", error_message)
    if match:
        details = {
            "left_type": match.group(1).strip(),
            "operator": match.group(2),
            "right_type": match.group(3).strip(),
        }
    else:
        equality = re.search(r"equality operator for type (\S+)", error_message)
        if equality:
            details = {"left_type": equality.group(1), "operator": "="}

    logger.debug(f"Parsed OPERATOR_MISMATCH: {details}")
    return NormalizedError(SQLErrorType.OPERATOR_MISMATCH, error_message, details)


def _parse_unknown_function(error_message: str) -> NormalizedError:
    """
    Parse unknown function error.

    Example errors:
    'function uper(character varying) does not exist'
    'no such function: UPPPER'
    'wrong number of arguments to function upper()'
    'FUNCTION hr.uper does not exist'
    """
    details: Dict[str, object] = {}
    postgres = re.search(r"function ([\w.]+)\((.*)\) does not exist", error_message)
    sqlite = re.search(r"no such function: (\w+)", error_message)
    arity = re.search(r"wrong number of arguments to function (\w+)\(\)", error_message)
    mysql = re.search(r"FUNCTION (\S+) does not exist", error_message)

    if postgres:
        details["function"] = postgres.group(1).split(".")[-1]
        details["arg_types"] = _split_arg_types(postgres.group(2))
    elif sqlite:
        details["function"] = sqlite.group(1)
    elif arity:
        details["function"] = arity.group(1)
        details["arity_mismatch"] = True
    elif mysql:
        details["function"] = mysql.group(1).split(".")[-1]

    logger.debug(f"Parsed UNKNOWN_FUNCTION: {details}")
    return NormalizedError(SQLErrorType.UNKNOWN_FUNCTION, error_message, details)


def _split_arg_types(raw: str) -> List[str]:
    """'integer, character varying' -> ['integer', 'character varying']"""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _parse_invalid_argument_format(error_message: str) -> NormalizedError:
    """
    Parse rejected format string error.

    Example errors:
    'unit "%Y" not recognized for type timestamp without time zone'
    'invalid format string "%Q"'
    """
    details = {}
    match = (
        re.search(r'unit\s+"([^"]+)"\s+not\s+recognized', error_message) or
        re.search(r'invalid\s+format\s+(?:string\s+)?"([^"]+)"', error_message)
    )
    if match:
        details["format"] = match.group(1)

    logger.debug(f"Parsed INVALID_ARGUMENT_FORMAT: {details}")
    return NormalizedError(SQLErrorType.INVALID_ARGUMENT_FORMAT, error_message, details)


def _parse_invalid_value(error_message: str) -> NormalizedError:
    """
    Parse value domain error.

    Example errors:
    'invalid input value for enum mood: "hapy"'
    'invalid input syntax for type integer: "abc"'
    """
    details = {}
    enum_match = re.search(r'invalid input value for enum ([\w.]+): "(.*)"', error_message)
    syntax_match = re.search(r'invalid input syntax for (?:type )?([\w ]+?): "(.*)"', error_message)
    if enum_match:
        details = {"type": enum_match.group(1), "value": enum_match.group(2)}
    elif syntax_match:
        details = {"type": syntax_match.group(1), "value": syntax_match.group(2)}

    logger.debug(f"Parsed INVALID_VALUE: {details}")
    return NormalizedError(SQLErrorType.INVALID_VALUE, error_message, details)


def _parse_syntax_error(error_message: str) -> NormalizedError:
    """Parse syntax error (never refined, reported as-is)."""
    return NormalizedError(SQLErrorType.SYNTAX_ERROR, error_message, {})


_PARSERS = [
    (_is_missing_join, _parse_missing_join),
    (_is_ambiguous_column, _parse_ambiguous_column),
    (_is_unknown_column, _parse_unknown_column),
    (_is_unknown_table, _parse_unknown_table),
    (_is_operator_mismatch, _parse_operator_mismatch),
    (_is_unknown_function, _parse_unknown_function),
    (_is_invalid_argument_format, _parse_invalid_argument_format),
    (_is_invalid_value, _parse_invalid_value),
    (_is_syntax_error, _parse_syntax_error),
]
