"""
Tests for error normalization (raw Postgres / SQLite / MySQL errors -> semantic types).
"""

import pytest

from src.refinement.error_parser import (
    EMPTY_RESULT_MESSAGE,
    normalize_error,
    normalize_execution_error,
    normalize_outcome,
    split_qualified,
)
from src.refinement.error_types import NormalizedError, SQLErrorType
from src.sql.execution.executor import ExecutionError, ExecutionOutcome


class TestUnknownNames:
    """Unknown column / table / function messages"""

    def test_postgres_unknown_column(self):
        """Test quoted Postgres column error"""
        normalized = normalize_error('column "dept" does not exist')

        assert normalized.error_type == SQLErrorType.UNKNOWN_COLUMN
        assert normalized.details == {"column": "dept"}

    def test_postgres_qualified_unknown_column(self):
        """Test dotted Postgres column error keeps the qualifier"""
        normalized = normalize_error("column e.dept does not exist")

        assert normalized.error_type == SQLErrorType.UNKNOWN_COLUMN
        assert normalized.details == {"table": "e", "column": "dept"}

    def test_postgres_column_of_relation(self):
        """Test 'column ... of relation ...' is a column error, not a table error"""
        normalized = normalize_error('column "dept" of relation "employees" does not exist')

        assert normalized.error_type == SQLErrorType.UNKNOWN_COLUMN
        assert normalized.details == {"column": "dept", "table": "employees"}

    def test_sqlite_unknown_column(self):
        """Test SQLite column error"""
        normalized = normalize_error("no such column: e.dept")

        assert normalized.error_type == SQLErrorType.UNKNOWN_COLUMN
        assert normalized.details == {"table": "e", "column": "dept"}

    def test_mysql_unknown_column(self):
        """Test MySQL column error with location"""
        normalized = normalize_error("Unknown column 'users.invalid_col' in 'field list'")

        assert normalized.error_type == SQLErrorType.UNKNOWN_COLUMN
        assert normalized.details["table"] == "users"
        assert normalized.details["column"] == "invalid_col"
        assert normalized.details["location"] == "field list"

    def test_unknown_table_variants(self):
        """Test unknown table across dialects"""
        for message in (
            'relation "employes" does not exist',
            "no such table: employes",
            "Table 'hr.employes' doesn't exist",
        ):
            normalized = normalize_error(message)
            assert normalized.error_type == SQLErrorType.UNKNOWN_TABLE, message
            assert normalized.details["table"] == "employes"

    def test_postgres_unknown_function(self):
        """Test function signature error extracts argument types"""
        normalized = normalize_error("function uper(character varying, integer) does not exist")

        assert normalized.error_type == SQLErrorType.UNKNOWN_FUNCTION
        assert normalized.details["function"] == "uper"
        assert normalized.details["arg_types"] == ["character varying", "integer"]

    def test_sqlite_wrong_arity(self):
        """Test SQLite arity error"""
        normalized = normalize_error("wrong number of arguments to function upper()")

        assert normalized.error_type == SQLErrorType.UNKNOWN_FUNCTION
        assert normalized.details["function"] == "upper"
        assert normalized.details["arity_mismatch"] is True


class TestStructuralErrors:
    """Missing joins, ambiguity and type errors"""

    def test_missing_join(self):
        """Test missing FROM entry is not mistaken for an unknown table"""
        normalized = normalize_error('missing FROM-clause entry for table "d"')

        assert normalized.error_type == SQLErrorType.MISSING_JOIN
        assert normalized.details == {"table": "d"}

    def test_ambiguous_column(self):
        """Test ambiguity in Postgres and SQLite"""
        assert normalize_error('column reference "id" is ambiguous').details == {"column": "id"}
        sqlite = normalize_error("ambiguous column name: id")
        assert sqlite.error_type == SQLErrorType.AMBIGUOUS_COLUMN
        assert sqlite.details == {"column": "id"}

    def test_operator_mismatch(self):
        """Test operator error splits the operand types"""
        normalized = normalize_error("operator does not exist: integer = character varying")

        assert normalized.error_type == SQLErrorType.OPERATOR_MISMATCH
        assert normalized.details == {
            "left_type": "integer",
            "operator": "=",
            "right_type": "character varying",
        }

    def test_invalid_argument_format(self):
        """Test date-part unit error"""
        normalized = normalize_error('unit "%Y" not recognized for type timestamp without time zone')

        assert normalized.error_type == SQLErrorType.INVALID_ARGUMENT_FORMAT
        assert normalized.details["format"] == "%Y"

    def test_invalid_enum_value(self):
        """Test enum domain error"""
        normalized = normalize_error('invalid input value for enum mood: "hapy"')

        assert normalized.error_type == SQLErrorType.INVALID_VALUE
        assert normalized.details == {"type": "mood", "value": "hapy"}

    def test_syntax_error(self):
        """Test syntax errors are recognized (and never refined)"""
        normalized = normalize_error('syntax error at or near "FORM"')

        assert normalized.error_type == SQLErrorType.SYNTAX_ERROR


class TestFallbacks:
    """Unknown messages, positions and outcomes"""

    def test_unknown_error_type(self):
        """Test unrecognized error falls back to OTHER"""
        normalized = normalize_error("canceling statement due to statement timeout")

        assert normalized.error_type == SQLErrorType.OTHER
        assert normalized.details == {}
        assert not normalized.refinable
        assert normalize_error('syntax error at or near "FORM"').refinable is False
        assert normalize_error('column "dept" does not exist').refinable

    def test_position_and_code_are_kept(self):
        """Test execution error position and SQLSTATE survive normalization"""
        error = ExecutionError(message='column "dept" does not exist', code="42703", position=8)

        normalized = normalize_execution_error(error)

        assert normalized.position == 8
        assert normalized.details["code"] == "42703"
        assert normalized.details["column"] == "dept"

    def test_successful_outcome(self):
        """Test rows mean no error"""
        outcome = ExecutionOutcome(columns=("name",), rows=(("Ada",),))

        assert normalize_outcome(outcome) is None

    def test_empty_result(self):
        """Test an empty result is an error only when configured so"""
        outcome = ExecutionOutcome(columns=("name",), rows=())

        empty = normalize_outcome(outcome)
        assert empty.error_type == SQLErrorType.EMPTY_RESULT
        assert empty.raw_message == EMPTY_RESULT_MESSAGE
        assert normalize_outcome(outcome, treat_empty_as_error=False) is None

    def test_split_qualified(self):
        """Test qualified names split on the last dot"""
        assert split_qualified("e.dept") == {"table": "e", "column": "dept"}
        assert split_qualified("hr.e.dept") == {"table": "e", "column": "dept"}
        assert split_qualified('"dept"') == {"column": "dept"}

    def test_error_type_is_validated(self):
        """Test NormalizedError rejects plain strings"""
        with pytest.raises(TypeError):
            NormalizedError(error_type="unknown_column", raw_message="x")
