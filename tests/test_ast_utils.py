"""
Tests for sqlglot AST helpers: node addressing, scope and syntactic roles.
"""

import pytest
from sqlglot import exp

from src.sql.analysis.ast_utils import (
    function_arguments,
    function_name,
    function_names,
    iter_nodes,
    literal_type,
    node_at_path,
    node_path,
    parse_sql,
    pick_occurrence,
    reference_name,
    scope_tables,
    syntactic_role,
)
from src.utils.errors import ParseFailure


class TestParsing:
    """parse_sql()"""

    def test_parse_valid_sql(self):
        """Test a SELECT parses into a Select node"""
        assert isinstance(parse_sql("SELECT id FROM employees"), exp.Select)

    def test_parse_failure(self):
        """Test malformed SQL raises ParseFailure with the reason"""
        with pytest.raises(ParseFailure) as info:
            parse_sql("SELECT name FROM employees WHERE (salary > 1")

        assert info.value.sql.startswith("SELECT name")
        assert info.value.reason


class TestNodeAddressing:
    """node_path() / node_at_path()"""

    def test_path_resolves_in_copy(self):
        """Test a path computed on one tree addresses the same node in a copy"""
        tree = parse_sql("SELECT a FROM t WHERE b = 1")
        column = list(iter_nodes(tree, exp.Column))[1]

        copied = tree.copy()
        found = node_at_path(copied, node_path(column))

        assert isinstance(found, exp.Column)
        assert found.name == "b"
        assert found is not column

    def test_root_path_is_empty(self):
        """Test the root has an empty path"""
        tree = parse_sql("SELECT a FROM t")
        assert node_path(tree) == ()
        assert node_at_path(tree, ()) is tree

    def test_missing_path_raises(self):
        """Test an out-of-range path raises LookupError"""
        tree = parse_sql("SELECT a FROM t")
        with pytest.raises(LookupError):
            node_at_path(tree, (("expressions", 5),))


class TestScope:
    """scope_tables() / reference_name()"""

    def test_aliases_are_reference_names(self):
        """Test aliased tables are referenced by alias"""
        tree = parse_sql("SELECT * FROM a JOIN b AS x ON a.id = x.id")
        assert [reference_name(t) for t in scope_tables(tree)] == ["a", "x"]

    def test_subquery_tables_are_out_of_scope(self):
        """Test tables of a nested SELECT do not leak into the outer scope"""
        tree = parse_sql("SELECT * FROM a WHERE a.id IN (SELECT c.id FROM c)")
        assert [t.name for t in scope_tables(tree)] == ["a"]

        inner = next(t for t in iter_nodes(tree, exp.Table) if t.name == "c")
        assert [t.name for t in scope_tables(inner)] == ["c"]


class TestSyntacticRole:
    """syntactic_role()"""

    def test_roles(self):
        """Test plain, argument and operand positions"""
        tree = parse_sql("SELECT a FROM t WHERE UPPER(b) = 'X' AND c > 1")
        a, b, c = list(iter_nodes(tree, exp.Column))

        assert syntactic_role(a)[0] == "plain"

        position, owner, index = syntactic_role(b)
        assert position == "argument"
        assert function_name(owner) == "upper"
        assert index == 0

        position, owner, side = syntactic_role(c)
        assert position == "operand"
        assert isinstance(owner, exp.GT)
        assert side == 0


class TestPickOccurrence:
    """pick_occurrence()"""

    def test_position_selects_occurrence(self):
        """Test the error position chooses between identical references"""
        sql = "SELECT e.dept FROM employees e WHERE e.dept = 'x'"
        columns = list(iter_nodes(parse_sql(sql), exp.Column))
        second = sql.index("e.dept", 20) + 1

        assert pick_occurrence(columns, sql, "dept", second) is columns[1]
        assert pick_occurrence(columns, sql, "dept", None) is columns[0]

    def test_empty_candidates(self):
        """Test no nodes gives None"""
        assert pick_occurrence([], "SELECT 1", "x", 3) is None


class TestFunctionsAndLiterals:
    """Function and literal helpers"""

    def test_known_function(self):
        """Test names and arguments of a typed function node"""
        call = parse_sql("SELECT UPPER(name) FROM t").expressions[0]

        assert function_name(call) == "upper"
        assert "upper" in function_names(call)
        assert [arg.name for arg in function_arguments(call)] == ["name"]

    def test_unknown_function(self):
        """Test an unknown function parses as Anonymous"""
        call = parse_sql("SELECT uper(name, 2) FROM t").expressions[0]

        assert isinstance(call, exp.Anonymous)
        assert function_names(call) == ["uper"]
        assert len(function_arguments(call)) == 2

    def test_literal_types(self):
        """Test literal type inference"""
        tree = parse_sql("SELECT 'x', 1, TRUE, a FROM t")
        text_lit, number, boolean, column = tree.expressions

        assert literal_type(text_lit) == "text"
        assert literal_type(number) == "numeric"
        assert literal_type(boolean) == "boolean"
        assert literal_type(column) is None
