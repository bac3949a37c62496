"""
Tests for structural edits applied through Query.apply().
"""

import pytest
from sqlglot import exp

from src.refinement.edits import (
    AddJoin,
    CastArgument,
    CastOperand,
    QualifyColumn,
    RenameFunction,
    ReplaceColumn,
    ReplaceLiteral,
    ReplaceScopeTable,
    ReplaceTable,
    ReplaceWhereColumn,
)
from src.refinement.models import FaultySpan, Query, SpanRole
from src.sql.analysis.ast_utils import iter_nodes, node_path
from tests.helpers import normalize_sql


def span_at(node: exp.Expression, role: SpanRole = SpanRole.COLUMN) -> FaultySpan:
    return FaultySpan(path=node_path(node), role=role, text=node.name)


def first(query: Query, kind, name: str = None) -> exp.Expression:
    return next(node for node in iter_nodes(query.tree, kind) if name is None or node.name == name)


class TestNameEdits:
    """Table, column and function renames"""

    def test_replace_table_follows_bare_qualifiers(self):
        """Test renaming an unaliased table also renames its qualifiers"""
        query = Query.parse("SELECT employes.name FROM employes")

        fixed = query.apply(span_at(first(query, exp.Table), SpanRole.TABLE), ReplaceTable("employees"))

        assert normalize_sql(fixed.sql) == normalize_sql("SELECT employees.name FROM employees")

    def test_replace_table_keeps_alias(self):
        """Test renaming an aliased table leaves alias qualifiers alone"""
        query = Query.parse("SELECT e.name FROM employes AS e")

        fixed = query.apply(span_at(first(query, exp.Table), SpanRole.TABLE), ReplaceTable("employees"))

        assert normalize_sql(fixed.sql) == normalize_sql("SELECT e.name FROM employees AS e")

    def test_replace_scope_table_from_column(self):
        """Test the in-scope table of a column is replaced from the column's span"""
        query = Query.parse("SELECT location FROM employees")

        fixed = query.apply(span_at(first(query, exp.Column)), ReplaceScopeTable("employees", "departments"))

        assert normalize_sql(fixed.sql) == normalize_sql("SELECT location FROM departments")

    def test_replace_column_with_qualifier(self):
        """Test a replacement can be qualified to stay unambiguous"""
        query = Query.parse("SELECT nme FROM employees e JOIN departments d ON e.department_id = d.id")

        fixed = query.apply(span_at(first(query, exp.Column, "nme")), ReplaceColumn("name", "d"))

        assert normalize_sql(fixed.sql) == normalize_sql(
            "SELECT d.name FROM employees e JOIN departments d ON e.department_id = d.id"
        )

    def test_replace_column_follows_repeats(self):
        """Test GROUP BY / ORDER BY repeats of the column are renamed together"""
        query = Query.parse("SELECT dept, COUNT(*) FROM employees GROUP BY dept ORDER BY dept")

        fixed = query.apply(span_at(first(query, exp.Column, "dept")), ReplaceColumn("department"))

        assert normalize_sql(fixed.sql) == normalize_sql(
            "SELECT department, COUNT(*) FROM employees GROUP BY department ORDER BY department"
        )

    def test_replace_column_stays_in_its_select(self):
        """Test differently qualified and subquery references are left alone"""
        query = Query.parse(
            "SELECT e.dept FROM employees e WHERE d.dept = 1 AND e.id IN (SELECT dept FROM projects)"
        )

        fixed = query.apply(span_at(first(query, exp.Column, "dept")), ReplaceColumn("department"))

        assert normalize_sql(fixed.sql) == normalize_sql(
            "SELECT e.department FROM employees e WHERE d.dept = 1 AND e.id IN (SELECT dept FROM projects)"
        )

    def test_qualify_column(self):
        """Test re-qualifying a column reference"""
        query = Query.parse("SELECT id FROM employees e JOIN departments d ON e.department_id = d.id")

        fixed = query.apply(span_at(first(query, exp.Column, "id")), QualifyColumn("e"))

        assert fixed.sql.startswith("SELECT e.id")

    def test_replace_where_column(self):
        """Test every matching WHERE operand is renamed, the projection is not"""
        query = Query.parse("SELECT name FROM departments WHERE name = 'Paris' OR name = 'Berlin'")
        span = FaultySpan(path=node_path(query.tree), role=SpanRole.QUERY, text="departments")

        fixed = query.apply(span, ReplaceWhereColumn("name", "location"))

        assert normalize_sql(fixed.sql) == normalize_sql(
            "SELECT name FROM departments WHERE location = 'Paris' OR location = 'Berlin'"
        )

    def test_replace_where_column_respects_qualifier(self):
        """Test only operands under the given qualifier are renamed"""
        query = Query.parse(
            "SELECT d.name FROM departments d JOIN projects p ON p.department_id = d.id "
            "WHERE d.name = 'Paris' AND p.title = 'Paris'"
        )
        span = FaultySpan(path=node_path(query.tree), role=SpanRole.QUERY, text="departments, projects")

        fixed = query.apply(span, ReplaceWhereColumn("name", "location", "d"))

        assert "d.location = 'Paris'" in fixed.sql
        assert "p.title = 'Paris'" in fixed.sql
        assert fixed.sql.startswith("SELECT d.name")

    def test_replace_where_column_without_match_raises(self):
        """Test a query without the operand in WHERE raises LookupError"""
        query = Query.parse("SELECT name FROM departments")
        span = FaultySpan(path=node_path(query.tree), role=SpanRole.QUERY, text="departments")

        with pytest.raises(LookupError):
            query.apply(span, ReplaceWhereColumn("name", "location"))

    def test_rename_function(self):
        """Test a function rename keeps the arguments"""
        query = Query.parse("SELECT uper(name) FROM employees")
        call = first(query, exp.Anonymous)

        fixed = query.apply(span_at(call, SpanRole.FUNCTION), RenameFunction("upper"))

        assert normalize_sql(fixed.sql) == normalize_sql("SELECT UPPER(name) FROM employees")


class TestStructuralEdits:
    """Joins, casts and literals"""

    def test_add_join(self):
        """Test a join is appended to the enclosing SELECT"""
        query = Query.parse("SELECT employees.name, departments.name FROM employees")
        column = list(iter_nodes(query.tree, exp.Column))[1]

        fixed = query.apply(span_at(column), AddJoin("departments", "employees.department_id = departments.id"))

        assert normalize_sql(fixed.sql) == normalize_sql(
            "SELECT employees.name, departments.name FROM employees "
            "JOIN departments ON employees.department_id = departments.id"
        )

    def test_cast_operand(self):
        """Test one side of a comparison is wrapped in CAST"""
        query = Query.parse("SELECT name FROM employees WHERE department_id = name")
        comparison = first(query, exp.EQ)
        span = FaultySpan(path=node_path(comparison), role=SpanRole.COMPARISON, text=comparison.sql())

        fixed = query.apply(span, CastOperand(0, "text"))

        cast = first(fixed, exp.Cast)
        assert cast.this.name == "department_id"
        assert cast.to.is_type("text")

    def test_cast_argument(self):
        """Test a function argument is wrapped in CAST"""
        query = Query.parse("SELECT UPPER(salary) FROM employees")
        call = first(query, exp.Upper)

        fixed = query.apply(span_at(call, SpanRole.FUNCTION), CastArgument(0, "text"))

        cast = first(fixed, exp.Cast)
        assert cast.this.name == "salary"
        assert isinstance(cast.parent, exp.Upper)

    def test_replace_literal(self):
        """Test a string literal is replaced by a quoted value"""
        query = Query.parse("SELECT name FROM employees WHERE department = 'Engeneering'")
        literal = first(query, exp.Literal)

        fixed = query.apply(span_at(literal, SpanRole.LITERAL), ReplaceLiteral("Engineering"))

        assert fixed.sql.endswith("department = 'Engineering'")

    def test_replace_repeated_literal(self):
        """Test every occurrence of the literal in the SELECT is replaced"""
        query = Query.parse(
            "SELECT name FROM employees WHERE department = 'Engeneering' OR name = 'Engeneering'"
        )
        literal = first(query, exp.Literal)

        fixed = query.apply(span_at(literal, SpanRole.LITERAL), ReplaceLiteral("Engineering"))

        assert "Engeneering" not in fixed.sql
        assert fixed.sql.count("'Engineering'") == 2


class TestQueryImmutability:
    """Query.apply() never touches the source query"""

    def test_source_query_unchanged(self):
        """Test applying an edit returns a new Query and keeps the original"""
        query = Query.parse("SELECT dept FROM employees")

        fixed = query.apply(span_at(first(query, exp.Column)), ReplaceColumn("department"))

        assert query.sql == "SELECT dept FROM employees"
        assert first(query, exp.Column).name == "dept"
        assert fixed.sql == "SELECT department FROM employees"

    def test_edit_on_wrong_node_raises(self):
        """Test an edit addressed at the wrong node kind raises LookupError"""
        query = Query.parse("SELECT dept FROM employees")

        with pytest.raises(LookupError):
            query.apply(span_at(first(query, exp.Table), SpanRole.TABLE), ReplaceColumn("department"))

    def test_edits_are_hashable_values(self):
        """Test equal edits compare equal (used by the tried-set)"""
        assert ReplaceColumn("department") == ReplaceColumn("department")
        assert len({ReplaceColumn("department"), ReplaceColumn("department"), QualifyColumn("e")}) == 2
