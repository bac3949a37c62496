"""
Structural edits applied to a query at a faulty span.

An edit is a frozen, path-independent description of one change. It is
applied to the node addressed by the span path in a *copy* of the tree
(name and literal edits also reach the same-spelled references of that
SELECT); the caller regenerates and re-parses the SQL afterwards.
"""

from dataclasses import dataclass
from typing import Optional

import sqlglot
from sqlglot import exp

from src.sql.analysis.ast_utils import (
    enclosing_select,
    function_arguments,
    reference_name,
    same_references,
    scope_tables,
)


class Edit:
    """Base class for structural edits"""

    def apply(self, node: exp.Expression, dialect: str) -> None:
        """Mutate `node` (a node of a copied tree) in place."""
        raise NotImplementedError


def _rename_table(table: exp.Table, new_name: str) -> None:
    """Point a table reference at another relation, keeping column qualifiers valid."""
    old_name = table.name
    table.set("this", exp.to_identifier(new_name))
    if table.alias:
        return

    select = enclosing_select(table)
    if select is None:
        return
    # Columns qualified with the bare old name follow the rename
    for column in select.find_all(exp.Column):
        if column.table and column.table.lower() == old_name.lower():
            column.set("table", exp.to_identifier(new_name))


def _cast(node: exp.Expression, type_name: str, dialect: str) -> exp.Cast:
    return exp.Cast(this=node.copy(), to=exp.DataType.build(type_name, dialect=dialect, udt=True))


def _expect(node: exp.Expression, kind: type) -> exp.Expression:
    if not isinstance(node, kind):
        raise LookupError(f"Expected {kind.__name__}, found {type(node).__name__}")
    return node


# ============================================================================
# Name Edits
# ============================================================================

@dataclass(frozen=True)
class ReplaceTable(Edit):
    """FROM employes -> FROM employees"""
    table: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        _rename_table(_expect(node, exp.Table), self.table)


@dataclass(frozen=True)
class ReplaceScopeTable(Edit):
    """Replace the in-scope table referenced as `reference` (the column's table)"""
    reference: str
    table: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        for table in scope_tables(node):
            if reference_name(table).lower() == self.reference.lower():
                _rename_table(table, self.table)
                return
        raise LookupError(f"No table '{self.reference}' in scope")


@dataclass(frozen=True)
class ReplaceColumn(Edit):
    """
    e.dept -> e.department (optionally qualifying the replacement)

    Every reference spelled like the faulty one in the same SELECT follows,
    so GROUP BY / ORDER BY repeats are fixed together.
    """
    column: str
    qualifier: Optional[str] = None

    def apply(self, node: exp.Expression, dialect: str) -> None:
        for column in same_references(_expect(node, exp.Column)):
            column.set("this", exp.to_identifier(self.column))
            if self.qualifier:
                column.set("table", exp.to_identifier(self.qualifier))


@dataclass(frozen=True)
class QualifyColumn(Edit):
    """id -> d.id, or emp.name -> e.name (every same-spelled reference)"""
    qualifier: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        for column in same_references(_expect(node, exp.Column)):
            column.set("table", exp.to_identifier(self.qualifier))


@dataclass(frozen=True)
class ReplaceOperandColumn(Edit):
    """Replace the column on one side of a comparison (side 0 = left)"""
    side: int
    column: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        operand = node.args.get("this" if self.side == 0 else "expression")
        _expect(operand, exp.Column).set("this", exp.to_identifier(self.column))


@dataclass(frozen=True)
class ReplaceWhereColumn(Edit):
    """WHERE name = 'Paris' -> WHERE location = 'Paris' (every match in the WHERE clause)"""
    column: str
    replacement: str
    qualifier: Optional[str] = None

    def apply(self, node: exp.Expression, dialect: str) -> None:
        select = enclosing_select(node)
        where = select.args.get("where") if select is not None else None
        if where is None:
            raise LookupError("No WHERE clause to edit")

        qualifier = (self.qualifier or "").lower()
        targets = [
            column for column in where.find_all(exp.Column)
            if column.name.lower() == self.column.lower()
            and column.table.lower() == qualifier
            and column.find_ancestor(exp.Select) is select
        ]
        if not targets:
            raise LookupError(f"No column '{self.column}' in WHERE")
        for column in targets:
            column.set("this", exp.to_identifier(self.replacement))


@dataclass(frozen=True)
class ReplaceArgumentColumn(Edit):
    """Replace a column passed as the index-th argument of a function call"""
    index: int
    column: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        arguments = function_arguments(node)
        if self.index >= len(arguments):
            raise LookupError(f"Function has no argument #{self.index}")
        _expect(arguments[self.index], exp.Column).set("this", exp.to_identifier(self.column))


@dataclass(frozen=True)
class RenameFunction(Edit):
    """UPPPER(name) -> UPPER(name)"""
    function: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        arguments = [argument.copy() for argument in function_arguments(node)]
        node.replace(exp.Anonymous(this=self.function, expressions=arguments))


# ============================================================================
# Structural Edits
# ============================================================================

@dataclass(frozen=True)
class AddJoin(Edit):
    """Append JOIN <table> [AS alias] ON <condition> to the enclosing SELECT"""
    table: str
    on: str
    alias: Optional[str] = None

    def apply(self, node: exp.Expression, dialect: str) -> None:
        select = enclosing_select(node)
        if select is None:
            raise LookupError("No enclosing SELECT for join")
        select.join(
            exp.to_table(self.table),
            on=sqlglot.condition(self.on, dialect=dialect),
            join_alias=self.alias,
            dialect=dialect,
            copy=False,
        )


@dataclass(frozen=True)
class CastOperand(Edit):
    """WHERE id = '5' -> WHERE CAST(id AS TEXT) = '5'"""
    side: int
    type_name: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        operand = node.args.get("this" if self.side == 0 else "expression")
        if operand is None:
            raise LookupError(f"Comparison has no operand on side {self.side}")
        operand.replace(_cast(operand, self.type_name, dialect))


@dataclass(frozen=True)
class CastArgument(Edit):
    """UPPER(id) -> UPPER(CAST(id AS TEXT))"""
    index: int
    type_name: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        arguments = function_arguments(node)
        if self.index >= len(arguments):
            raise LookupError(f"Function has no argument #{self.index}")
        argument = arguments[self.index]
        argument.replace(_cast(argument, self.type_name, dialect))


@dataclass(frozen=True)
class ReplaceLiteral(Edit):
    """'Engeneering' -> 'Engineering', wherever the SELECT repeats the literal"""
    value: str

    def apply(self, node: exp.Expression, dialect: str) -> None:
        # Date-part names parsed as Var nodes come back alone
        for literal in same_references(node):
            literal.replace(exp.Literal.string(self.value))
