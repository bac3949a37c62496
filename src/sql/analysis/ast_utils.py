"""
SQL AST utilities using sqlglot for deterministic query analysis and transformation.

This module provides wrapper functions around sqlglot to:
- Parse SQL into an Abstract Syntax Tree (AST)
- Address nodes by their path from the root so edits survive a tree copy
- Resolve the tables in scope of a node and the syntactic role of a node
"""

import re
from typing import Iterator, List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError
from loguru import logger

from src.utils.errors import ParseFailure

# A path step is (arg key, list index or None)
PathStep = Tuple[str, Optional[int]]
NodePath = Tuple[PathStep, ...]

COMPARISON_TYPES = (exp.EQ, exp.NEQ, exp.GT, exp.GTE, exp.LT, exp.LTE, exp.Like, exp.ILike)

# Nodes that end the upward search for a column's syntactic role
_ROLE_BOUNDARIES = (
    exp.Select, exp.Where, exp.Having, exp.Group, exp.Order, exp.Join,
    exp.From, exp.Subquery, exp.Connector, exp.Not,
)


def parse_sql(sql: str, dialect: str = "postgres") -> exp.Expression:
    """
    Parse SQL into sqlglot AST.

    Args:
        sql: SQL query string
        dialect: sqlglot dialect name (default: "postgres")

    Returns:
        sqlglot Expression (AST root)

    Raises:
        ParseFailure: If SQL is malformed

    Example:
        >>> ast = parse_sql("SELECT id, name FROM users WHERE active = 1")
        >>> print(type(ast))
        <class 'sqlglot.expressions.Select'>
    """
    try:
        parsed = sqlglot.parse_one(sql, read=dialect)
    except SqlglotError as e:
        logger.debug(f"Failed to parse SQL: {e}")
        raise ParseFailure(sql, str(e)) from e

    if parsed is None:
        raise ParseFailure(sql, "empty statement")

    logger.debug(f"Parsed SQL into AST: {type(parsed).__name__}")
    return parsed


# ============================================================================
# Node Addressing
# ============================================================================

def node_path(node: exp.Expression) -> NodePath:
    """
    Compute the path of a node from the root of its tree.

    Example:
        >>> ast = parse_sql("SELECT a FROM t")
        >>> node_path(ast.expressions[0])
        (('expressions', 0),)
    """
    steps: List[PathStep] = []
    current = node
    while current.parent is not None:
        parent = current.parent
        key = current.arg_key
        value = parent.args.get(key)
        index = None
        if isinstance(value, list):
            index = next(i for i, item in enumerate(value) if item is current)
        steps.append((key, index))
        current = parent
    return tuple(reversed(steps))


def node_at_path(root: exp.Expression, path: NodePath) -> exp.Expression:
    """
    Resolve a path produced by node_path() against a (possibly copied) tree.

    Raises:
        LookupError: If the path does not address a node of this tree
    """
    node = root
    for key, index in path:
        value = node.args.get(key)
        if index is not None:
            if not isinstance(value, list) or index >= len(value):
                raise LookupError(f"No list element {key}[{index}] in {type(node).__name__}")
            value = value[index]
        if not isinstance(value, exp.Expression):
            raise LookupError(f"No node at {key} in {type(node).__name__}")
        node = value
    return node


def iter_nodes(root: exp.Expression, *types) -> Iterator[exp.Expression]:
    """Yield nodes of the given types in depth-first (textual) order."""
    yield from root.find_all(*(types or (exp.Expression,)), bfs=False)


def pick_occurrence(
    nodes: List[exp.Expression],
    sql: str,
    text: str,
    position: Optional[int],
) -> Optional[exp.Expression]:
    """
    Choose among nodes matching the same identifier using an error position.

    The position is 1-based (Postgres convention). The number of whole-word
    occurrences of `text` before it selects the node; without a position the
    first node wins.
    """
    if not nodes:
        return None
    if not position or not text:
        return nodes[0]

    pattern = re.compile(r"(?<!\w)" + re.escape(text) + r"(?!\w)", re.IGNORECASE)
    occurrence = len(pattern.findall(sql[: max(position - 1, 0)]))
    if occurrence < len(nodes):
        return nodes[occurrence]
    return nodes[0]


# ============================================================================
# Scope Resolution
# ============================================================================

def enclosing_select(node: exp.Expression) -> Optional[exp.Select]:
    """Return the nearest SELECT that owns this node (the node itself if a SELECT)."""
    if isinstance(node, exp.Select):
        return node
    return node.find_ancestor(exp.Select)


def scope_tables(node: exp.Expression) -> List[exp.Table]:
    """
    Tables in FROM/JOIN of the SELECT enclosing `node`, excluding subqueries.

    Example:
        >>> ast = parse_sql("SELECT * FROM a JOIN b AS x ON a.id = x.id")
        >>> [t.alias_or_name for t in scope_tables(ast)]
        ['a', 'x']
    """
    select = enclosing_select(node)
    if select is None:
        return []
    return [
        table for table in select.find_all(exp.Table, bfs=False)
        if table.find_ancestor(exp.Select) is select and table.name
    ]


def reference_name(table: exp.Table) -> str:
    """Name used to qualify columns of this table (alias if present)."""
    return table.alias or table.name


def same_references(node: exp.Expression) -> List[exp.Expression]:
    """
    Every reference in the SELECT enclosing `node` that spells the same column
    (name and qualifier) or the same string literal, `node` included.

    Example:
        >>> ast = parse_sql("SELECT dept, COUNT(*) FROM t GROUP BY dept")
        >>> len(same_references(ast.expressions[0]))
        2
    """
    select = enclosing_select(node)
    if select is None:
        return [node]

    if isinstance(node, exp.Column):
        name, qualifier = node.name.lower(), node.table.lower()
        matches = [
            column for column in select.find_all(exp.Column, bfs=False)
            if column.name.lower() == name and column.table.lower() == qualifier
        ]
    elif isinstance(node, exp.Literal) and node.is_string:
        matches = [
            literal for literal in select.find_all(exp.Literal, bfs=False)
            if literal.is_string and literal.this == node.this
        ]
    else:
        return [node]

    matches = [match for match in matches if match.find_ancestor(exp.Select) is select]
    return matches if any(match is node for match in matches) else [node] + matches


# ============================================================================
# Functions and Literals
# ============================================================================

def function_name(node: exp.Func) -> str:
    """Lower-cased name of a function call node."""
    if isinstance(node, exp.Anonymous):
        return node.name.lower()
    return node.sql_name().lower()


def function_names(node: exp.Func) -> List[str]:
    """All spellings sqlglot accepts for this function node (lower-cased)."""
    if isinstance(node, exp.Anonymous):
        return [node.name.lower()]
    return [name.lower() for name in type(node).sql_names()]


def function_arguments(node: exp.Func) -> List[exp.Expression]:
    """Positional arguments of a function call node."""
    if isinstance(node, exp.Anonymous):
        return list(node.expressions)

    arguments: List[exp.Expression] = []
    for key in node.arg_types:
        value = node.args.get(key)
        if isinstance(value, list):
            arguments.extend(item for item in value if isinstance(item, exp.Expression))
        elif isinstance(value, exp.Expression):
            arguments.append(value)
    return arguments


def is_function_call(node: exp.Expression) -> bool:
    """True for function calls; CAST is treated as a type annotation, not a call."""
    return isinstance(node, exp.Func) and not isinstance(node, (exp.Cast, exp.TryCast))


def literal_type(node: exp.Expression) -> Optional[str]:
    """SQL type name of a literal node, or None if not a typed literal."""
    if isinstance(node, exp.Literal):
        return "text" if node.is_string else "numeric"
    if isinstance(node, exp.Boolean):
        return "boolean"
    return None


# ============================================================================
# Syntactic Roles
# ============================================================================

def syntactic_role(node: exp.Expression) -> Tuple[str, Optional[exp.Expression], Optional[int]]:
    """
    Classify where a node sits: function argument, comparison operand or plain.

    Returns:
        ("argument", function_node, argument_index),
        ("operand", comparison_node, side) with side 0 = left, 1 = right,
        or ("plain", None, None)

    Example:
        >>> ast = parse_sql("SELECT a FROM t WHERE UPPER(b) = 'X'")
        >>> col = list(iter_nodes(ast, exp.Column))[1]
        >>> syntactic_role(col)[0]
        'argument'
    """
    child = node
    parent = node.parent
    while parent is not None and not isinstance(parent, _ROLE_BOUNDARIES):
        if is_function_call(parent):
            arguments = function_arguments(parent)
            index = next((i for i, arg in enumerate(arguments) if arg is child), None)
            return "argument", parent, index
        if isinstance(parent, COMPARISON_TYPES + (exp.In,)):
            side = 0 if parent.this is child else 1
            return "operand", parent, side
        child = parent
        parent = parent.parent
    return "plain", None, None
