"""
Fault classifier - maps a normalized error to the faulty span and the
ordered refinement categories to try on it.

The mapping is deterministic and driven by the error type. A result of None
means the error is Unclassifiable: the classifier never substitutes an
unmapped category.
"""

from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from sqlglot import exp

from src.config.constants import ANY_TYPE, STRFTIME_TO_DATEPART
from src.config.settings import RefinementSettings
from src.refinement.categories import COLUMN_FAMILIES, RefinementCategory, enabled_categories
from src.refinement.error_types import NormalizedError, SQLErrorType
from src.refinement.models import Classification, FaultySpan, Query, SpanRole
from src.sql.analysis.ast_utils import (
    COMPARISON_TYPES,
    enclosing_select,
    function_arguments,
    function_name,
    function_names,
    is_function_call,
    iter_nodes,
    literal_type,
    node_path,
    pick_occurrence,
    reference_name,
    scope_tables,
    syntactic_role,
)
from src.sql.catalog.catalog import CatalogSnapshot
from src.sql.catalog.types import is_compatible, type_family

Located = Optional[Tuple[FaultySpan, List[RefinementCategory]]]

_ROLE_FOR_POSITION = {
    "plain": SpanRole.COLUMN,
    "operand": SpanRole.OPERAND,
    "argument": SpanRole.ARGUMENT,
}

_FAMILY_FOR_ROLE = {
    SpanRole.COLUMN: "plain",
    SpanRole.OPERAND: "operand",
    SpanRole.ARGUMENT: "argument",
}


def classify(
    error: NormalizedError,
    query: Query,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> Optional[Classification]:
    """
    Locate the faulty span of an error and choose its refinement categories.

    Args:
        error: Normalized error from executing `query`
        query: The query that produced the error
        catalog: Catalog snapshot of the session
        config: Session settings snapshot (category toggles)

    Returns:
        Classification, or None when the error is Unclassifiable

    Example:
        >>> error = normalize_error('column "dept" does not exist')
        >>> classify(error, Query.parse("SELECT dept FROM employees"), catalog, settings).categories
        (<RefinementCategory.COLUMN: 'column'>, <RefinementCategory.TABLE_FOR_COLUMN: 'table_for_column'>, ...)
    """
    locate = _LOCATORS.get(error.error_type) if error.refinable else None
    if locate is None:
        logger.debug(f"Unclassifiable error type: {error.error_type.value}")
        return None

    located = locate(error, query, catalog)
    if located is None:
        logger.debug(f"Could not locate faulty span for {error}")
        return None

    span, categories = located
    enabled = enabled_categories(categories, config)
    if not enabled:
        logger.debug(f"All categories disabled for {error.error_type.value}: {[c.value for c in categories]}")
        return None

    logger.debug(
        f"Classified {error.error_type.value} at '{span.text}' ({span.role.value}) "
        f"-> {[c.value for c in enabled]}"
    )
    return Classification(error_type=error.error_type, span=span, categories=tuple(enabled))


# ============================================================================
# Type Resolution
# ============================================================================

def scope_of(node: exp.Expression) -> Tuple[Tuple[str, str], ...]:
    """(table name, reference name) of every table in scope of `node`."""
    return tuple((table.name, reference_name(table)) for table in scope_tables(node))


def resolve_column_table(
    column: exp.Column,
    scope: Tuple[Tuple[str, str], ...],
    catalog: CatalogSnapshot,
) -> Optional[str]:
    """Catalog table a column reference resolves to, if any."""
    if column.table:
        for name, ref in scope:
            if ref.lower() == column.table.lower():
                return name
        return None
    for name, _ in scope:
        info = catalog.table(name)
        if info is not None and info.has_column(column.name):
            return name
    return None


def expression_type(
    node: Optional[exp.Expression],
    scope: Tuple[Tuple[str, str], ...],
    catalog: CatalogSnapshot,
) -> Optional[str]:
    """Best-effort SQL type of an expression (None when unknown)."""
    if node is None:
        return None
    if isinstance(node, exp.Paren):
        return expression_type(node.this, scope, catalog)
    if isinstance(node, exp.Column):
        table = resolve_column_table(node, scope, catalog)
        return catalog.column_type(table, node.name) if table else None
    if isinstance(node, (exp.Cast, exp.TryCast)):
        return node.to.sql().lower()
    typed = literal_type(node)
    if typed:
        return typed
    if is_function_call(node):
        for signature in catalog.functions_named(function_name(node)):
            if signature.return_type and signature.return_type != ANY_TYPE:
                return signature.return_type
    return None


def describe_operand(
    node: Optional[exp.Expression],
    scope: Tuple[Tuple[str, str], ...],
    catalog: CatalogSnapshot,
) -> Dict[str, Any]:
    """Generator-facing description of a comparison operand or function argument."""
    if isinstance(node, exp.Column):
        return {
            "kind": "column",
            "name": node.name,
            "qualifier": node.table or None,
            "table": resolve_column_table(node, scope, catalog),
            "type": expression_type(node, scope, catalog),
            "sql": node.sql(),
        }
    kind = "literal" if literal_type(node) else "expression"
    return {
        "kind": kind,
        "type": expression_type(node, scope, catalog),
        "sql": node.sql() if node is not None else "",
    }


# ============================================================================
# Span Builders
# ============================================================================

def _column_span(column: exp.Column, catalog: CatalogSnapshot) -> FaultySpan:
    """Span for a column reference, with its role-specific context."""
    scope = scope_of(column)
    position, owner, index = syntactic_role(column)
    qualifier = column.table or None
    scope_names = {name.lower() for name, _ in scope}

    context: Dict[str, Any] = {"column": column.name}

    if position == "operand":
        if isinstance(owner, exp.In):
            others = owner.expressions if index == 0 else [owner.this]
            other = others[0] if others else None
        else:
            other = owner.args.get("expression") if index == 0 else owner.args.get("this")
        context["operator"] = owner.key
        context["expected_type"] = expression_type(other, scope, catalog)
    elif position == "argument":
        name = function_name(owner)
        arity = len(function_arguments(owner))
        context["function"] = name
        context["arg_index"] = index
        for signature in catalog.functions_named(name):
            if signature.arity == arity and index is not None and index < arity:
                arg_type = signature.arg_types[index]
                context["expected_type"] = None if arg_type == ANY_TYPE else arg_type
                break

    if qualifier and not any(ref.lower() == qualifier.lower() for _, ref in scope) and catalog.has_table(qualifier):
        context["join_targets"] = [catalog.table(qualifier).name]
    else:
        context["join_targets"] = [
            table.name for table in catalog.tables_with_column(column.name)
            if table.name.lower() not in scope_names
        ]

    return FaultySpan(
        path=node_path(column),
        role=_ROLE_FOR_POSITION[position],
        text=column.name,
        qualifier=qualifier,
        scope=scope,
        context=context,
    )


def _column_family(span: FaultySpan) -> Tuple[RefinementCategory, RefinementCategory, RefinementCategory]:
    return COLUMN_FAMILIES[_FAMILY_FOR_ROLE[span.role]]


def _unknown_column_categories(span: FaultySpan, catalog: CatalogSnapshot) -> List[RefinementCategory]:
    """Order the column family (and join) for an unresolvable column reference."""
    column_category, table_for_column, table_reference = _column_family(span)
    column = span.text

    if span.qualifier:
        resolved = span.reference_table(span.qualifier)
        if resolved is None:
            # Qualifier names a relation missing from FROM
            if catalog.has_table(span.qualifier):
                return [RefinementCategory.JOIN]
            return [table_reference]

        elsewhere_in_scope = [
            name for name, ref in span.scope
            if ref.lower() != span.qualifier.lower()
            and catalog.table(name) is not None
            and catalog.table(name).has_column(column)
        ]
        if elsewhere_in_scope:
            return [table_reference, column_category, table_for_column]

    qualified_only = [table_reference] if span.qualifier else []
    if span.context.get("join_targets") and not any(
        catalog.table(name) is not None and catalog.table(name).has_column(column)
        for name, _ in span.scope
    ):
        return [RefinementCategory.JOIN, column_category, table_for_column] + qualified_only

    return [column_category, table_for_column] + qualified_only + [RefinementCategory.JOIN]


# ============================================================================
# Locators (one per error type)
# ============================================================================

def _columns_named(query: Query, name: str, qualifier: Optional[str] = None) -> List[exp.Column]:
    columns = [
        column for column in iter_nodes(query.tree, exp.Column)
        if column.name.lower() == name.lower()
    ]
    if qualifier is not None:
        columns = [column for column in columns if (column.table or "").lower() == qualifier.lower()]
    return columns


def _locate_unknown_table(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    name = error.get_detail("table")
    if not name:
        return None

    tables = [
        table for table in iter_nodes(query.tree, exp.Table)
        if table.name.lower() == name.lower() or (table.alias or "").lower() == name.lower()
    ]
    node = pick_occurrence(tables, query.sql, name, error.position)
    if node is None:
        return None

    span = FaultySpan(
        path=node_path(node),
        role=SpanRole.TABLE,
        text=node.name,
        scope=scope_of(node),
        context={"alias": node.alias or None},
    )
    return span, [RefinementCategory.TABLE]


def _locate_unknown_column(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    name = error.get_detail("column")
    if not name:
        return None

    qualifier = error.get_detail("table")
    columns = _columns_named(query, name, qualifier) if qualifier else []
    columns = columns or _columns_named(query, name)
    node = pick_occurrence(columns, query.sql, name, error.position)
    if node is None:
        return None

    span = _column_span(node, catalog)
    return span, _unknown_column_categories(span, catalog)


def _locate_missing_join(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    qualifier = error.get_detail("table")
    if not qualifier:
        return None

    columns = [
        column for column in iter_nodes(query.tree, exp.Column)
        if (column.table or "").lower() == qualifier.lower()
    ]
    node = pick_occurrence(columns, query.sql, qualifier, error.position)
    if node is None:
        return None

    span = _column_span(node, catalog)
    if catalog.has_table(qualifier):
        return span, [RefinementCategory.JOIN]
    return span, [_column_family(span)[2]]


def _locate_ambiguous_column(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    name = error.get_detail("column")
    if not name:
        return None

    columns = [column for column in _columns_named(query, name) if not column.table]
    node = pick_occurrence(columns, query.sql, name, error.position)
    if node is None:
        return None
    return _column_span(node, catalog), [RefinementCategory.COLUMN_AMBIGUITY]


def _locate_unknown_function(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    name = error.get_detail("function")
    if not name:
        return None

    calls = [
        node for node in iter_nodes(query.tree, exp.Func)
        if is_function_call(node) and name.lower() in function_names(node)
    ]
    node = pick_occurrence(calls, query.sql, name, error.position)
    if node is None:
        return None

    scope = scope_of(node)
    arguments = function_arguments(node)
    arg_types = [expression_type(argument, scope, catalog) for argument in arguments]
    reported = error.get_detail("arg_types") or []
    if len(reported) == len(arg_types):
        arg_types = [known or given for known, given in zip(arg_types, reported)]

    text = node.name if isinstance(node, exp.Anonymous) else function_name(node)
    span = FaultySpan(
        path=node_path(node),
        role=SpanRole.FUNCTION,
        text=text,
        scope=scope,
        context={
            "function": text.lower(),
            "arity": len(arguments),
            "arg_types": arg_types,
            "arguments": [describe_operand(argument, scope, catalog) for argument in arguments],
        },
    )
    if catalog.has_function(text):
        return span, [RefinementCategory.ARGUMENT_TYPECAST, RefinementCategory.ARGUMENT_COLUMN]
    return span, [RefinementCategory.FUNCTION_NAME]


def _families_match(actual: Optional[str], reported: Optional[str]) -> bool:
    if actual is None or reported is None:
        return True
    return type_family(actual) == type_family(reported)


def _locate_operator_mismatch(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    reported_left = error.get_detail("left_type")
    reported_right = error.get_detail("right_type")

    typed = []
    for comparison in iter_nodes(query.tree, *COMPARISON_TYPES):
        scope = scope_of(comparison)
        left_type = expression_type(comparison.this, scope, catalog)
        right_type = expression_type(comparison.expression, scope, catalog)
        typed.append((comparison, scope, left_type, right_type))

    matching = [
        entry for entry in typed
        if (reported_left or reported_right)
        and _families_match(entry[2], reported_left)
        and _families_match(entry[3], reported_right)
    ]
    incompatible = [
        entry for entry in typed
        if entry[2] and entry[3] and not is_compatible(entry[2], entry[3])
    ]
    pool = matching or incompatible
    if not pool:
        return None

    chosen = pick_occurrence([entry[0] for entry in pool], query.sql, error.get_detail("operator", ""), error.position)
    comparison, scope, left_type, right_type = next(entry for entry in pool if entry[0] is chosen)

    span = FaultySpan(
        path=node_path(comparison),
        role=SpanRole.COMPARISON,
        text=comparison.sql(dialect=query.dialect),
        scope=scope,
        context={
            "operator": comparison.key,
            "left_type": reported_left or left_type,
            "right_type": reported_right or right_type,
            "left": describe_operand(comparison.this, scope, catalog),
            "right": describe_operand(comparison.expression, scope, catalog),
        },
    )
    if syntactic_role(comparison)[0] == "argument":
        return span, [RefinementCategory.ARGUMENT_TYPECAST]
    return span, [RefinementCategory.OPERAND_TYPECAST, RefinementCategory.OPERAND_COLUMN]


def _compared_literals(query: Query) -> List[Tuple[exp.Column, exp.Literal, exp.Expression]]:
    """(column, string literal, predicate) for `col = 'x'` and `col IN ('x', ...)`."""
    pairs = []
    for predicate in iter_nodes(query.tree, exp.EQ, exp.In):
        if isinstance(predicate, exp.In):
            if isinstance(predicate.this, exp.Column):
                pairs.extend(
                    (predicate.this, item, predicate) for item in predicate.expressions
                    if isinstance(item, exp.Literal) and item.is_string
                )
            continue
        left, right = predicate.this, predicate.expression
        if isinstance(left, exp.Column) and isinstance(right, exp.Literal) and right.is_string:
            pairs.append((left, right, predicate))
        elif isinstance(right, exp.Column) and isinstance(left, exp.Literal) and left.is_string:
            pairs.append((right, left, predicate))
    return pairs


def _locate_invalid_value(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    reported = error.get_detail("value")

    mismatched = []
    for column, literal, predicate in _compared_literals(query):
        scope = scope_of(predicate)
        table = resolve_column_table(column, scope, catalog)
        if table is None:
            continue
        sampled = catalog.sampled_values(table, column.name)
        if not sampled or literal.this in sampled:
            continue
        mismatched.append((column, literal, scope, table))

    if not mismatched:
        return None
    if reported is not None:
        mismatched.sort(key=lambda entry: entry[1].this != reported)

    column, literal, scope, table = mismatched[0]
    span = FaultySpan(
        path=node_path(literal),
        role=SpanRole.LITERAL,
        text=literal.this,
        scope=scope,
        context={
            "table": table,
            "column": column.name,
            "expected_type": catalog.column_type(table, column.name),
        },
    )
    return span, [RefinementCategory.VALUE]


_RESULT_CATEGORIES = [
    RefinementCategory.RESULT_TABLE,
    RefinementCategory.RESULT_OPERAND,
    RefinementCategory.RESULT_JOIN,
]


def _where_operands(
    select: exp.Select,
    scope: Tuple[Tuple[str, str], ...],
    catalog: CatalogSnapshot,
) -> List[Dict[str, Any]]:
    """Resolved column operands of the comparisons in a SELECT's own WHERE clause."""
    where = select.args.get("where")
    if where is None:
        return []

    operands: List[Dict[str, Any]] = []
    seen = set()
    for comparison in where.find_all(*COMPARISON_TYPES, exp.In):
        if comparison.find_ancestor(exp.Select) is not select:
            continue
        for operand in (comparison.this, comparison.args.get("expression")):
            if not isinstance(operand, exp.Column):
                continue
            table = resolve_column_table(operand, scope, catalog)
            key = ((operand.table or "").lower(), operand.name.lower())
            if table is None or key in seen:
                continue
            seen.add(key)
            operands.append({
                "name": operand.name,
                "qualifier": operand.table or None,
                "table": table,
                "type": catalog.column_type(table, operand.name),
            })
    return operands


def _locate_empty_result(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    """
    A literal missing from the sampled values gets value refinement first;
    the query's tables, WHERE operands and one-hop joins are tried as well.
    """
    located = _locate_invalid_value(error, query, catalog)
    if located is not None:
        span, categories = located
        select = enclosing_select(query.node(span.path))
        if select is None:
            return located
    else:
        select = query.tree if isinstance(query.tree, exp.Select) else next(iter_nodes(query.tree, exp.Select), None)
        if select is None:
            return None
        scope = scope_of(select)
        if not scope:
            return None
        span = FaultySpan(
            path=node_path(select),
            role=SpanRole.QUERY,
            text=", ".join(name for name, _ in scope),
            scope=scope,
        )
        categories = []

    context = dict(span.context, comparisons=_where_operands(select, span.scope, catalog))
    return replace(span, context=context), categories + _RESULT_CATEGORIES


def _locate_invalid_argument_format(error: NormalizedError, query: Query, catalog: CatalogSnapshot) -> Located:
    reported = error.get_detail("format")

    def matches(text: str) -> bool:
        return text == reported if reported else text in STRFTIME_TO_DATEPART

    # Some dialects parse date-part names into Var nodes rather than string literals
    nodes = [
        node for node in iter_nodes(query.tree, exp.Literal, exp.Var)
        if (isinstance(node, exp.Var) or node.is_string) and matches(node.name)
    ]
    if not nodes:
        return None

    node = nodes[0]
    owner = node.find_ancestor(exp.Func)
    span = FaultySpan(
        path=node_path(node),
        role=SpanRole.LITERAL,
        text=node.name,
        scope=scope_of(node),
        context={
            "format": node.name,
            "function": function_name(owner) if owner is not None and is_function_call(owner) else None,
        },
    )
    return span, [RefinementCategory.VALUE]


_LOCATORS: Dict[SQLErrorType, Callable[[NormalizedError, Query, CatalogSnapshot], Located]] = {
    SQLErrorType.UNKNOWN_TABLE: _locate_unknown_table,
    SQLErrorType.UNKNOWN_COLUMN: _locate_unknown_column,
    SQLErrorType.MISSING_JOIN: _locate_missing_join,
    SQLErrorType.AMBIGUOUS_COLUMN: _locate_ambiguous_column,
    SQLErrorType.UNKNOWN_FUNCTION: _locate_unknown_function,
    SQLErrorType.OPERATOR_MISMATCH: _locate_operator_mismatch,
    SQLErrorType.INVALID_VALUE: _locate_invalid_value,
    SQLErrorType.EMPTY_RESULT: _locate_empty_result,
    SQLErrorType.INVALID_ARGUMENT_FORMAT: _locate_invalid_argument_format,
}
