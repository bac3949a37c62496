"""
Column generators: column replacement (plain, operand and argument variants),
column-table-reference and column ambiguity.
"""

from typing import Any, Dict, List

from src.config.constants import ANY_TYPE
from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import QualifyColumn, ReplaceArgumentColumn, ReplaceColumn, ReplaceOperandColumn
from src.refinement.models import Candidate, FaultySpan, SpanRole
from src.sql.catalog.catalog import CatalogSnapshot
from src.sql.catalog.types import is_compatible


def generate_columns(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """
    Columns of the in-scope tables (the qualifier's table when qualified),
    excluding the failing name.

    A comparison span proposes replacing a column operand; a function span
    proposes replacing a column argument whose type the signature rejects.
    """
    if span.role == SpanRole.COMPARISON:
        return _operand_columns(category, span, catalog)
    if span.role == SpanRole.FUNCTION:
        return _argument_columns(category, span, catalog)

    if span.qualifier:
        resolved = span.reference_table(span.qualifier)
        if resolved is None:
            return []
        references = [(resolved, span.qualifier)]
    else:
        references = list(span.scope)

    # Unqualified replacements must stay unambiguous when several tables are in scope
    qualify = not span.qualifier and len(span.scope) > 1

    candidates = []
    for table_name, reference in references:
        table = catalog.table(table_name)
        if table is None:
            continue
        table_order = catalog.table_order(table.name)
        for column in table.columns:
            if column.name.lower() == span.text.lower():
                continue
            candidates.append(Candidate(
                category=category,
                edit=ReplaceColumn(column.name, reference if qualify else None),
                replacement=column.name,
                replacement_type=column.data_type,
                expected_type=span.expected_type,
                provenance=f"{table.name}.{column.name}",
                order=(table_order, column.ordinal),
            ))
    return candidates


def _operand_columns(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
) -> List[Candidate]:
    candidates = []
    for side, key, other_key in ((0, "left", "right_type"), (1, "right", "left_type")):
        operand: Dict[str, Any] = span.context.get(key) or {}
        if operand.get("kind") != "column" or not operand.get("table"):
            continue
        table = catalog.table(operand["table"])
        if table is None:
            continue
        for column in table.columns:
            if column.name.lower() == operand["name"].lower():
                continue
            candidates.append(Candidate(
                category=category,
                edit=ReplaceOperandColumn(side, column.name),
                replacement=column.name,
                original=operand["name"],
                replacement_type=column.data_type,
                expected_type=span.context.get(other_key),
                provenance=f"{table.name}.{column.name}",
                order=(catalog.table_order(table.name), side, column.ordinal),
            ))
    return candidates


def _argument_columns(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
) -> List[Candidate]:
    arguments = span.context.get("arguments", [])
    candidates = []
    for signature in catalog.functions_named(span.context.get("function", span.text)):
        if signature.arity != len(arguments):
            continue
        for index, (argument, wanted) in enumerate(zip(arguments, signature.arg_types)):
            if argument.get("kind") != "column" or not argument.get("table") or wanted == ANY_TYPE:
                continue
            if is_compatible(argument.get("type"), wanted):
                continue
            table = catalog.table(argument["table"])
            if table is None:
                continue
            for column in table.columns:
                if column.name.lower() == argument["name"].lower():
                    continue
                candidates.append(Candidate(
                    category=category,
                    edit=ReplaceArgumentColumn(index, column.name),
                    replacement=column.name,
                    original=argument["name"],
                    replacement_type=column.data_type,
                    expected_type=wanted,
                    provenance=f"{table.name}.{column.name}",
                    order=(catalog.table_order(table.name), index, column.ordinal),
                ))
    return candidates


def generate_column_table_references(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Re-qualify the reference with each in-scope table/alias exposing the column."""
    candidates = []
    for table_name, reference in span.scope:
        if span.qualifier and reference.lower() == span.qualifier.lower():
            continue
        table = catalog.table(table_name)
        if table is None or not table.has_column(span.text):
            continue
        column = table.column(span.text)
        candidates.append(Candidate(
            category=category,
            edit=QualifyColumn(reference),
            replacement=reference,
            original=span.qualifier or "",
            replacement_type=column.data_type,
            expected_type=span.expected_type,
            provenance=f"{table.name}.{column.name}",
            order=(catalog.table_order(table.name), column.ordinal),
        ))
    return candidates


def generate_ambiguity_resolutions(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """One qualified reference per in-scope table exposing the column."""
    candidates = []
    for table_name, reference in span.scope:
        table = catalog.table(table_name)
        if table is None or not table.has_column(span.text):
            continue
        candidates.append(Candidate(
            category=category,
            edit=QualifyColumn(reference),
            replacement=f"{reference}.{span.text}",
            provenance=f"{table.name}.{span.text}",
            order=(catalog.table_order(table.name),),
        ))
    return candidates
