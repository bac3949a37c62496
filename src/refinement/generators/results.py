"""
Empty-result generators: when a query runs but returns nothing, try another
FROM table, another compared WHERE column, or a join one foreign key away.
"""

from typing import Any, Dict, List

from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import AddJoin, ReplaceScopeTable, ReplaceWhereColumn
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.catalog import CatalogSnapshot


def generate_result_tables(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Every in-scope table swapped for each catalog table not already in scope."""
    in_scope = {name.lower() for name, _ in span.scope}
    candidates = []
    for table_name, reference in span.scope:
        for table in catalog.tables:
            if table.name.lower() in in_scope:
                continue
            candidates.append(Candidate(
                category=category,
                edit=ReplaceScopeTable(reference, table.name),
                replacement=table.name,
                original=table_name,
                provenance=table.name,
                order=(catalog.table_order(table_name), catalog.table_order(table.name)),
            ))
    return candidates


def generate_result_operands(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Each column compared in WHERE swapped for a sibling column of its table."""
    candidates = []
    comparisons: List[Dict[str, Any]] = span.context.get("comparisons", [])
    for index, operand in enumerate(comparisons):
        table = catalog.table(operand["table"])
        if table is None:
            continue
        for column in table.columns:
            if column.name.lower() == operand["name"].lower():
                continue
            candidates.append(Candidate(
                category=category,
                edit=ReplaceWhereColumn(operand["name"], column.name, operand.get("qualifier")),
                replacement=column.name,
                original=operand["name"],
                replacement_type=column.data_type,
                expected_type=operand.get("type"),
                provenance=f"{table.name}.{column.name}",
                order=(index, column.ordinal),
            ))
    return candidates


def generate_result_joins(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """JOIN each table that a foreign key links to an in-scope table."""
    in_scope = {name.lower() for name, _ in span.scope}
    candidates = []
    for table_name, reference in span.scope:
        for index, fk in enumerate(catalog.foreign_keys):
            if fk.from_table.lower() == table_name.lower() and fk.to_table.lower() not in in_scope:
                target = fk.to_table
                condition = f"{reference}.{fk.from_column} = {target}.{fk.to_column}"
            elif fk.to_table.lower() == table_name.lower() and fk.from_table.lower() not in in_scope:
                target = fk.from_table
                condition = f"{target}.{fk.from_column} = {reference}.{fk.to_column}"
            else:
                continue
            candidates.append(Candidate(
                category=category,
                edit=AddJoin(target, condition),
                replacement=target,
                original=table_name,
                provenance=f"{fk.from_table}.{fk.from_column} -> {fk.to_table}.{fk.to_column}",
                order=(catalog.table_order(target), index),
            ))
    return candidates
