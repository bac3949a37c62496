"""
Table-level generators: table replacement, table-for-column and join addition.
"""

from typing import List

from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import AddJoin, ReplaceScopeTable, ReplaceTable
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.catalog import CatalogSnapshot


def generate_tables(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Catalog relations not already in scope, excluding the failing name."""
    in_scope = {name.lower() for name, _ in span.scope}
    candidates = []
    for index, table in enumerate(catalog.tables):
        if table.name.lower() == span.text.lower() or table.name.lower() in in_scope:
            continue
        candidates.append(Candidate(
            category=category,
            edit=ReplaceTable(table.name),
            replacement=table.name,
            provenance=table.name,
            order=(index,),
        ))
    return candidates


def generate_tables_for_column(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """
    Replace the column's in-scope table with a catalog table that has the column.

    For a qualified reference only the qualifier's table is replaced; an
    unqualified reference may resolve to any in-scope table.
    """
    column = span.text
    if span.qualifier:
        resolved = span.reference_table(span.qualifier)
        references = [(resolved, span.qualifier)] if resolved else []
    else:
        references = list(span.scope)

    in_scope = {name.lower() for name, _ in span.scope}
    candidates = []
    for table_name, reference in references:
        for table in catalog.tables_with_column(column):
            if table.name.lower() in in_scope:
                continue
            info = table.column(column)
            candidates.append(Candidate(
                category=category,
                edit=ReplaceScopeTable(reference, table.name),
                replacement=table.name,
                original=table_name,
                replacement_type=info.data_type,
                expected_type=span.expected_type,
                provenance=f"{table.name}.{info.name}",
                order=(catalog.table_order(table.name), info.ordinal),
            ))
    return candidates


def generate_joins(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """
    JOIN the relation that must become reachable, along a foreign key to a
    table already in FROM. No foreign-key edge, no candidate.
    """
    candidates = []
    for target in span.context.get("join_targets", []):
        for table_name, reference in span.scope:
            if table_name.lower() == target.lower():
                continue
            for index, fk in enumerate(catalog.foreign_keys_between(table_name, target)):
                if fk.from_table.lower() == table_name.lower():
                    condition = f"{reference}.{fk.from_column} = {target}.{fk.to_column}"
                else:
                    condition = f"{target}.{fk.from_column} = {reference}.{fk.to_column}"
                candidates.append(Candidate(
                    category=category,
                    edit=AddJoin(target, condition),
                    replacement=target,
                    original=span.qualifier or span.text,
                    provenance=f"{fk.from_table}.{fk.from_column} -> {fk.to_table}.{fk.to_column}",
                    order=(catalog.table_order(target), index),
                ))
    return candidates
