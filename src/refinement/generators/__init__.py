"""
Candidate generators - one strategy per refinement category.

Generators read only the faulty span and the catalog (never the live tree),
so their output is a function of the span fingerprint and can be cached.
Dispatch goes through the GENERATORS table.
"""

from typing import Callable, Dict, List

from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.generators.columns import (
    generate_ambiguity_resolutions,
    generate_column_table_references,
    generate_columns,
)
from src.refinement.generators.functions import generate_function_names
from src.refinement.generators.results import (
    generate_result_joins,
    generate_result_operands,
    generate_result_tables,
)
from src.refinement.generators.tables import generate_joins, generate_tables, generate_tables_for_column
from src.refinement.generators.typecasts import generate_typecasts
from src.refinement.generators.values import generate_values
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.catalog import CatalogSnapshot

Generator = Callable[[RefinementCategory, FaultySpan, CatalogSnapshot, RefinementSettings], List[Candidate]]

GENERATORS: Dict[RefinementCategory, Generator] = {
    RefinementCategory.TABLE: generate_tables,
    RefinementCategory.COLUMN: generate_columns,
    RefinementCategory.TABLE_FOR_COLUMN: generate_tables_for_column,
    RefinementCategory.COLUMN_TABLE_REFERENCE: generate_column_table_references,
    RefinementCategory.JOIN: generate_joins,
    RefinementCategory.OPERAND_COLUMN: generate_columns,
    RefinementCategory.OPERAND_TABLE_FOR_COLUMN: generate_tables_for_column,
    RefinementCategory.OPERAND_COLUMN_TABLE_REFERENCE: generate_column_table_references,
    RefinementCategory.OPERAND_TYPECAST: generate_typecasts,
    RefinementCategory.ARGUMENT_COLUMN: generate_columns,
    RefinementCategory.ARGUMENT_TABLE_FOR_COLUMN: generate_tables_for_column,
    RefinementCategory.ARGUMENT_COLUMN_TABLE_REFERENCE: generate_column_table_references,
    RefinementCategory.ARGUMENT_TYPECAST: generate_typecasts,
    RefinementCategory.FUNCTION_NAME: generate_function_names,
    RefinementCategory.COLUMN_AMBIGUITY: generate_ambiguity_resolutions,
    RefinementCategory.VALUE: generate_values,
    RefinementCategory.RESULT_TABLE: generate_result_tables,
    RefinementCategory.RESULT_OPERAND: generate_result_operands,
    RefinementCategory.RESULT_JOIN: generate_result_joins,
}


def generate(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Unranked candidates of one category for a span, without duplicate edits."""
    candidates = GENERATORS[category](category, span, catalog, config)
    unique: List[Candidate] = []
    seen = set()
    for candidate in candidates:
        if candidate.edit in seen:
            continue
        seen.add(candidate.edit)
        unique.append(candidate)
    return unique


__all__ = ["GENERATORS", "Generator", "generate"]
