"""
Value generator - replaces a literal with a sampled value of the compared
column, or translates a strftime-style format into a date-part field.
"""

from typing import List

from src.config.constants import STRFTIME_TO_DATEPART
from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import ReplaceLiteral
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.catalog import CatalogSnapshot


def generate_values(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    fmt = span.context.get("format")
    if fmt is not None:
        field_name = STRFTIME_TO_DATEPART.get(fmt)
        if field_name is None:
            return []
        return [Candidate(
            category=category,
            edit=ReplaceLiteral(field_name),
            replacement=field_name,
            provenance=f"format {fmt}",
            order=(0,),
        )]

    table, column = span.context.get("table"), span.context.get("column")
    if not table or not column:
        return []

    candidates = []
    for index, value in enumerate(catalog.sampled_values(table, column, limit=config.value_refinement_samples)):
        if value == span.text:
            continue
        candidates.append(Candidate(
            category=category,
            edit=ReplaceLiteral(value),
            replacement=value,
            provenance=f"{table}.{column}",
            order=(index,),
        ))
    return candidates
