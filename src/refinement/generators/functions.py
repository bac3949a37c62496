"""
Function-name generator.
"""

from typing import List

from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.edits import RenameFunction
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.catalog import CatalogSnapshot


def generate_function_names(
    category: RefinementCategory,
    span: FaultySpan,
    catalog: CatalogSnapshot,
    config: RefinementSettings,
) -> List[Candidate]:
    """Catalog functions with a signature of the call's arity."""
    current = span.text.lower()
    candidates = []
    for index, name in enumerate(catalog.function_names_with_arity(span.context.get("arity", 0))):
        if name == current:
            continue
        candidates.append(Candidate(
            category=category,
            edit=RenameFunction(name),
            replacement=name,
            provenance=name,
            order=(index,),
        ))
    return candidates
