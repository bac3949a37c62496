"""
Pruner - removes candidates that cannot fix the span.
"""

from typing import List

from loguru import logger

from src.config.settings import RefinementSettings
from src.refinement.categories import RefinementCategory
from src.refinement.models import Candidate, FaultySpan
from src.sql.catalog.types import is_compatible


def prune(candidates: List[Candidate], span: FaultySpan, config: RefinementSettings) -> List[Candidate]:
    """
    Drop no-op candidates, and type-incompatible ones when
    enable_type_based_refinement is on. Pure filter: order is preserved.

    Example:
        An int[] column proposed for `salary > 1000` is removed (array vs numeric).
    """
    kept = []
    for candidate in candidates:
        original = candidate.original or span.text
        # Join candidates name the relation they add
        if candidate.category != RefinementCategory.JOIN and candidate.replacement.lower() == original.lower():
            continue
        if config.enable_type_based_refinement and not is_compatible(
            candidate.replacement_type, candidate.expected_type
        ):
            logger.debug(
                f"Pruned {candidate.category.value} '{candidate.replacement}' "
                f"({candidate.replacement_type} vs expected {candidate.expected_type})"
            )
            continue
        kept.append(candidate)
    return kept
