"""
Ranker - orders candidates by weighted semantic distance.

rank = weight(category) * distance, distance = 1 - similarity
  - join candidates use distance + 1 (adding a relation is a bigger edit)
  - typecast and ambiguity candidates use a fixed distance of 1

Lower rank explores first. Only the top_k_expansion candidates of each
category survive; ties keep catalog declaration order.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, List, NamedTuple, Optional, Tuple

from loguru import logger

from src.config.settings import RefinementSettings
from src.llm.similarity import SimilarityBackend
from src.refinement.categories import (
    FIXED_DISTANCE_CATEGORIES,
    RefinementCategory,
    category_weight,
)
from src.refinement.models import Candidate, FaultySpan
from src.utils.errors import CollaboratorUnavailable


class Ranking(NamedTuple):
    """Ranked candidates; complete is False when scoring dropped any of them"""
    candidates: Tuple[Candidate, ...]
    complete: bool = True


def rank_candidates(
    candidates: List[Candidate],
    span: FaultySpan,
    similarity: SimilarityBackend,
    config: RefinementSettings,
) -> Ranking:
    """
    Score, rank and truncate candidates (top_k_expansion per category).

    Candidates whose scoring raises CollaboratorUnavailable are dropped and
    the ranking is marked incomplete, so it is never cached.

    Returns:
        Ranking ordered by (rank, declaration order)
    """
    if not candidates:
        return Ranking(())

    if config.ranker_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=config.ranker_workers) as pool:
            scored = list(pool.map(lambda c: _score(c, span, similarity, config), candidates))
    else:
        scored = [_score(candidate, span, similarity, config) for candidate in candidates]

    by_category: Dict[RefinementCategory, List[Candidate]] = {}
    for candidate in scored:
        if candidate is not None:
            by_category.setdefault(candidate.category, []).append(candidate)

    ranked: List[Candidate] = []
    for group in by_category.values():
        group.sort(key=lambda c: (c.rank, c.order))
        ranked.extend(group[:config.top_k_expansion])

    ranked.sort(key=lambda c: (c.rank, c.order))
    return Ranking(tuple(ranked), complete=all(c is not None for c in scored))


def _score(
    candidate: Candidate,
    span: FaultySpan,
    similarity: SimilarityBackend,
    config: RefinementSettings,
) -> Optional[Candidate]:
    weight = category_weight(candidate.category, config)

    if candidate.category in FIXED_DISTANCE_CATEGORIES:
        return replace(candidate, similarity=0.0, rank=weight * 1.0)

    try:
        score = similarity.similarity(candidate.original or span.text, candidate.replacement)
    except CollaboratorUnavailable as e:
        logger.warning(f"Dropped {candidate.category.value} candidate '{candidate.replacement}': {e}")
        return None

    score = max(0.0, min(1.0, score))
    distance = 1.0 - score
    if candidate.category == RefinementCategory.JOIN:
        distance += 1.0
    return replace(candidate, similarity=score, rank=weight * distance)
