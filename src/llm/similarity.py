"""
Similarity backends for candidate ranking.

Both backends score two text fragments in [0, 1]. The lexical backend is
deterministic and dependency-free; the embedding backend compares vectors
from EmbeddingService with cosine similarity.
"""

import math
import re
from difflib import SequenceMatcher
from typing import List, Optional, Protocol, Tuple

from loguru import logger

from src.config.settings import RefinementSettings, settings
from src.llm.embeddings import EmbeddingService

_SEPARATORS = re.compile(r"[_\s]+")


class SimilarityBackend(Protocol):
    """Scores how close a candidate's text is to the faulty fragment"""

    name: str

    @property
    def identity(self) -> Tuple[str, ...]:
        """Distinguishes backends whose scores differ (part of search cache keys)."""
        ...

    def similarity(self, original: str, candidate: str) -> float:
        ...


def prepare_search_term(text: str) -> str:
    """
    Normalize an identifier or value for comparison.

    Splits snake_case into words and drops quoting:
        >>> prepare_search_term('"Department_ID"')
        'department id'
    """
    cleaned = text.strip().strip("'\"`").lower()
    return _SEPARATORS.sub(" ", cleaned).strip()


def _abbreviation_score(a: str, b: str) -> float:
    """Score for one term being an in-order abbreviation of the other (dept/department)."""
    short, long = sorted((a, b), key=len)
    if len(short) < 2 or short[0] != long[0]:
        return 0.0
    remaining = iter(long)
    if all(ch in remaining for ch in short):
        return 0.5 + 0.5 * len(short) / len(long)
    return 0.0


class LexicalSimilarity:
    """SequenceMatcher ratio with an abbreviation bonus"""

    name = "lexical"

    @property
    def identity(self) -> Tuple[str, ...]:
        return (type(self).__qualname__,)

    def similarity(self, original: str, candidate: str) -> float:
        a, b = prepare_search_term(original), prepare_search_term(candidate)
        if not a or not b:
            return 0.0
        if a == b:
            return 1.0
        ratio = SequenceMatcher(None, a, b).ratio()
        return max(ratio, _abbreviation_score(a, b))


class EmbeddingSimilarity:
    """Cosine similarity between embeddings of the two fragments"""

    name = "embedding"

    def __init__(self, service: EmbeddingService):
        self.service = service

    @property
    def identity(self) -> Tuple[str, ...]:
        return (
            type(self).__qualname__,
            type(self.service).__qualname__,
            getattr(self.service, "provider", ""),
            getattr(self.service, "model", ""),
        )

    def similarity(self, original: str, candidate: str) -> float:
        left, right = self.service.embed_texts(
            [prepare_search_term(original) or original, prepare_search_term(candidate) or candidate]
        )
        return max(0.0, min(1.0, cosine(left, right)))


def cosine(left: List[float], right: List[float]) -> float:
    """Cosine similarity of two vectors (0.0 for zero vectors)."""
    dot = math.fsum(x * y for x, y in zip(left, right))
    norm = math.sqrt(math.fsum(x * x for x in left)) * math.sqrt(math.fsum(y * y for y in right))
    if norm == 0:
        return 0.0
    return dot / norm


def get_similarity_backend(config: Optional[RefinementSettings] = None) -> SimilarityBackend:
    """
    Build the similarity backend selected by settings.similarity_backend.

    Raises:
        CollaboratorUnavailable: If the embedding backend cannot be initialized
    """
    config = config or settings
    if config.similarity_backend == "embedding":
        service = EmbeddingService(
            provider=config.embedding_provider,
            model=config.embedding_model,
            cache_file=config.embedding_cache_file or None,
        )
        logger.info(f"Using embedding similarity ({config.embedding_provider}/{config.embedding_model})")
        return EmbeddingSimilarity(service)
    return LexicalSimilarity()
