"""
Similarity layer - embeddings and similarity backends
"""

from src.llm.embeddings import EmbeddingService
from src.llm.similarity import (
    EmbeddingSimilarity,
    LexicalSimilarity,
    SimilarityBackend,
    get_similarity_backend,
    prepare_search_term,
)

__all__ = [
    "EmbeddingService",
    "EmbeddingSimilarity",
    "LexicalSimilarity",
    "SimilarityBackend",
    "get_similarity_backend",
    "prepare_search_term",
]
