"""
Embeddings of identifiers and values for the embedding similarity backend.

Ranking embeds the same short fragments (column names, table names, sampled
values) over and over, so vectors are memoized per (model, fragment) and can
be persisted to a JSON file between runs.

Providers:
- openai: OpenAI embeddings API (SAFEQL_OPENAI_API_KEY)
- local: sentence-transformers model, installed with the local-embeddings extra
"""

import json
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from src.config.settings import PROJECT_ROOT, settings
from src.utils.errors import CollaboratorUnavailable

MAX_BATCH = 100
MAX_ATTEMPTS = 3


class EmbeddingService:
    """
    Thread-safe, memoizing embedding client.

    Example:
        >>> service = EmbeddingService(provider="local", model="all-MiniLM-L6-v2")
        >>> left, right = service.embed_texts(["dept", "department"])
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        cache_file: Optional[Path] = None,
    ):
        """
        Args:
            provider: "openai" or "local" (default: settings.embedding_provider)
            model: Model name (default: settings.embedding_model)
            cache_file: JSON file persisting vectors; relative paths resolve
                against the project root. None keeps vectors in memory only.

        Raises:
            CollaboratorUnavailable: If the provider cannot be initialized
        """
        self.provider = (provider or settings.embedding_provider).lower()
        self.model = model or settings.embedding_model
        self._lock = threading.Lock()
        self._vectors: Dict[str, List[float]] = {}
        self.stats = {"requests": 0, "memo_hits": 0}

        if self.provider == "local":
            self._client = None
            self._local_model = self._load_local_model()
        elif self.provider == "openai":
            if not settings.openai_api_key:
                raise CollaboratorUnavailable("embedding", "SAFEQL_OPENAI_API_KEY is required for openai embeddings")
            from openai import OpenAI
            self._client = OpenAI(api_key=settings.openai_api_key)
            self._local_model = None
        else:
            raise CollaboratorUnavailable("embedding", f"unknown embedding provider '{self.provider}'")

        self.cache_file: Optional[Path] = None
        if cache_file is not None:
            path = Path(cache_file)
            self.cache_file = path if path.is_absolute() else PROJECT_ROOT / path
            self._read_cache_file()

        logger.info(f"Embedding service ready ({self.provider}/{self.model}, {len(self._vectors)} memoized)")

    def _load_local_model(self):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise CollaboratorUnavailable(
                "embedding", "install the local-embeddings extra to use SAFEQL_EMBEDDING_PROVIDER=local"
            ) from e
        logger.info(f"Loading sentence-transformers model {self.model}")
        return SentenceTransformer(self.model)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_cache_file(self) -> None:
        if not self.cache_file.exists():
            return
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable embedding cache {self.cache_file}: {e}")
            return
        if stored.get("model") != self.model:
            logger.info(f"Embedding cache {self.cache_file} is for {stored.get('model')}, starting empty")
            return
        self._vectors = {text: list(vector) for text, vector in stored.get("vectors", {}).items()}

    def _write_cache_file(self) -> None:
        if self.cache_file is None:
            return
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump({"model": self.model, "vectors": self._vectors}, f)
        except OSError as e:
            logger.error(f"Could not persist embedding cache: {e}")

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed fragments, in input order.

        Raises:
            CollaboratorUnavailable: If the provider fails
        """
        with self._lock:
            missing = [text for text in dict.fromkeys(texts) if text not in self._vectors]
            self.stats["memo_hits"] += len(texts) - len(missing)

        for start in range(0, len(missing), MAX_BATCH):
            batch = missing[start:start + MAX_BATCH]
            vectors = self._request(batch)
            with self._lock:
                self.stats["requests"] += 1
                self._vectors.update(zip(batch, vectors))

        with self._lock:
            if missing:
                self._write_cache_file()
            return [self._vectors[text] for text in texts]

    def _request(self, batch: List[str]) -> List[List[float]]:
        # Empty strings are rejected by the API
        inputs = [text or " " for text in batch]

        if self._local_model is not None:
            try:
                encoded = self._local_model.encode(inputs, convert_to_numpy=True, show_progress_bar=False)
            except Exception as e:
                raise CollaboratorUnavailable("embedding", str(e)) from e
            return [[float(x) for x in vector] for vector in encoded]

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = self._client.embeddings.create(model=self.model, input=inputs)
                return [item.embedding for item in response.data]
            except Exception as e:
                if "rate_limit" not in str(e).lower() or attempt == MAX_ATTEMPTS:
                    logger.error(f"Embedding request failed: {e}")
                    raise CollaboratorUnavailable("embedding", str(e)) from e
                delay = 2 ** (attempt - 1)
                logger.warning(f"Embedding rate limit, retry {attempt}/{MAX_ATTEMPTS - 1} in {delay}s")
                time.sleep(delay)
        raise CollaboratorUnavailable("embedding", "retries exhausted")
