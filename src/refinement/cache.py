"""
Search cache - memoizes ranked candidate lists across sessions.

Key: (span fingerprint, category, catalog version, ranking signature).
Values are immutable tuples, shared process-wide. Inserts are
insert-if-absent: the first writer wins and later writers receive the
stored value. A different catalog version clears the whole cache, and a
ranking that dropped a candidate (collaborator failure) is never stored.
"""

import threading
from typing import Any, Callable, Dict, Tuple

from loguru import logger

from src.refinement.categories import RefinementCategory
from src.refinement.models import Candidate

CacheKey = Tuple[str, str, str, Tuple[Any, ...]]
Ranked = Tuple[Candidate, ...]


class SearchCache:
    """Thread-safe cache of ranked candidates"""

    def __init__(self):
        self._entries: Dict[CacheKey, Ranked] = {}
        self._lock = threading.Lock()
        self._catalog_version: str = ""
        self.stats = {
            "hits": 0,
            "misses": 0,
            "invalidations": 0,
            "skipped": 0,
        }

    @staticmethod
    def make_key(
        fingerprint: str,
        category: RefinementCategory,
        catalog_version: str,
        ranking_signature: Tuple[Any, ...],
    ) -> CacheKey:
        return (fingerprint, category.value, catalog_version, ranking_signature)

    def ensure_version(self, catalog_version: str) -> None:
        """Drop every entry if the catalog version changed."""
        with self._lock:
            if self._catalog_version == catalog_version:
                return
            if self._entries:
                logger.info(
                    f"Catalog version changed ({self._catalog_version} -> {catalog_version}), "
                    f"invalidating {len(self._entries)} cached entries"
                )
                self.stats["invalidations"] += 1
            self._entries.clear()
            self._catalog_version = catalog_version

    def get_or_compute(self, key: CacheKey, compute: Callable[[], Tuple[Ranked, bool]]) -> Tuple[Ranked, bool]:
        """
        Return the cached value for key, computing and inserting it on a miss.

        compute() returns (value, cacheable) and runs outside the lock, so
        concurrent misses may compute the same value; only the first insert is
        kept. A value computed with cacheable=False is returned but not stored.

        Returns:
            (ranked candidates, hit)
        """
        self.ensure_version(key[2])

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self.stats["hits"] += 1
                return cached, True
            self.stats["misses"] += 1

        value, cacheable = compute()
        value = tuple(value)

        with self._lock:
            if not cacheable:
                self.stats["skipped"] += 1
                return value, False
            if key[2] != self._catalog_version:
                # Catalog changed while computing; do not store stale results
                return value, False
            stored = self._entries.setdefault(key, value)
        return stored, False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._catalog_version = ""
            for name in self.stats:
                self.stats[name] = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self.stats,
                "size": len(self._entries),
                "catalog_version": self._catalog_version,
            }


# Process-wide cache
search_cache = SearchCache()
