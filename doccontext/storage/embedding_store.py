"""
Content-addressed embedding record cache.

Records are keyed by the SHA-256 of a document's text. A bounded LRU sits in
front of the vector store so repeated uploads of the same content resolve
without touching the store.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, Optional

from doccontext.monitoring import metrics
from doccontext.storage.base import VectorStore
from doccontext.storage.models import EmbeddingRecord


class EmbeddingRecordCache:
    """LRU cache of embedding records in front of a vector store."""

    def __init__(self, store: VectorStore, max_size: int = 512):
        """Initialize the cache.

        Args:
            store: Backing store holding the authoritative records
            max_size: Maximum number of records kept in memory
        """
        self._store = store
        self._cache: OrderedDict[str, EmbeddingRecord] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _get_cached(self, content_hash: str) -> Optional[EmbeddingRecord]:
        with self._lock:
            if content_hash in self._cache:
                self._cache.move_to_end(content_hash)
                self._hits += 1
                return self._cache[content_hash]
            self._misses += 1
            return None

    def _remember(self, record: EmbeddingRecord) -> None:
        with self._lock:
            if record.content_hash in self._cache:
                self._cache.move_to_end(record.content_hash)
            elif len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)
            self._cache[record.content_hash] = record

    async def get_by_hash(self, content_hash: str) -> Optional[EmbeddingRecord]:
        """Return the record for ``content_hash`` from memory or the store."""
        record = self._get_cached(content_hash)
        if record is not None:
            metrics.record("embedding.cache_hits")
            return record

        record = await self._store.get_record_by_hash(content_hash)
        if record is None:
            metrics.record("embedding.cache_misses")
            return None
        metrics.record("embedding.cache_hits")
        self._remember(record)
        return record

    async def put(self, record: EmbeddingRecord) -> None:
        """Persist a record and make it the most recently used entry."""
        await self._store.save_record(record)
        self._remember(record)

    def invalidate(self, content_hash: str) -> None:
        with self._lock:
            self._cache.pop(content_hash, None)

    def clear(self) -> None:
        """Clear all cached records (the store is untouched)."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    @property
    def stats(self) -> Dict[str, float]:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._cache),
                "max_size": self._max_size,
                "hit_rate_pct": round(hit_rate, 2),
            }

    def __len__(self) -> int:
        return len(self._cache)
