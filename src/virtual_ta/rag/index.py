"""Embedding index: brute-force cosine search over the active generation.

The corpus is small enough that scoring every stored vector per query is the
design point. Reindex builds a complete new generation and swaps it in with a
single transaction (see ``Store.replace_embeddings``), so searches keep
running against the old generation until the swap commits.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from virtual_ta.db.base import Store
from virtual_ta.db.models import ContentVariant, EmbeddingRecord
from virtual_ta.db.vectors import check_dimensions, cosine_similarity
from virtual_ta.errors import ReindexInProgressError
from virtual_ta.rag.providers import EmbeddingProvider

logger = logging.getLogger(__name__)

# At most one reindex in flight per process.
_REINDEX_LOCK = threading.Lock()


class LatencyTracker:
    """Running mean of search latencies. Advisory telemetry only."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._total = 0.0

    def observe(self, seconds: float) -> None:
        with self._lock:
            self._count += 1
            self._total += seconds

    @property
    def average(self) -> float:
        with self._lock:
            return self._total / self._count if self._count else 0.0


@dataclass
class ScoredEmbedding:
    record: EmbeddingRecord
    similarity: float


@dataclass
class IndexStats:
    total: int = 0
    by_variant: dict[ContentVariant, int] = field(default_factory=dict)
    avg_query_time: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_embeddings": self.total,
            "course_embeddings": self.by_variant.get(ContentVariant.COURSE, 0),
            "forum_embeddings": self.by_variant.get(ContentVariant.FORUM, 0),
            "avg_query_time": self.avg_query_time,
        }


@dataclass
class ReindexResult:
    embedded: int = 0
    failed: int = 0


class EmbeddingIndex:
    """Vector index over a :class:`Store`.

    Args:
        store: Backing store holding the embedding records.
        dimensions: Required vector length. When None, only query/stored
            mismatches are rejected.
        latency: Shared tracker for search latencies (a private one if None).
    """

    def __init__(
        self,
        store: Store,
        dimensions: int | None = None,
        latency: LatencyTracker | None = None,
    ) -> None:
        self._store = store
        self.dimensions = dimensions
        self.latency = latency or LatencyTracker()

    def insert(
        self,
        content_id: int,
        variant: ContentVariant,
        vector: list[float],
        chunk_index: int = 0,
    ) -> EmbeddingRecord:
        """Append a record to the active generation. Duplicates are allowed."""
        if self.dimensions is not None:
            check_dimensions(vector, self.dimensions)
        return self._store.add_embedding(
            EmbeddingRecord(
                content_id=content_id,
                variant=variant,
                vector=list(vector),
                chunk_index=chunk_index,
            )
        )

    def search(self, query_vector: list[float], k: int) -> list[ScoredEmbedding]:
        """Return the *k* most similar records, best first.

        Ties keep insertion order. An empty index returns ``[]``.

        Raises:
            ValueError: If the query length differs from the stored vectors.
        """
        started = time.perf_counter()
        if self.dimensions is not None:
            check_dimensions(query_vector, self.dimensions)
        records = self._store.list_embeddings()
        scored = [ScoredEmbedding(r, cosine_similarity(query_vector, r.vector)) for r in records]
        # list.sort is stable, so equal similarities stay in insertion order.
        scored.sort(key=lambda s: s.similarity, reverse=True)
        self.latency.observe(time.perf_counter() - started)
        return scored[: max(k, 0)]

    def stats(self) -> IndexStats:
        counts = self._store.count_embeddings()
        return IndexStats(
            total=sum(counts.values()),
            by_variant=counts,
            avg_query_time=self.latency.average,
        )

    def reindex(self, embedder: EmbeddingProvider) -> ReindexResult:
        """Rebuild embeddings for all current content and swap them in atomically.

        Items whose embedding call fails are logged and keep their previous
        vectors.

        Raises:
            ReindexInProgressError: If another reindex is running.
        """
        if not _REINDEX_LOCK.acquire(blocking=False):
            raise ReindexInProgressError("A reindex is already in progress")
        try:
            result = ReindexResult()
            records: list[EmbeddingRecord] = []
            for item in self._store.list_content():
                try:
                    vector = embedder.embed(item.body)
                    if self.dimensions is not None:
                        check_dimensions(vector, self.dimensions)
                except Exception as exc:
                    logger.error(
                        "Embedding failed for %s item %s (%s): %s",
                        item.variant.value,
                        item.id,
                        item.url,
                        exc,
                    )
                    result.failed += 1
                    continue
                records.append(
                    EmbeddingRecord(content_id=item.id, variant=item.variant, vector=vector)
                )
            result.embedded = self._store.replace_embeddings(records)
            logger.info(
                "Reindex complete: %d embedded, %d failed", result.embedded, result.failed
            )
            return result
        finally:
            _REINDEX_LOCK.release()
