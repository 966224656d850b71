"""Content writer: store items idempotently, embed the newly created ones.

For each item:
1. ``Store.add_content()`` (identity dedup; existing items are returned unchanged).
2. If newly created, embed ``item.body`` with the configured provider.
3. Append the vector to the active index generation.

Embedding failures are logged and counted; the item stays stored and is
picked up by the next reindex.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from virtual_ta.db.base import Store
from virtual_ta.db.models import ContentItem
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.providers import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    created: int = 0
    skipped: int = 0
    embedded: int = 0
    failed: int = 0


class ContentWriter:
    """Write content items to a store and the embedding index.

    Args:
        store: Open store.
        index: Embedding index over *store*.
        embedder: Provider used for new items.
    """

    def __init__(self, store: Store, index: EmbeddingIndex, embedder: EmbeddingProvider) -> None:
        self._store = store
        self._index = index
        self._embedder = embedder

    def write(self, items: list[ContentItem]) -> WriteResult:
        result = WriteResult()
        for item in items:
            stored, created = self._store.add_content(item)
            if not created:
                result.skipped += 1
                logger.debug("Skipping existing %s item %s", stored.variant.value, stored.identity)
                continue
            result.created += 1
            try:
                vector = self._embedder.embed(stored.body)
                self._index.insert(stored.id, stored.variant, vector)
            except Exception as exc:
                logger.error("Embedding failed for %s (%s): %s", stored.url, stored.variant.value, exc)
                result.failed += 1
                continue
            result.embedded += 1
        return result
