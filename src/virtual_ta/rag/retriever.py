"""Evidence retriever: vector search + keyword backstop, merged in priority order.

Merge order:
  1. vector hits (best first), resolved through the content store
  2. keyword matches from the course corpus (first N)
  3. keyword matches from the forum corpus (first M)

Duplicates are dropped by url (first occurrence wins) and the merged list is
truncated to ``max_evidence``. Downstream prompt building and link extraction
both consume the list in this order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from virtual_ta.db.base import Store
from virtual_ta.db.models import ContentItem, ContentVariant
from virtual_ta.errors import DataIntegrityError, ProviderError
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.providers import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass
class RetrieverConfig:
    """Limits for each retrieval channel.

    Attributes:
        vector_top_k: Nearest neighbours taken from the embedding index.
        course_keyword_limit: Keyword matches taken from the course corpus.
        forum_keyword_limit: Keyword matches taken from the forum corpus.
        max_evidence: Upper bound on the merged evidence list.
    """

    vector_top_k: int = 5
    course_keyword_limit: int = 2
    forum_keyword_limit: int = 3
    max_evidence: int = 8


@dataclass
class EvidenceEntry:
    text: str
    url: str
    title: str
    variant: ContentVariant

    @classmethod
    def from_item(cls, item: ContentItem) -> EvidenceEntry:
        return cls(text=item.body, url=item.url, title=item.title, variant=item.variant)


def find_evidence(
    question: str,
    store: Store,
    index: EmbeddingIndex,
    embedder: EmbeddingProvider,
    config: RetrieverConfig | None = None,
) -> list[EvidenceEntry]:
    """Return the merged, deduplicated evidence list for *question*.

    An embedding-provider failure is logged and retrieval continues with
    keyword results only.
    """
    config = config or RetrieverConfig()

    vector_hits: list[EvidenceEntry] = []
    if config.vector_top_k > 0:
        try:
            query_vector = embedder.embed(question)
        except ProviderError as exc:
            logger.warning("Vector search unavailable, using keyword search only: %s", exc)
        else:
            vector_hits = _vector_evidence(query_vector, store, index, config.vector_top_k)

    course_hits = [
        EvidenceEntry.from_item(i)
        for i in store.search_content(ContentVariant.COURSE, question)[: config.course_keyword_limit]
    ]
    forum_hits = [
        EvidenceEntry.from_item(i)
        for i in store.search_content(ContentVariant.FORUM, question)[: config.forum_keyword_limit]
    ]

    return _merge([vector_hits, course_hits, forum_hits], config.max_evidence)


def _vector_evidence(
    query_vector: list[float],
    store: Store,
    index: EmbeddingIndex,
    k: int,
) -> list[EvidenceEntry]:
    """Search the index and resolve hits to content items."""
    entries: list[EvidenceEntry] = []
    for hit in index.search(query_vector, k):
        item = store.get_content(hit.record.variant, hit.record.content_id)
        if item is None:
            err = DataIntegrityError(
                f"Embedding {hit.record.id} references missing "
                f"{hit.record.variant.value} item {hit.record.content_id}"
            )
            logger.warning("Skipping dangling evidence: %s", err)
            continue
        entries.append(EvidenceEntry.from_item(item))
    return entries


def _merge(channels: list[list[EvidenceEntry]], limit: int) -> list[EvidenceEntry]:
    """Concatenate *channels* in order, keep the first entry per url, cap at *limit*."""
    seen: set[str] = set()
    merged: list[EvidenceEntry] = []
    for channel in channels:
        for entry in channel:
            if entry.url in seen:
                continue
            seen.add(entry.url)
            merged.append(entry)
            if len(merged) >= limit:
                return merged
    return merged
