"""MemoryStore-specific behaviour."""

from __future__ import annotations

import threading

from virtual_ta.db.memory import MemoryStore
from virtual_ta.db.models import ContentItem, ContentVariant, EmbeddingRecord


def test_returned_items_are_copies():
    store = MemoryStore()
    item, _ = store.add_content(
        ContentItem(variant=ContentVariant.COURSE, title="t", body="b", url="https://a")
    )
    item.body = "mutated"
    assert store.get_content(ContentVariant.COURSE, item.id).body == "b"


def test_listed_embeddings_are_copies():
    store = MemoryStore()
    store.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0]))
    store.list_embeddings()[0].vector.append(2.0)
    assert store.list_embeddings()[0].vector == [1.0]


def test_concurrent_add_same_identity_creates_one():
    store = MemoryStore()
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        _, created = store.add_content(
            ContentItem(variant=ContentVariant.FORUM, title="t", body="b", url="u", external_id=9)
        )
        with lock:
            results.append(created)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert store.count_content(ContentVariant.FORUM) == 1
