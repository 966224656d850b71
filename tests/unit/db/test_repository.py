"""SQLite-specific Repository behaviour: cross-connection visibility and atomicity."""

from __future__ import annotations

import threading

from virtual_ta.db.connection import Database
from virtual_ta.db.models import ContentItem, ContentVariant, EmbeddingRecord
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize


def _course(url: str) -> ContentItem:
    return ContentItem(variant=ContentVariant.COURSE, title="t", body="b", url=url)


def _open(path) -> Repository:
    conn = Database(path).connect()
    initialize(conn)
    return Repository(conn)


def test_embedding_stored_as_float32_blob(repo, tmp_db):
    repo.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0, 2.0]))
    blob = tmp_db.execute("SELECT embedding FROM embeddings").fetchone()[0]
    assert len(blob) == 8


def test_write_visible_to_other_connection(tmp_path):
    path = tmp_path / "shared.db"
    writer = _open(path)
    reader = _open(path)
    writer.add_content(_course("https://a"))
    assert reader.count_content(ContentVariant.COURSE) == 1


def test_concurrent_ingest_of_same_identity_creates_one(tmp_path):
    path = tmp_path / "race.db"
    _open(path)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        repo = _open(path)
        _, created = repo.add_content(_course("https://same"))
        with lock:
            results.append(created)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert _open(path).count_content(ContentVariant.COURSE) == 1


def test_replace_embeddings_drops_old_generation(repo, tmp_db):
    repo.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0]))
    repo.replace_embeddings([EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[2.0])])
    generations = {r[0] for r in tmp_db.execute("SELECT generation FROM embeddings").fetchall()}
    active = tmp_db.execute("SELECT generation FROM index_state").fetchone()[0]
    assert generations == {active}
    assert active == 2


def test_reader_sees_old_generation_until_swap_commits(tmp_path):
    path = tmp_path / "swap.db"
    writer = _open(path)
    reader = _open(path)
    writer.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0]))
    writer.replace_embeddings([EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[5.0])])
    [record] = reader.list_embeddings()
    assert record.vector == [5.0]


def test_add_embedding_after_swap_joins_active_generation(repo):
    repo.replace_embeddings([EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0])])
    repo.add_embedding(EmbeddingRecord(content_id=2, variant=ContentVariant.FORUM, vector=[1.0]))
    assert len(repo.list_embeddings()) == 2
