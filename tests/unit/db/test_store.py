"""Behaviour shared by every Store implementation (SQLite and in-memory)."""

from __future__ import annotations

import threading

import pytest

from virtual_ta.db.connection import Database
from virtual_ta.db.memory import MemoryStore
from virtual_ta.db.models import ContentItem, ContentVariant, EmbeddingRecord, QuestionRecord
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize


def _course(url="https://tds.example/ga1", title="Graded Assignment 1", body="Submit GA1 by Sunday."):
    return ContentItem(variant=ContentVariant.COURSE, title=title, body=body, url=url, category="assignment")


def _forum(post_id=101, title="Docker or Podman?", body="Which container runtime should I use?"):
    return ContentItem(
        variant=ContentVariant.FORUM,
        title=title,
        body=body,
        url=f"https://discourse.example/t/{post_id}",
        external_id=post_id,
        author="student1",
    )


def _question(text="q", success=True, response_time=1.0, created_at=None):
    return QuestionRecord(
        question=text,
        answer="a" if success else None,
        links=[] if success else None,
        has_image=False,
        response_time=response_time,
        success=success,
        error_message=None if success else "boom",
        created_at=created_at,
    )


# ------------------------------------------------------------------
# Content
# ------------------------------------------------------------------


def test_add_content_assigns_id(store):
    item, created = store.add_content(_course())
    assert created is True
    assert item.id is not None
    assert item.created_at is not None


def test_readd_same_url_is_idempotent(store):
    first, _ = store.add_content(_course(body="original"))
    second, created = store.add_content(_course(body="changed"))
    assert created is False
    assert second.id == first.id
    assert second.body == "original"
    assert store.count_content(ContentVariant.COURSE) == 1


_WRITERS = 8


def _add_concurrently(stores, item):
    """Call add_content once per store, all threads released together."""
    barrier = threading.Barrier(len(stores))
    created: list[bool] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker(s):
        try:
            barrier.wait(timeout=5)
            _, was_created = s.add_content(item)
        except BaseException as exc:
            with lock:
                errors.append(exc)
            return
        with lock:
            created.append(was_created)

    threads = [threading.Thread(target=worker, args=(s,)) for s in stores]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    return created


@pytest.mark.parametrize("make_item", [_course, _forum], ids=["course-url", "forum-post-id"])
def test_concurrent_add_same_identity_sqlite(tmp_path, make_item):
    db = Database(tmp_path / "race.db")
    with db as conn:
        initialize(conn)
    conns = [db.connect() for _ in range(_WRITERS)]
    try:
        created = _add_concurrently([Repository(c) for c in conns], make_item())
        assert created.count(True) == 1
        assert len(created) == _WRITERS
        assert Repository(conns[0]).count_content(make_item().variant) == 1
    finally:
        for c in conns:
            c.close()


@pytest.mark.parametrize("make_item", [_course, _forum], ids=["course-url", "forum-post-id"])
def test_concurrent_add_same_identity_memory(make_item):
    store = MemoryStore()
    created = _add_concurrently([store] * _WRITERS, make_item())
    assert created.count(True) == 1
    assert store.count_content(make_item().variant) == 1


def test_forum_identity_is_post_id(store):
    store.add_content(_forum(post_id=7))
    _, created = store.add_content(_forum(post_id=7, title="different title"))
    assert created is False
    _, created = store.add_content(_forum(post_id=8))
    assert created is True
    assert store.count_content(ContentVariant.FORUM) == 2


def test_variants_have_separate_identity_spaces(store):
    store.add_content(_course(url="https://discourse.example/t/101"))
    _, created = store.add_content(_forum(post_id=101))
    assert created is True


def test_forum_without_post_id_rejected(store):
    item = _forum()
    item.external_id = None
    with pytest.raises(ValueError):
        store.add_content(item)


def test_get_content_by_identity(store):
    store.add_content(_forum(post_id=55))
    found = store.get_content_by_identity(ContentVariant.FORUM, 55)
    assert found is not None
    assert found.author == "student1"
    assert store.get_content_by_identity(ContentVariant.FORUM, 56) is None


def test_get_content_missing(store):
    assert store.get_content(ContentVariant.COURSE, 999) is None


def test_list_content_by_variant(store):
    store.add_content(_course(url="https://a"))
    store.add_content(_course(url="https://b"))
    store.add_content(_forum())
    assert [i.url for i in store.list_content(ContentVariant.COURSE)] == ["https://a", "https://b"]
    assert len(store.list_content()) == 3


def test_search_content_case_insensitive_substring(store):
    store.add_content(_course(url="https://a", title="Docker basics", body="containers"))
    store.add_content(_course(url="https://b", title="Git", body="Use DOCKER compose"))
    store.add_content(_course(url="https://c", title="Pandas", body="dataframes"))
    hits = store.search_content(ContentVariant.COURSE, "docker")
    assert [h.url for h in hits] == ["https://a", "https://b"]


def test_search_content_whole_phrase(store):
    store.add_content(_course(url="https://a", body="docker and podman"))
    assert store.search_content(ContentVariant.COURSE, "podman docker") == []


def test_search_content_unicode_case_folding(store):
    store.add_content(_course(url="https://a", title="ÉCOLE notes"))
    assert len(store.search_content(ContentVariant.COURSE, "école")) == 1


# ------------------------------------------------------------------
# Embeddings
# ------------------------------------------------------------------


def test_add_and_list_embeddings(store):
    rec = store.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[0.5, 0.25]))
    assert rec.id is not None
    listed = store.list_embeddings()
    assert len(listed) == 1
    assert listed[0].vector == pytest.approx([0.5, 0.25])
    assert listed[0].variant is ContentVariant.COURSE


def test_embeddings_listed_in_insertion_order(store):
    for cid in (3, 1, 2):
        store.add_embedding(EmbeddingRecord(content_id=cid, variant=ContentVariant.FORUM, vector=[1.0]))
    assert [r.content_id for r in store.list_embeddings()] == [3, 1, 2]


def test_count_embeddings_zero_filled(store):
    counts = store.count_embeddings()
    assert counts == {ContentVariant.COURSE: 0, ContentVariant.FORUM: 0}
    store.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.FORUM, vector=[1.0]))
    assert store.count_embeddings()[ContentVariant.FORUM] == 1


def test_replace_embeddings_swaps_generation(store):
    store.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0, 0.0]))
    written = store.replace_embeddings(
        [EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[0.0, 1.0])]
    )
    assert written == 1
    listed = store.list_embeddings()
    assert len(listed) == 1
    assert listed[0].vector == pytest.approx([0.0, 1.0])


def test_replace_embeddings_carries_over_uncovered(store):
    store.add_embedding(EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[1.0, 0.0]))
    store.add_embedding(EmbeddingRecord(content_id=2, variant=ContentVariant.COURSE, vector=[0.5, 0.5]))
    store.replace_embeddings(
        [EmbeddingRecord(content_id=1, variant=ContentVariant.COURSE, vector=[0.0, 1.0])]
    )
    by_content = {r.content_id: r.vector for r in store.list_embeddings()}
    assert by_content[1] == pytest.approx([0.0, 1.0])
    assert by_content[2] == pytest.approx([0.5, 0.5])


# ------------------------------------------------------------------
# Question log
# ------------------------------------------------------------------


def test_add_question_sets_id_and_timestamp(store):
    rec = store.add_question(_question())
    assert rec.id is not None
    assert rec.created_at.endswith("Z")


def test_question_links_round_trip(store):
    q = _question()
    q.links = [{"url": "https://discourse.example/t/1", "text": "Thread"}]
    store.add_question(q)
    assert store.list_questions()[0].links == [{"url": "https://discourse.example/t/1", "text": "Thread"}]


def test_list_questions_newest_first(store):
    store.add_question(_question("old", created_at="2026-01-01T00:00:00.000000Z"))
    store.add_question(_question("new", created_at="2026-03-01T00:00:00.000000Z"))
    store.add_question(_question("mid", created_at="2026-02-01T00:00:00.000000Z"))
    assert [q.question for q in store.list_questions()] == ["new", "mid", "old"]
    assert len(store.list_questions(limit=1)) == 1


def test_question_stats_empty(store):
    stats = store.question_stats(since="2026-01-01T00:00:00.000000Z")
    assert stats.total == 0
    assert stats.successful == 0
    assert stats.avg_response_time == 0.0
    assert stats.since_count == 0


def test_question_stats_arithmetic(store):
    store.add_question(_question(success=True, response_time=1.0, created_at="2026-01-01T00:00:00.000000Z"))
    store.add_question(_question(success=True, response_time=2.0, created_at="2026-05-01T00:00:00.000000Z"))
    store.add_question(_question(success=False, response_time=3.0, created_at="2026-05-02T00:00:00.000000Z"))
    store.add_question(_question(success=True, response_time=None, created_at="2026-05-03T00:00:00.000000Z"))
    stats = store.question_stats(since="2026-05-01T00:00:00.000000Z")
    assert stats.total == 4
    assert stats.successful == 3
    assert stats.avg_response_time == pytest.approx(2.0)
    assert stats.since_count == 3


# ------------------------------------------------------------------
# Config entries
# ------------------------------------------------------------------


def test_config_get_missing(store):
    assert store.get_config("generation_model") is None


def test_config_set_and_get(store):
    store.set_config("temperature", "0.2", "Sampling temperature")
    assert store.get_config("temperature") == "0.2"


def test_config_upsert_keeps_description(store):
    store.set_config("temperature", "0.2", "Sampling temperature")
    store.set_config("temperature", "0.9")
    [entry] = store.list_config()
    assert entry.value == "0.9"
    assert entry.description == "Sampling temperature"


def test_list_config_sorted_by_key(store):
    store.set_config("max_tokens", "100")
    store.set_config("embedding_model", "openai/x")
    assert [e.key for e in store.list_config()] == ["embedding_model", "max_tokens"]
