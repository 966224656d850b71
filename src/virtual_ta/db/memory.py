"""Thread-safe in-memory Store, used by tests and throwaway runs."""

from __future__ import annotations

import copy
import threading
from collections.abc import Sequence

from virtual_ta.db.models import (
    ConfigEntry,
    ContentItem,
    ContentVariant,
    EmbeddingRecord,
    QuestionRecord,
    QuestionStats,
    utc_stamp,
)


class MemoryStore:
    """Conforms to :class:`virtual_ta.db.base.Store`.

    A single lock guards every read and write; returned objects are copies so
    callers can never mutate stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._content: dict[ContentVariant, dict[int, ContentItem]] = {
            v: {} for v in ContentVariant
        }
        self._identities: dict[ContentVariant, dict[str | int, int]] = {
            v: {} for v in ContentVariant
        }
        self._next_content_id = {v: 1 for v in ContentVariant}
        self._embeddings: list[EmbeddingRecord] = []
        self._next_embedding_id = 1
        self._questions: list[QuestionRecord] = []
        self._config: dict[str, ConfigEntry] = {}

    # Content

    def add_content(self, item: ContentItem) -> tuple[ContentItem, bool]:
        identity = item.identity
        with self._lock:
            existing_id = self._identities[item.variant].get(identity)
            if existing_id is not None:
                return copy.deepcopy(self._content[item.variant][existing_id]), False
            now = utc_stamp()
            stored = copy.deepcopy(item)
            stored.id = self._next_content_id[item.variant]
            stored.created_at = item.created_at or now
            stored.updated_at = item.updated_at or now
            self._next_content_id[item.variant] += 1
            self._content[item.variant][stored.id] = stored
            self._identities[item.variant][identity] = stored.id
            return copy.deepcopy(stored), True

    def get_content(self, variant: ContentVariant, content_id: int) -> ContentItem | None:
        with self._lock:
            item = self._content[variant].get(content_id)
            return copy.deepcopy(item) if item else None

    def get_content_by_identity(
        self, variant: ContentVariant, identity: str | int
    ) -> ContentItem | None:
        with self._lock:
            content_id = self._identities[variant].get(identity)
            if content_id is None:
                return None
            return copy.deepcopy(self._content[variant][content_id])

    def list_content(self, variant: ContentVariant | None = None) -> list[ContentItem]:
        variants = [variant] if variant is not None else list(ContentVariant)
        with self._lock:
            return [copy.deepcopy(i) for v in variants for i in self._content[v].values()]

    def search_content(self, variant: ContentVariant, keyword: str) -> list[ContentItem]:
        needle = keyword.lower()
        with self._lock:
            return [
                copy.deepcopy(i)
                for i in self._content[variant].values()
                if needle in i.title.lower() or needle in i.body.lower()
            ]

    def count_content(self, variant: ContentVariant) -> int:
        with self._lock:
            return len(self._content[variant])

    # Embeddings

    def add_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord:
        with self._lock:
            stored = self._stamp_embedding(record, utc_stamp())
            self._embeddings = [*self._embeddings, stored]
        record.id = stored.id
        record.created_at = stored.created_at
        return record

    def list_embeddings(self) -> list[EmbeddingRecord]:
        with self._lock:
            return copy.deepcopy(self._embeddings)

    def replace_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        with self._lock:
            now = utc_stamp()
            fresh = [self._stamp_embedding(r, now) for r in records]
            covered = {(r.content_id, r.variant) for r in fresh}
            carried = [
                copy.deepcopy(r)
                for r in self._embeddings
                if (r.content_id, r.variant) not in covered
            ]
            for r in carried:
                r.id = self._next_embedding_id
                self._next_embedding_id += 1
            # Rebind rather than mutate: readers holding the old list are unaffected.
            self._embeddings = fresh + carried
        return len(records)

    def count_embeddings(self) -> dict[ContentVariant, int]:
        counts = {v: 0 for v in ContentVariant}
        with self._lock:
            for r in self._embeddings:
                counts[r.variant] += 1
        return counts

    def _stamp_embedding(self, record: EmbeddingRecord, created_at: str) -> EmbeddingRecord:
        stored = copy.deepcopy(record)
        stored.id = self._next_embedding_id
        stored.created_at = created_at
        self._next_embedding_id += 1
        return stored

    # Question log

    def add_question(self, record: QuestionRecord) -> QuestionRecord:
        with self._lock:
            record.id = len(self._questions) + 1
            record.created_at = record.created_at or utc_stamp()
            self._questions.append(copy.deepcopy(record))
        return record

    def list_questions(self, limit: int = 100) -> list[QuestionRecord]:
        with self._lock:
            ordered = sorted(
                self._questions, key=lambda q: (q.created_at or "", q.id or 0), reverse=True
            )
            return copy.deepcopy(ordered[:limit])

    def question_stats(self, since: str) -> QuestionStats:
        with self._lock:
            questions = list(self._questions)
        times = [q.response_time for q in questions if q.response_time is not None]
        return QuestionStats(
            total=len(questions),
            successful=sum(1 for q in questions if q.success),
            avg_response_time=sum(times) / len(times) if times else 0.0,
            since_count=sum(1 for q in questions if (q.created_at or "") >= since),
        )

    # Config entries

    def get_config(self, key: str) -> str | None:
        with self._lock:
            entry = self._config.get(key)
            return entry.value if entry else None

    def set_config(self, key: str, value: str, description: str | None = None) -> None:
        with self._lock:
            existing = self._config.get(key)
            self._config[key] = ConfigEntry(
                key=key,
                value=value,
                description=description if description is not None
                else (existing.description if existing else None),
                updated_at=utc_stamp(),
            )

    def list_config(self) -> list[ConfigEntry]:
        with self._lock:
            return [copy.deepcopy(self._config[k]) for k in sorted(self._config)]
