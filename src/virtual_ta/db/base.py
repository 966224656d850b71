"""Storage protocol shared by the SQLite repository and the in-memory store."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from virtual_ta.db.models import (
    ConfigEntry,
    ContentItem,
    ContentVariant,
    EmbeddingRecord,
    QuestionRecord,
    QuestionStats,
)


class Store(Protocol):
    """Content, embedding, question-log and config persistence.

    Implementations must make every write atomically visible and must perform
    identity deduplication for content as a single atomic check-and-insert.
    """

    # Content
    def add_content(self, item: ContentItem) -> tuple[ContentItem, bool]: ...
    def get_content(self, variant: ContentVariant, content_id: int) -> ContentItem | None: ...
    def get_content_by_identity(
        self, variant: ContentVariant, identity: str | int
    ) -> ContentItem | None: ...
    def list_content(self, variant: ContentVariant | None = None) -> list[ContentItem]: ...
    def search_content(self, variant: ContentVariant, keyword: str) -> list[ContentItem]: ...
    def count_content(self, variant: ContentVariant) -> int: ...

    # Embeddings
    def add_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord: ...
    def list_embeddings(self) -> list[EmbeddingRecord]: ...
    def replace_embeddings(self, records: Sequence[EmbeddingRecord]) -> int: ...
    def count_embeddings(self) -> dict[ContentVariant, int]: ...

    # Question log
    def add_question(self, record: QuestionRecord) -> QuestionRecord: ...
    def list_questions(self, limit: int = 100) -> list[QuestionRecord]: ...
    def question_stats(self, since: str) -> QuestionStats: ...

    # Config entries
    def get_config(self, key: str) -> str | None: ...
    def set_config(self, key: str, value: str, description: str | None = None) -> None: ...
    def list_config(self) -> list[ConfigEntry]: ...
