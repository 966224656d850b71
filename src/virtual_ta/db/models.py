"""Domain models for the storage layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ContentVariant(str, Enum):
    """The two content corpora."""

    COURSE = "course"
    FORUM = "forum"

    @property
    def label(self) -> str:
        return self.value.upper()


@dataclass
class ContentItem:
    """A course page or forum post.

    Identity is ``url`` for COURSE items and ``external_id`` (the forum post
    id) for FORUM items. ``id`` is assigned by the store on insert.
    """

    variant: ContentVariant
    title: str
    body: str
    url: str
    category: str = ""
    external_id: int | None = None
    author: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    metadata: str = field(default_factory=lambda: "{}")
    id: int | None = None

    @property
    def identity(self) -> str | int:
        if self.variant is ContentVariant.COURSE:
            return self.url
        if self.variant is ContentVariant.FORUM:
            if self.external_id is None:
                raise ValueError(f"Forum post '{self.url}' has no external_id")
            return self.external_id
        raise ValueError(f"Unknown content variant: {self.variant!r}")

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata)


@dataclass
class EmbeddingRecord:
    content_id: int
    variant: ContentVariant
    vector: list[float]
    chunk_index: int = 0
    created_at: str | None = None
    id: int | None = None  # set after insert


@dataclass
class QuestionRecord:
    """One answered (or failed) request. Append-only."""

    question: str
    answer: str | None
    links: list[dict] | None
    has_image: bool
    response_time: float | None
    success: bool
    error_message: str | None = None
    created_at: str | None = None
    id: int | None = None


@dataclass
class ConfigEntry:
    key: str
    value: str
    description: str | None = None
    updated_at: str | None = None


@dataclass
class QuestionStats:
    """Raw aggregates over the question log, computed by the store."""

    total: int = 0
    successful: int = 0
    avg_response_time: float = 0.0
    since_count: int = 0


def utc_stamp(moment: datetime | None = None) -> str:
    """Return a fixed-width, lexically sortable UTC timestamp string."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
