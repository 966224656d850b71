"""SQLite repository: single data-access interface for the answer pipeline.

Covers course items, forum posts, keyword search, embeddings (generation
based, swapped atomically on reindex), the question log and config entries.
Identity deduplication relies on UNIQUE constraints plus
``INSERT ... ON CONFLICT DO NOTHING``, which stays race-safe across
connections.
"""

from __future__ import annotations

import json
import sqlite3
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
from virtual_ta.db.vectors import serialize

_COURSE_COLUMNS = "id, url, title, body, category, metadata, created_at, updated_at"
_FORUM_COLUMNS = (
    "id, external_id, url, title, body, category, author, metadata, created_at, updated_at"
)
_ACTIVE_GENERATION = "(SELECT generation FROM index_state WHERE id = 1)"


class Repository:
    """Data access layer over an open sqlite3.Connection.

    The connection is owned by the caller and must be closed after use. Every
    write method commits before returning, so each insert becomes visible to
    other connections as a whole.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: A connection from :meth:`Database.connect` with the schema
                initialised (see virtual_ta.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def add_content(self, item: ContentItem) -> tuple[ContentItem, bool]:
        """Insert *item* unless its identity already exists.

        Returns:
            (stored item, created); ``created`` is False when an item with the
            same identity was already present; that item is returned unchanged.
        """
        now = utc_stamp()
        if item.variant is ContentVariant.COURSE:
            cur = self._conn.execute(
                """
                INSERT INTO course_items (url, title, body, category, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(url) DO NOTHING
                """,
                (
                    item.url,
                    item.title,
                    item.body,
                    item.category,
                    item.metadata,
                    item.created_at or now,
                    item.updated_at or now,
                ),
            )
        elif item.variant is ContentVariant.FORUM:
            cur = self._conn.execute(
                """
                INSERT INTO forum_posts
                    (external_id, url, title, body, category, author, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(external_id) DO NOTHING
                """,
                (
                    item.identity,
                    item.url,
                    item.title,
                    item.body,
                    item.category,
                    item.author,
                    item.metadata,
                    item.created_at or now,
                    item.updated_at or now,
                ),
            )
        else:
            raise ValueError(f"Unknown content variant: {item.variant!r}")
        self._conn.commit()

        stored = self.get_content_by_identity(item.variant, item.identity)
        if stored is None:
            raise RuntimeError(f"Content '{item.url}' vanished after insert")
        return stored, cur.rowcount == 1

    def get_content(self, variant: ContentVariant, content_id: int) -> ContentItem | None:
        """Return a content item by its store id, or None if not found."""
        table, columns = _content_table(variant)
        row = self._conn.execute(
            f"SELECT {columns} FROM {table} WHERE id = ?", (content_id,)
        ).fetchone()
        return _row_to_content(row, variant) if row else None

    def get_content_by_identity(
        self, variant: ContentVariant, identity: str | int
    ) -> ContentItem | None:
        """Return the item with natural identity *identity* (url or forum post id)."""
        table, columns = _content_table(variant)
        key = "url" if variant is ContentVariant.COURSE else "external_id"
        row = self._conn.execute(
            f"SELECT {columns} FROM {table} WHERE {key} = ?", (identity,)
        ).fetchone()
        return _row_to_content(row, variant) if row else None

    def list_content(self, variant: ContentVariant | None = None) -> list[ContentItem]:
        """Return all items of *variant* (both corpora if None), oldest first."""
        variants = [variant] if variant is not None else list(ContentVariant)
        items: list[ContentItem] = []
        for v in variants:
            table, columns = _content_table(v)
            rows = self._conn.execute(f"SELECT {columns} FROM {table} ORDER BY id").fetchall()
            items.extend(_row_to_content(r, v) for r in rows)
        return items

    def search_content(self, variant: ContentVariant, keyword: str) -> list[ContentItem]:
        """Case-insensitive substring match of *keyword* against title or body."""
        table, columns = _content_table(variant)
        needle = keyword.lower()
        rows = self._conn.execute(
            f"""
            SELECT {columns} FROM {table}
            WHERE instr(py_lower(title), ?) > 0 OR instr(py_lower(body), ?) > 0
            ORDER BY id
            """,
            (needle, needle),
        ).fetchall()
        return [_row_to_content(r, variant) for r in rows]

    def count_content(self, variant: ContentVariant) -> int:
        table, _ = _content_table(variant)
        return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def add_embedding(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Append *record* to the active index generation. Returns it with id set."""
        created_at = utc_stamp()
        cur = self._conn.execute(
            f"""
            INSERT INTO embeddings (content_id, variant, chunk_index, generation, embedding, created_at)
            VALUES (?, ?, ?, {_ACTIVE_GENERATION}, ?, ?)
            """,
            (
                record.content_id,
                record.variant.value,
                record.chunk_index,
                serialize(record.vector),
                created_at,
            ),
        )
        self._conn.commit()
        record.id = cur.lastrowid
        record.created_at = created_at
        return record

    def list_embeddings(self) -> list[EmbeddingRecord]:
        """Return every record of the active generation in insertion order."""
        rows = self._conn.execute(
            f"""
            SELECT id, content_id, variant, chunk_index, created_at,
                   vec_to_json(embedding) AS vector
            FROM embeddings
            WHERE generation = {_ACTIVE_GENERATION}
            ORDER BY id
            """
        ).fetchall()
        return [_row_to_embedding(r) for r in rows]

    def replace_embeddings(self, records: Sequence[EmbeddingRecord]) -> int:
        """Swap in *records* as a new index generation, atomically.

        Records of the old generation whose content is not covered by
        *records* are carried over, so items that failed to re-embed keep
        their previous vectors. Readers see either the old or the new
        generation, never a mix.

        Returns:
            Number of records written from *records*.
        """
        now = utc_stamp()
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            old = self._conn.execute(
                "SELECT generation FROM index_state WHERE id = 1"
            ).fetchone()[0]
            new = old + 1
            self._conn.executemany(
                """
                INSERT INTO embeddings (content_id, variant, chunk_index, generation, embedding, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (r.content_id, r.variant.value, r.chunk_index, new, serialize(r.vector), now)
                    for r in records
                ],
            )
            self._conn.execute(
                """
                INSERT INTO embeddings (content_id, variant, chunk_index, generation, embedding, created_at)
                SELECT e.content_id, e.variant, e.chunk_index, ?, e.embedding, e.created_at
                FROM embeddings e
                WHERE e.generation = ?
                  AND NOT EXISTS (
                      SELECT 1 FROM embeddings n
                      WHERE n.generation = ? AND n.content_id = e.content_id AND n.variant = e.variant
                  )
                ORDER BY e.id
                """,
                (new, old, new),
            )
            self._conn.execute("UPDATE index_state SET generation = ? WHERE id = 1", (new,))
            self._conn.execute("DELETE FROM embeddings WHERE generation <> ?", (new,))
        except Exception:
            self._conn.rollback()
            raise
        self._conn.commit()
        return len(records)

    def count_embeddings(self) -> dict[ContentVariant, int]:
        """Return {variant: count} for the active generation (zero-filled)."""
        counts = {v: 0 for v in ContentVariant}
        rows = self._conn.execute(
            f"""
            SELECT variant, COUNT(*) AS n FROM embeddings
            WHERE generation = {_ACTIVE_GENERATION}
            GROUP BY variant
            """
        ).fetchall()
        for r in rows:
            counts[ContentVariant(r["variant"])] = r["n"]
        return counts

    # ------------------------------------------------------------------
    # Question log
    # ------------------------------------------------------------------

    def add_question(self, record: QuestionRecord) -> QuestionRecord:
        """Append a question record. Returns it with id and created_at set."""
        created_at = record.created_at or utc_stamp()
        cur = self._conn.execute(
            """
            INSERT INTO questions
                (question, answer, links, has_image, response_time, success, error_message, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.question,
                record.answer,
                json.dumps(record.links) if record.links is not None else None,
                int(record.has_image),
                record.response_time,
                int(record.success),
                record.error_message,
                created_at,
            ),
        )
        self._conn.commit()
        record.id = cur.lastrowid
        record.created_at = created_at
        return record

    def list_questions(self, limit: int = 100) -> list[QuestionRecord]:
        """Return up to *limit* records, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, question, answer, links, has_image, response_time, success,
                   error_message, created_at
            FROM questions ORDER BY created_at DESC, id DESC LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [_row_to_question(r) for r in rows]

    def question_stats(self, since: str) -> QuestionStats:
        """Aggregate the question log; ``since_count`` counts records at or after *since*."""
        row = self._conn.execute(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(success), 0) AS successful,
                   AVG(response_time) AS avg_response_time,
                   COALESCE(SUM(created_at >= ?), 0) AS since_count
            FROM questions
            """,
            (since,),
        ).fetchone()
        return QuestionStats(
            total=row["total"],
            successful=row["successful"],
            avg_response_time=row["avg_response_time"] or 0.0,
            since_count=row["since_count"],
        )

    # ------------------------------------------------------------------
    # Config entries
    # ------------------------------------------------------------------

    def get_config(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM system_config WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str, description: str | None = None) -> None:
        """Upsert a config entry. An omitted description keeps the existing one."""
        self._conn.execute(
            """
            INSERT INTO system_config (key, value, description, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                description = COALESCE(excluded.description, system_config.description),
                updated_at = excluded.updated_at
            """,
            (key, value, description, utc_stamp()),
        )
        self._conn.commit()

    def list_config(self) -> list[ConfigEntry]:
        rows = self._conn.execute(
            "SELECT key, value, description, updated_at FROM system_config ORDER BY key"
        ).fetchall()
        return [
            ConfigEntry(
                key=r["key"],
                value=r["value"],
                description=r["description"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _content_table(variant: ContentVariant) -> tuple[str, str]:
    if variant is ContentVariant.COURSE:
        return "course_items", _COURSE_COLUMNS
    if variant is ContentVariant.FORUM:
        return "forum_posts", _FORUM_COLUMNS
    raise ValueError(f"Unknown content variant: {variant!r}")


def _row_to_content(row: sqlite3.Row, variant: ContentVariant) -> ContentItem:
    keys = row.keys()
    return ContentItem(
        id=row["id"],
        variant=variant,
        title=row["title"],
        body=row["body"],
        url=row["url"],
        category=row["category"],
        external_id=row["external_id"] if "external_id" in keys else None,
        author=row["author"] if "author" in keys else None,
        metadata=row["metadata"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_embedding(row: sqlite3.Row) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=row["id"],
        content_id=row["content_id"],
        variant=ContentVariant(row["variant"]),
        vector=json.loads(row["vector"]),
        chunk_index=row["chunk_index"],
        created_at=row["created_at"],
    )


def _row_to_question(row: sqlite3.Row) -> QuestionRecord:
    return QuestionRecord(
        id=row["id"],
        question=row["question"],
        answer=row["answer"],
        links=json.loads(row["links"]) if row["links"] is not None else None,
        has_image=bool(row["has_image"]),
        response_time=row["response_time"],
        success=bool(row["success"]),
        error_message=row["error_message"],
        created_at=row["created_at"],
    )
