"""Question outcome log and the metrics derived from it."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from virtual_ta.db.base import Store
from virtual_ta.db.models import QuestionRecord, utc_stamp

logger = logging.getLogger(__name__)


@dataclass
class QAMetrics:
    total_questions: int = 0
    successful_questions: int = 0
    success_rate: float = 0.0  # fraction in [0, 1]
    avg_response_time: float = 0.0
    questions_today: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def local_midnight(now: datetime | None = None) -> datetime:
    """Start of the current local day as an aware datetime."""
    now = (now or datetime.now()).astimezone()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class OutcomeLogger:
    """Append one :class:`QuestionRecord` per request and summarise the log."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def record(
        self,
        question: str,
        answer: str | None,
        links: list[dict] | None,
        has_image: bool,
        elapsed: float | None,
        success: bool,
        error: str | None = None,
    ) -> QuestionRecord:
        stored = self._store.add_question(
            QuestionRecord(
                question=question,
                answer=answer,
                links=links,
                has_image=has_image,
                response_time=elapsed,
                success=success,
                error_message=error,
            )
        )
        logger.debug(
            "Recorded question %s (success=%s, %.3fs)", stored.id, success, elapsed or 0.0
        )
        return stored

    def metrics(self, now: datetime | None = None) -> QAMetrics:
        """Totals, success rate, mean response time and today's count.

        Args:
            now: Reference time for "today" (defaults to the current local time).
        """
        stats = self._store.question_stats(since=utc_stamp(local_midnight(now)))
        return QAMetrics(
            total_questions=stats.total,
            successful_questions=stats.successful,
            success_rate=stats.successful / stats.total if stats.total else 0.0,
            avg_response_time=stats.avg_response_time,
            questions_today=stats.since_count,
        )

    def recent(self, limit: int = 100) -> list[QuestionRecord]:
        """Newest records first."""
        return self._store.list_questions(limit=limit)
