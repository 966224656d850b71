"""Canned answers for the offline fallback responder.

Rules are checked in order against the lower-cased question; the first rule
whose keywords all appear (and, if ``any_of`` is set, at least one of those)
wins.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FallbackRule:
    name: str
    all_of: tuple[str, ...]
    answer: str
    any_of: tuple[str, ...] = ()

    def matches(self, lowered_question: str) -> bool:
        if not all(k in lowered_question for k in self.all_of):
            return False
        return not self.any_of or any(k in lowered_question for k in self.any_of)


DEFAULT_RULES: tuple[FallbackRule, ...] = (
    FallbackRule(
        name="gpt-model-choice",
        all_of=("gpt",),
        any_of=("4o-mini", "3.5"),
        answer=(
            "You must use `gpt-3.5-turbo-0125`, even if the AI Proxy only supports "
            "`gpt-4o-mini`. Use the OpenAI API directly for this question as specified "
            "in the assignment requirements."
        ),
    ),
    FallbackRule(
        name="ga4-bonus-dashboard",
        all_of=("ga4", "bonus", "dashboard"),
        answer=(
            "If a student scores 10/10 on GA4 as well as a bonus, it would appear as "
            "'110' on the dashboard. The system displays the total including bonus points."
        ),
    ),
    FallbackRule(
        name="docker-podman",
        all_of=("docker", "podman"),
        answer=(
            "While Docker is widely used and acceptable for this course, we recommend "
            "using Podman as it provides better security and is rootless by default. "
            "If you're already familiar with Docker, you can continue using it."
        ),
    ),
    FallbackRule(
        name="future-exam-date",
        all_of=("sep 2025", "exam"),
        answer=(
            "The TDS Sep 2025 end-term exam date has not been announced yet. Please check "
            "the official course calendar for updates. We will post announcements once "
            "the schedule is finalized."
        ),
    ),
)


def match_rule(question: str, rules: tuple[FallbackRule, ...] = DEFAULT_RULES) -> FallbackRule | None:
    """Return the first rule matching *question*, or None."""
    lowered = question.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule
    return None
