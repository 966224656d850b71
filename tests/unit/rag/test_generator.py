"""Tests for answer generation: prompts, fallback responder and link extraction."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from virtual_ta.db.models import ContentVariant
from virtual_ta.errors import ProviderError
from virtual_ta.rag.generator import (
    INSUFFICIENT_INFORMATION,
    AnswerGenerator,
    build_prompts,
    extract_links,
    fallback_answer,
)
from virtual_ta.rag.providers import CompletionOptions
from virtual_ta.rag.retriever import EvidenceEntry
from virtual_ta.rag.rules import DEFAULT_RULES, FallbackRule, match_rule


def _course(n: int = 1, text: str = "Course body") -> EvidenceEntry:
    return EvidenceEntry(text=text, url=f"https://tds/{n}", title=f"Lecture {n}", variant=ContentVariant.COURSE)


def _forum(n: int = 1, text: str = "Forum body") -> EvidenceEntry:
    return EvidenceEntry(text=text, url=f"https://forum/t/{n}", title=f"Thread {n}", variant=ContentVariant.FORUM)


# ------------------------------------------------------------------
# Rule table
# ------------------------------------------------------------------


def test_docker_podman_rule():
    rule = match_rule("Should I use Docker or Podman for this course?")
    assert rule is not None
    assert rule.name == "docker-podman"
    assert "Podman" in rule.answer


def test_gpt_rule_needs_model_mention():
    assert match_rule("Which GPT model, gpt-4o-mini or gpt-3.5?").name == "gpt-model-choice"
    assert match_rule("Is GPT allowed?") is None


def test_ga4_bonus_rule():
    assert match_rule("If I get 10/10 on GA4 plus bonus, what shows on the dashboard?").name == (
        "ga4-bonus-dashboard"
    )


def test_exam_date_rule():
    assert match_rule("When is the TDS Sep 2025 end-term exam?").name == "future-exam-date"


def test_first_match_wins():
    rules = (
        FallbackRule(name="first", all_of=("docker",), answer="one"),
        FallbackRule(name="second", all_of=("docker", "podman"), answer="two"),
    )
    assert match_rule("docker and podman", rules).name == "first"


def test_default_rules_order():
    assert [r.name for r in DEFAULT_RULES] == [
        "gpt-model-choice",
        "ga4-bonus-dashboard",
        "docker-podman",
        "future-exam-date",
    ]


# ------------------------------------------------------------------
# fallback_answer
# ------------------------------------------------------------------


def test_fallback_is_deterministic():
    question = "Docker vs Podman?"
    assert fallback_answer(question, []) == fallback_answer(question, [_course()])


def test_fallback_uses_first_evidence_excerpt():
    text = "x" * 400
    answer = fallback_answer("unmatched question", [_course(text=text), _forum(text="other")])
    assert answer.startswith("Based on the course materials, here's what I found: " + "x" * 300 + "...")
    assert "x" * 301 not in answer
    assert answer.endswith("Please refer to the linked resources for more detailed information.")


def test_fallback_without_evidence():
    assert fallback_answer("unmatched question", []) == INSUFFICIENT_INFORMATION


# ------------------------------------------------------------------
# Prompts
# ------------------------------------------------------------------


def test_build_prompts_renders_evidence_in_order():
    system, user = build_prompts("How?", [_course(1, "C text"), _forum(2, "F text")])
    assert "[COURSE] Lecture 1: C text\n\n[FORUM] Thread 2: F text" in system
    assert system.index("[COURSE]") < system.index("[FORUM]")
    assert user.startswith("Student question: How?")
    assert "Image context" not in system


def test_build_prompts_includes_image_context():
    system, _ = build_prompts("How?", [], image_description="A stack trace")
    assert system.endswith("Image context: A stack trace")


# ------------------------------------------------------------------
# extract_links
# ------------------------------------------------------------------


def test_links_forum_only_in_order_capped():
    evidence = [_course(1), _forum(1), _course(2), _forum(2), _forum(3), _forum(4)]
    links = extract_links(evidence, limit=3)
    assert links == [
        {"url": "https://forum/t/1", "text": "Thread 1"},
        {"url": "https://forum/t/2", "text": "Thread 2"},
        {"url": "https://forum/t/3", "text": "Thread 3"},
    ]


def test_links_empty_when_no_forum():
    assert extract_links([_course(1), _course(2)]) == []


# ------------------------------------------------------------------
# AnswerGenerator
# ------------------------------------------------------------------


def test_generator_falls_back_without_credentials():
    chat = MagicMock()
    gen = AnswerGenerator(CompletionOptions(model="openai/gpt-4o-mini"), chat=chat)
    result = gen.generate("unmatched", [])
    assert result.answer == INSUFFICIENT_INFORMATION
    assert result.links == []
    chat.complete.assert_not_called()


def test_generator_uses_chat_with_credentials(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    chat = MagicMock()
    chat.complete.return_value = "Model answer"
    opts = CompletionOptions(model="openai/gpt-4o-mini", temperature=0.2)
    result = AnswerGenerator(opts, chat=chat).generate("How?", [_forum(1)])
    assert result.answer == "Model answer"
    assert result.links == [{"url": "https://forum/t/1", "text": "Thread 1"}]
    system_prompt, user_prompt, passed_opts = chat.complete.call_args.args
    assert "[FORUM] Thread 1: Forum body" in system_prompt
    assert "How?" in user_prompt
    assert passed_opts is opts


def test_generator_offline_argument_forces_fallback(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    chat = MagicMock()
    result = AnswerGenerator(chat=chat).generate("docker or podman", [], offline=True)
    assert "Podman" in result.answer
    chat.complete.assert_not_called()


def test_generator_offline_config_forces_fallback(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    chat = MagicMock()
    AnswerGenerator(chat=chat, offline=True).generate("q", [])
    chat.complete.assert_not_called()


def test_generator_propagates_provider_error(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    chat = MagicMock()
    chat.complete.side_effect = ProviderError("timeout")
    with pytest.raises(ProviderError):
        AnswerGenerator(chat=chat).generate("q", [])


def test_generator_respects_max_links():
    gen = AnswerGenerator(chat=MagicMock(), max_links=1)
    result = gen.generate("q", [_forum(1), _forum(2)])
    assert len(result.links) == 1


def test_answer_to_dict():
    gen = AnswerGenerator(chat=MagicMock())
    result = gen.generate("unmatched", [_forum(1)])
    assert result.to_dict() == {
        "answer": result.answer,
        "links": [{"url": "https://forum/t/1", "text": "Thread 1"}],
    }
