"""Answer generation: LLM-backed synthesis with a deterministic offline fallback.

System prompt structure:
  {preamble}                     ← fixed teaching-assistant instructions
  Current context from course materials and previous discussions:
  [COURSE] {title}: {body}       ← one block per evidence entry, in order
  [FORUM] {title}: {body}
  Image context: {description}   ← only when an image was described

The fallback responder is used when the configured model has no credentials
or offline mode is requested. Links always come from forum evidence only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from virtual_ta.db.models import ContentVariant
from virtual_ta.rag import llm_client
from virtual_ta.rag.providers import ChatProvider, CompletionOptions, LiteLLMChat
from virtual_ta.rag.retriever import EvidenceEntry
from virtual_ta.rag.rules import DEFAULT_RULES, FallbackRule, match_rule

logger = logging.getLogger(__name__)

_PREAMBLE = (
    "You are a helpful Teaching Assistant for the Tools in Data Science (TDS) course "
    "at IIT Madras. You provide accurate, helpful answers to student questions based "
    "on course content and previous discussions.\n"
    "\n"
    "Guidelines:\n"
    "- Be concise but comprehensive\n"
    "- Reference specific course materials when relevant\n"
    "- If you don't know something, say so clearly\n"
    "- Focus on practical, actionable advice\n"
    "- Maintain a supportive, educational tone"
)

_EXCERPT_CHARS = 300

INSUFFICIENT_INFORMATION = (
    "I don't have specific information about that topic in my current knowledge base. "
    "Please check the course materials or post your question on the discussion forum "
    "for assistance from instructors."
)


@dataclass
class Answer:
    answer: str
    links: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"answer": self.answer, "links": [dict(link) for link in self.links]}


class AnswerGenerator:
    """Turn a question plus evidence into an :class:`Answer`.

    Args:
        options: Model id, temperature, max tokens and timeout for the chat call.
        chat: Chat provider (LiteLLM by default).
        offline: Always use the rule-based fallback.
        max_links: Maximum number of forum links returned.
        rules: Ordered fallback rule table.
    """

    def __init__(
        self,
        options: CompletionOptions | None = None,
        chat: ChatProvider | None = None,
        offline: bool = False,
        max_links: int = 3,
        rules: tuple[FallbackRule, ...] = DEFAULT_RULES,
    ) -> None:
        self.options = options or CompletionOptions()
        self.chat = chat or LiteLLMChat()
        self.offline = offline
        self.max_links = max_links
        self.rules = rules

    def generate(
        self,
        question: str,
        evidence: list[EvidenceEntry],
        image_description: str | None = None,
        offline: bool = False,
    ) -> Answer:
        """Answer *question* from *evidence*.

        Raises:
            ProviderError: If the chat provider call fails.
        """
        if self.use_fallback(offline):
            text = fallback_answer(question, evidence, self.rules)
        else:
            system_prompt, user_prompt = build_prompts(question, evidence, image_description)
            text = self.chat.complete(system_prompt, user_prompt, self.options)
        return Answer(answer=text, links=extract_links(evidence, self.max_links))

    def use_fallback(self, offline: bool = False) -> bool:
        if offline or self.offline:
            return True
        if not llm_client.has_api_key(self.options.model):
            logger.info(
                "No credentials for '%s'; answering with the rule-based fallback",
                self.options.model,
            )
            return True
        return False


def render_evidence(entry: EvidenceEntry) -> str:
    if entry.variant is ContentVariant.COURSE or entry.variant is ContentVariant.FORUM:
        return f"[{entry.variant.label}] {entry.title}: {entry.text}"
    raise ValueError(f"Unknown content variant: {entry.variant!r}")


def build_prompts(
    question: str,
    evidence: list[EvidenceEntry],
    image_description: str | None = None,
) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for the chat call."""
    context = "\n\n".join(render_evidence(e) for e in evidence)
    parts = [
        _PREAMBLE,
        "Current context from course materials and previous discussions:\n" + context,
    ]
    if image_description:
        parts.append(f"Image context: {image_description}")
    system_prompt = "\n\n".join(parts)
    user_prompt = (
        f"Student question: {question}\n\n"
        "Please provide a helpful answer based on the context provided above."
    )
    return system_prompt, user_prompt


def fallback_answer(
    question: str,
    evidence: list[EvidenceEntry],
    rules: tuple[FallbackRule, ...] = DEFAULT_RULES,
) -> str:
    """Deterministic offline answer: rule table, then top evidence excerpt, then a fixed notice."""
    rule = match_rule(question, rules)
    if rule is not None:
        return rule.answer
    if evidence:
        excerpt = evidence[0].text[:_EXCERPT_CHARS]
        return (
            f"Based on the course materials, here's what I found: {excerpt}... "
            "Please refer to the linked resources for more detailed information."
        )
    return INSUFFICIENT_INFORMATION


def extract_links(evidence: list[EvidenceEntry], limit: int = 3) -> list[dict[str, str]]:
    """Forum evidence only, in evidence order, capped at *limit*."""
    links: list[dict[str, str]] = []
    for entry in evidence:
        if entry.variant is ContentVariant.COURSE:
            continue
        if entry.variant is not ContentVariant.FORUM:
            raise ValueError(f"Unknown content variant: {entry.variant!r}")
        if len(links) >= limit:
            break
        links.append({"url": entry.url, "text": entry.title})
    return links
