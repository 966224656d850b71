"""Answer pipeline: validate → retrieve → describe image → generate → log.

Every request that passes validation produces exactly one QuestionRecord,
whether it succeeds or fails. Validation failures are rejected before any
retrieval and are not logged.
"""

from __future__ import annotations

import logging
import time

from virtual_ta.config import VirtualTAConfig
from virtual_ta.db.base import Store
from virtual_ta.errors import ValidationError
from virtual_ta.rag.generator import Answer, AnswerGenerator
from virtual_ta.rag.image import ImageProcessor
from virtual_ta.rag.index import EmbeddingIndex, LatencyTracker
from virtual_ta.rag.outcomes import OutcomeLogger
from virtual_ta.rag.providers import CompletionOptions, EmbeddingProvider, make_embedder
from virtual_ta.rag.retriever import RetrieverConfig, find_evidence

logger = logging.getLogger(__name__)


class QAPipeline:
    """Answers questions against a store.

    Args:
        store: Content, embeddings and question log.
        index: Embedding index over *store*.
        embedder: Provider used to embed the question.
        generator: Answer generator (LLM or fallback).
        outcomes: Question outcome logger.
        images: Image payload processor.
        retrieval: Retrieval channel limits.
    """

    def __init__(
        self,
        store: Store,
        index: EmbeddingIndex,
        embedder: EmbeddingProvider,
        generator: AnswerGenerator,
        outcomes: OutcomeLogger,
        images: ImageProcessor | None = None,
        retrieval: RetrieverConfig | None = None,
    ) -> None:
        self.store = store
        self.index = index
        self.embedder = embedder
        self.generator = generator
        self.outcomes = outcomes
        self.images = images or ImageProcessor()
        self.retrieval = retrieval or RetrieverConfig()

    def validate(self, question: str, image: str | None = None) -> None:
        """Raise ValidationError for an empty question or an oversized image."""
        if not question or not question.strip():
            raise ValidationError("Question is required")
        if image is not None and not self.images.fits(image):
            raise ValidationError(
                f"Image is too large (limit {self.images.max_size_mb:g} MB)"
            )

    def answer(self, question: str, image: str | None = None, offline: bool = False) -> Answer:
        """Answer *question*, optionally with a base64 *image* for context.

        Raises:
            ValidationError: Before any work, for invalid input.
            ProviderError: If the chat provider fails (the failure is logged).
        """
        self.validate(question, image)
        has_image = bool(image)
        started = time.perf_counter()
        try:
            evidence = find_evidence(
                question, self.store, self.index, self.embedder, self.retrieval
            )
            image_description = self.images.describe(image) if image else None
            result = self.generator.generate(
                question, evidence, image_description=image_description, offline=offline
            )
        except Exception as exc:
            elapsed = time.perf_counter() - started
            logger.error("Answer pipeline failed after %.2fs: %s", elapsed, exc)
            self.outcomes.record(
                question,
                answer=None,
                links=None,
                has_image=has_image,
                elapsed=elapsed,
                success=False,
                error=str(exc),
            )
            raise

        elapsed = time.perf_counter() - started
        self.outcomes.record(
            question,
            answer=result.answer,
            links=result.links,
            has_image=has_image,
            elapsed=elapsed,
            success=True,
        )
        logger.info(
            "Answered in %.2fs with %d evidence entries, %d links",
            elapsed,
            len(evidence),
            len(result.links),
        )
        return result


def build_pipeline(
    store: Store,
    cfg: VirtualTAConfig,
    latency: LatencyTracker | None = None,
) -> QAPipeline:
    """Wire a :class:`QAPipeline` from configuration.

    Args:
        store: Open store (config-store overrides should already be applied to *cfg*).
        cfg: Merged configuration.
        latency: Shared search-latency tracker, so stats survive across requests.
    """
    embedder = make_embedder(cfg.embedding)
    index = EmbeddingIndex(store, dimensions=cfg.embedding.dimensions, latency=latency)
    generator = AnswerGenerator(
        options=CompletionOptions(
            model=cfg.generation.model,
            temperature=cfg.generation.temperature,
            max_tokens=cfg.generation.max_tokens,
            timeout=cfg.generation.timeout,
        ),
        offline=cfg.generation.offline,
        max_links=cfg.retrieval.max_links,
    )
    return QAPipeline(
        store=store,
        index=index,
        embedder=embedder,
        generator=generator,
        outcomes=OutcomeLogger(store),
        images=ImageProcessor(
            vision_model=cfg.image.vision_model,
            max_size_mb=cfg.image.max_size_mb,
            timeout=cfg.generation.timeout,
        ),
        retrieval=RetrieverConfig(
            vector_top_k=cfg.retrieval.vector_top_k,
            course_keyword_limit=cfg.retrieval.course_keyword_limit,
            forum_keyword_limit=cfg.retrieval.forum_keyword_limit,
            max_evidence=cfg.retrieval.max_evidence,
        ),
    )
