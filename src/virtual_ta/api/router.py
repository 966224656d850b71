"""FastAPI endpoints for the answer pipeline.

POST /api           - Answer a question (optionally with an image)
GET  /api/metrics   - Question metrics and index statistics
GET  /api/questions - Recent question log entries
GET  /api/config    - Config-store entries
POST /api/config    - Upsert a config-store entry
POST /api/reindex   - Rebuild all embeddings (409 while one is running)

Each request gets its own SQLite connection; the endpoints are plain ``def``
so FastAPI runs the blocking provider calls in its threadpool.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from virtual_ta.api.schemas import (
    AnswerResponse,
    ConfigEntryOut,
    ConfigUpdate,
    MetricsResponse,
    QuestionOut,
    QuestionRequest,
    ReindexResponse,
)
from virtual_ta.config import STORE_KEYS, ConfigError, VirtualTAConfig, apply_store_overrides
from virtual_ta.db.connection import Database
from virtual_ta.db.repository import Repository
from virtual_ta.db.schema import initialize
from virtual_ta.errors import ProviderError, ReindexInProgressError, ValidationError
from virtual_ta.rag.index import EmbeddingIndex
from virtual_ta.rag.outcomes import OutcomeLogger
from virtual_ta.rag.pipeline import build_pipeline
from virtual_ta.rag.providers import make_embedder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["qa"])


def get_repo(request: Request) -> Iterator[Repository]:
    """Open a connection for the duration of one request."""
    db_path: Path | str = request.app.state.db_path
    conn = Database(db_path).connect()
    try:
        initialize(conn)
        yield Repository(conn)
    finally:
        conn.close()


def effective_config(request: Request, repo: Repository) -> VirtualTAConfig:
    """Base config from app state with config-store entries applied."""
    cfg = copy.deepcopy(request.app.state.config)
    try:
        return apply_store_overrides(cfg, {e.key: e.value for e in repo.list_config()})
    except ConfigError as exc:
        logger.error("Invalid config-store entry: %s", exc)
        raise HTTPException(status_code=500, detail=f"Invalid configuration: {exc}") from exc


@router.post("", response_model=AnswerResponse)
def answer_question(
    body: QuestionRequest,
    request: Request,
    repo: Repository = Depends(get_repo),
):
    """Answer a student question from course material and forum posts."""
    cfg = effective_config(request, repo)
    pipeline = build_pipeline(repo, cfg, latency=request.app.state.latency)
    try:
        result = pipeline.answer(body.question, image=body.image)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Unhandled error while answering")
        raise HTTPException(status_code=500, detail="Internal server error") from exc
    return AnswerResponse(**result.to_dict())


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(request: Request, repo: Repository = Depends(get_repo)):
    """Question metrics plus embedding index statistics."""
    metrics = OutcomeLogger(repo).metrics()
    stats = EmbeddingIndex(repo, latency=request.app.state.latency).stats()
    return MetricsResponse(**metrics.to_dict(), **stats.to_dict())


@router.get("/questions", response_model=list[QuestionOut])
def list_questions(
    limit: int = Query(default=50, ge=1, le=1000),
    repo: Repository = Depends(get_repo),
):
    """Most recent questions, newest first."""
    return [
        QuestionOut(
            id=r.id,
            question=r.question,
            answer=r.answer,
            links=r.links,
            has_image=r.has_image,
            response_time=r.response_time,
            success=r.success,
            error_message=r.error_message,
            created_at=r.created_at,
        )
        for r in OutcomeLogger(repo).recent(limit)
    ]


@router.get("/config", response_model=list[ConfigEntryOut])
def list_config(repo: Repository = Depends(get_repo)):
    return [
        ConfigEntryOut(
            key=e.key, value=e.value, description=e.description, updated_at=e.updated_at
        )
        for e in repo.list_config()
    ]


@router.post("/config", response_model=ConfigEntryOut)
def update_config(
    body: ConfigUpdate,
    request: Request,
    repo: Repository = Depends(get_repo),
):
    """Upsert a config-store entry. Known keys are validated first."""
    if body.key in STORE_KEYS:
        try:
            apply_store_overrides(copy.deepcopy(request.app.state.config), {body.key: body.value})
        except ConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    repo.set_config(body.key, body.value, body.description or STORE_KEYS.get(body.key))
    entry = next(e for e in repo.list_config() if e.key == body.key)
    return ConfigEntryOut(
        key=entry.key, value=entry.value, description=entry.description, updated_at=entry.updated_at
    )


@router.post("/reindex", response_model=ReindexResponse)
def trigger_reindex(request: Request, repo: Repository = Depends(get_repo)):
    """Re-embed all content and swap the new index generation in."""
    cfg = effective_config(request, repo)
    index = EmbeddingIndex(repo, dimensions=cfg.embedding.dimensions)
    try:
        result = index.reindex(make_embedder(cfg.embedding))
    except ReindexInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ReindexResponse(embedded=result.embedded, failed=result.failed)
