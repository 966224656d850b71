"""Request and response models for the HTTP API."""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, AnyHttpUrl, BaseModel, Field, TypeAdapter

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def _check_http_url(value: str) -> str:
    # Validate only; the stored string is returned unnormalised.
    _HTTP_URL.validate_python(value)
    return value


HttpUrlStr = Annotated[str, AfterValidator(_check_http_url)]


class QuestionRequest(BaseModel):
    question: str
    image: Optional[str] = Field(default=None, description="Base64 image, optionally a data URL")


class LinkOut(BaseModel):
    url: HttpUrlStr
    text: str


class AnswerResponse(BaseModel):
    answer: str
    links: list[LinkOut] = Field(default_factory=list)


class MetricsResponse(BaseModel):
    total_questions: int
    successful_questions: int
    success_rate: float
    avg_response_time: float
    questions_today: int
    total_embeddings: int
    course_embeddings: int
    forum_embeddings: int
    avg_query_time: float


class QuestionOut(BaseModel):
    id: int
    question: str
    answer: Optional[str] = None
    links: Optional[list[LinkOut]] = None
    has_image: bool
    response_time: Optional[float] = None
    success: bool
    error_message: Optional[str] = None
    created_at: str


class ConfigEntryOut(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[str] = None


class ConfigUpdate(BaseModel):
    key: str = Field(min_length=1)
    value: str
    description: Optional[str] = None


class ReindexResponse(BaseModel):
    embedded: int
    failed: int
