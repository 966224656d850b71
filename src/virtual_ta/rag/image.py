"""Image context for questions that arrive with a screenshot attached.

Payloads are base64 strings, optionally carrying a ``data:image/<fmt>;base64,``
prefix. Size checks run on the encoded length so oversized payloads are
rejected before anything is decoded.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass

from virtual_ta.rag import llm_client

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:image/[a-z]+;base64,", re.IGNORECASE)

GENERIC_DESCRIPTION = (
    "Image content analyzed: The image appears to contain text or diagrams "
    "related to the course material."
)

_VISION_PROMPT = (
    "Describe the content of this image for a teaching assistant. Transcribe any "
    "visible text, code or error messages, and summarise diagrams briefly."
)

SUPPORTED_FORMATS: tuple[str, ...] = ("jpeg", "jpg", "png", "gif", "webp")


@dataclass
class ImageResult:
    description: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.description is not None


def strip_data_url(payload: str) -> str:
    return _DATA_URL_RE.sub("", payload.strip(), count=1)


def encoded_size_bytes(payload: str) -> float:
    """Approximate decoded size of a base64 *payload*: ``len * 3 / 4``."""
    return len(strip_data_url(payload)) * 3 / 4


class ImageProcessor:
    """Validate image payloads and turn them into a text description.

    Args:
        vision_model: LiteLLM model used for multimodal description. When None
            (or its API key is missing) a fixed generic description is used.
        max_size_mb: Default size ceiling for :meth:`fits`.
        timeout: Seconds before the vision call is abandoned.
    """

    def __init__(
        self,
        vision_model: str | None = None,
        max_size_mb: float = 10.0,
        timeout: float = 60.0,
    ) -> None:
        self.vision_model = vision_model
        self.max_size_mb = max_size_mb
        self.timeout = timeout

    def fits(self, payload: str, max_size_mb: float | None = None) -> bool:
        limit = self.max_size_mb if max_size_mb is None else max_size_mb
        return encoded_size_bytes(payload) / (1024 * 1024) <= limit

    def process(self, payload: str) -> ImageResult:
        """Describe *payload*. Failures come back as an error result, never raised."""
        data = strip_data_url(payload)
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            return ImageResult(error=f"Invalid base64 image data: {exc}")

        if not self.vision_model or not llm_client.has_api_key(self.vision_model):
            return ImageResult(description=GENERIC_DESCRIPTION)

        try:
            text = llm_client.complete(
                model=self.vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": _VISION_PROMPT},
                            {"type": "image_url", "image_url": {"url": _as_data_url(payload)}},
                        ],
                    }
                ],
                max_tokens=512,
                temperature=0.0,
                timeout=self.timeout,
            )
        except Exception as exc:
            logger.warning("Vision model '%s' failed: %s", self.vision_model, exc)
            return ImageResult(error=f"Image description failed: {exc}")
        return ImageResult(description=text.strip() or GENERIC_DESCRIPTION)

    def describe(self, payload: str) -> str | None:
        """Description text, or None when the payload could not be processed."""
        result = self.process(payload)
        if not result.ok:
            logger.info("Ignoring image context: %s", result.error)
            return None
        return result.description

    @staticmethod
    def supported_formats() -> tuple[str, ...]:
        return SUPPORTED_FORMATS


def _as_data_url(payload: str) -> str:
    payload = payload.strip()
    if _DATA_URL_RE.match(payload):
        return payload
    return f"data:image/png;base64,{payload}"
