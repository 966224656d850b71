"""Content record loader: JSON or YAML files of course pages and forum posts.

Accepted shapes:
- a list of records ``[{...}, {...}]``
- a mapping with a ``records`` list ``{records: [...]}``

Each record needs ``type`` (course|forum), ``title``, ``url`` and either
``body`` (plain text) or ``html`` (converted with html2text). ``url`` must be
an absolute http(s) URL. Forum records also need ``post_id``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import html2text
import yaml
from bs4 import BeautifulSoup
from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as UrlError

from virtual_ta.db.models import ContentItem, ContentVariant
from virtual_ta.errors import ValidationError

_YAML_SUFFIXES = {".yaml", ".yml"}
_HTTP_URL = TypeAdapter(AnyHttpUrl)

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


def html_to_text(html: str) -> str:
    """Strip non-content tags, then convert *html* to plain text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def load_records(path: Path) -> list[ContentItem]:
    """Read *path* (JSON or YAML) and return the content items it describes.

    Raises:
        ValidationError: If the file cannot be parsed or a record is malformed.
    """
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValidationError(f"Could not parse '{path.name}': {exc}") from exc
    return parse_records(data)


def parse_records(data: Any) -> list[ContentItem]:
    """Convert already-decoded record data into content items."""
    if isinstance(data, dict) and "records" in data:
        data = data["records"]
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValidationError("Expected a list of records")
    return [_to_item(i, raw) for i, raw in enumerate(data)]


def _to_item(index: int, raw: Any) -> ContentItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"Record {index}: expected a mapping, got {type(raw).__name__}")

    try:
        variant = ContentVariant(str(raw.get("type", "")).lower())
    except ValueError:
        raise ValidationError(
            f"Record {index}: 'type' must be 'course' or 'forum', got {raw.get('type')!r}"
        ) from None

    for key in ("title", "url"):
        if not str(raw.get(key) or "").strip():
            raise ValidationError(f"Record {index}: missing '{key}'")

    try:
        _HTTP_URL.validate_python(str(raw["url"]).strip())
    except UrlError:
        raise ValidationError(f"Record {index}: 'url' must be an http(s) URL") from None

    if raw.get("body") is not None:
        body = str(raw["body"]).strip()
    elif raw.get("html") is not None:
        body = html_to_text(str(raw["html"]))
    else:
        raise ValidationError(f"Record {index}: needs 'body' or 'html'")
    if not body:
        raise ValidationError(f"Record {index}: body is empty")

    metadata = raw.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValidationError(f"Record {index}: 'metadata' must be a mapping")

    external_id: int | None = None
    author: str | None = None
    if variant is ContentVariant.FORUM:
        try:
            external_id = int(raw["post_id"])
        except KeyError:
            raise ValidationError(f"Record {index}: forum records need 'post_id'") from None
        except (TypeError, ValueError):
            raise ValidationError(
                f"Record {index}: 'post_id' must be an integer, got {raw['post_id']!r}"
            ) from None
        author = str(raw["author"]) if raw.get("author") is not None else None

    created_at = raw.get("created_at")
    return ContentItem(
        variant=variant,
        title=str(raw["title"]).strip(),
        body=body,
        url=str(raw["url"]).strip(),
        category=str(raw.get("category") or ""),
        external_id=external_id,
        author=author,
        created_at=str(created_at) if created_at is not None else None,
        metadata=json.dumps(metadata, ensure_ascii=False, default=str),
    )
