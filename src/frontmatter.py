"""Front-matter parsing for markdown documents.

A header block must open on the first non-empty line with ``---`` (YAML)
or ``+++`` (TOML) and close with the same delimiter. Documents without a
header are valid fragments: their metadata is empty and the whole text is
the body.
"""

from __future__ import annotations

import tomllib
from datetime import UTC, date, datetime, time
from typing import Any

import yaml

from blogpipe.errors import MalformedMetadata
from blogpipe.models import FrontMatter

DELIMITERS = {"---": "yaml", "+++": "toml"}

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def split_front_matter(text: str) -> tuple[str | None, str | None, str]:
    """Split text into ``(header, format, body)``.

    Returns ``(None, None, text)`` when there is no header block.

    Raises:
        MalformedMetadata: If a header is opened but never closed.
    """
    text = text.removeprefix("\ufeff")
    lines = text.splitlines(keepends=True)

    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start == len(lines):
        return None, None, text

    delimiter = lines[start].strip()
    fmt = DELIMITERS.get(delimiter)
    if fmt is None:
        return None, None, text

    for end in range(start + 1, len(lines)):
        if lines[end].strip() == delimiter:
            header = "".join(lines[start + 1 : end])
            body = "".join(lines[end + 1 :])
            return header, fmt, body

    raise MalformedMetadata(f"unterminated {fmt} front matter (missing closing '{delimiter}')")


def parse_front_matter(text: str) -> tuple[FrontMatter, str]:
    """Parse a document into typed metadata and its remaining body.

    Raises:
        MalformedMetadata: If the header is unterminated, not a mapping,
            syntactically invalid, or holds badly typed known fields.
    """
    header, fmt, body = split_front_matter(text)
    if header is None:
        return FrontMatter(), body

    raw = _load_header(header, fmt)
    return _to_front_matter(raw), body


def require_fields(metadata: FrontMatter) -> None:
    """Raise MalformedMetadata if a required field is missing."""
    missing = metadata.missing_fields
    if missing:
        raise MalformedMetadata(
            f"missing required field(s): {', '.join(missing)}", missing=missing
        )


def _load_header(header: str, fmt: str | None) -> dict[str, Any]:
    if not header.strip():
        return {}
    try:
        if fmt == "toml":
            data = tomllib.loads(header)
        else:
            data = yaml.safe_load(header)
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise MalformedMetadata(f"invalid {fmt} front matter: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedMetadata(
            f"front matter is not a mapping (got {type(data).__name__})"
        )
    return {str(k): v for k, v in data.items()}


def _to_front_matter(raw: dict[str, Any]) -> FrontMatter:
    data = dict(raw)

    title = data.pop("title", None)
    if title is not None:
        title = str(title)

    stamp = data.pop("date", None)
    published = parse_timestamp(stamp) if stamp is not None else None

    draft_raw = data.pop("draft", None)
    draft = parse_bool(draft_raw, field="draft") if draft_raw is not None else False

    tags_raw = data.pop("tags", None)
    if tags_raw is None:
        tags: list[str] = []
    elif isinstance(tags_raw, str):
        tags = [t.strip() for t in tags_raw.split(",") if t.strip()]
    elif isinstance(tags_raw, list):
        tags = [str(t) for t in tags_raw]
    else:
        raise MalformedMetadata(f"tags must be a list or string, got {tags_raw!r}")

    summary = data.pop("summary", None)
    if summary is not None:
        summary = str(summary)

    return FrontMatter(
        title=title,
        date=published,
        draft=draft,
        tags=tags,
        summary=summary,
        extra=data,
    )


def parse_timestamp(value: Any) -> datetime:
    """Convert a header value to a timezone-aware UTC datetime.

    Naive values are taken as UTC; bare dates mean midnight.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            result = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedMetadata(f"invalid date: {value!r}") from exc
    else:
        raise MalformedMetadata(f"invalid date: {value!r}")

    if result.tzinfo is None:
        return result.replace(tzinfo=UTC)
    try:
        return result.astimezone(UTC)
    except (OverflowError, ValueError) as exc:
        raise MalformedMetadata(f"invalid date: {value!r}") from exc


def parse_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise MalformedMetadata(f"{field} must be a boolean, got {value!r}")
