"""Core data models for the content pipeline.

``FrontMatter`` holds the typed header of a document, ``RawDocument`` is a
loaded file before revision resolution, and ``Post`` is the canonical
revision selected for a logical key.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_FIELDS = ("title", "date")

_WHITESPACE_RE = re.compile(r"\s+")


class FrontMatter(BaseModel):
    """Typed front-matter fields. Unknown keys are kept in ``extra``."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    date: datetime | None = None
    draft: bool = False
    tags: list[str] = Field(default_factory=list)
    summary: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def missing_fields(self) -> list[str]:
        """Required fields that are absent or blank."""
        missing: list[str] = []
        if not self.title or not self.title.strip():
            missing.append("title")
        if self.date is None:
            missing.append("date")
        return missing


class RawDocument(BaseModel):
    """A document as read from the content root."""

    model_config = ConfigDict(frozen=True)

    source_path: str
    metadata: FrontMatter = Field(default_factory=FrontMatter)
    body: str = ""
    position: int = 0
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None and not self.metadata.missing_fields

    @property
    def logical_key(self) -> str:
        """Identity shared by every revision of the same post."""
        if self.is_valid:
            return title_date_key(self.metadata.title or "", self.metadata.date)
        return path_key(self.source_path)


class Post(BaseModel):
    """Canonical revision of a logical post."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    published_at: datetime
    draft: bool = False
    body: str = ""
    revision_rank: int = 0
    source_path: str = ""
    tags: list[str] = Field(default_factory=list)
    summary: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, doc: RawDocument, *, revision_rank: int = 0) -> Post:
        """Promote a validated document to a canonical post."""
        meta = doc.metadata
        if meta.title is None or meta.date is None:
            raise ValueError(f"{doc.source_path} is missing required metadata")
        return cls(
            id=doc.logical_key,
            title=meta.title.strip(),
            published_at=meta.date,
            draft=meta.draft,
            body=doc.body,
            revision_rank=revision_rank,
            source_path=doc.source_path,
            tags=list(meta.tags),
            summary=meta.summary,
            extra=dict(meta.extra),
        )


def repair_mojibake(text: str) -> str:
    """Undo UTF-8 text that was decoded as cp1252 or latin-1.

    Returns the input unchanged unless the round trip decodes cleanly.
    """
    for codec in ("cp1252", "latin-1"):
        try:
            repaired = text.encode(codec).decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
        if repaired != text:
            return repaired
    return text


def normalize_title(title: str) -> str:
    """Normalise a title for grouping: repair, NFKC, casefold, squash spaces."""
    text = unicodedata.normalize("NFKC", repair_mojibake(title))
    return _WHITESPACE_RE.sub(" ", text.casefold()).strip()


def title_date_key(title: str, date: datetime | None) -> str:
    stamp = date.isoformat() if date is not None else ""
    return f"{stamp}::{normalize_title(title)}"


def path_key(source_path: str) -> str:
    return f"path::{source_path}"
