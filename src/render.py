"""Render canonical posts into finished artifacts.

Body conversion is delegated to a pluggable ``Renderer``. When the renderer
rejects a document, the body is retried block by block and any block that
still fails is passed through verbatim.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Protocol

import yaml
from markdown_it import MarkdownIt
from pydantic import BaseModel, ConfigDict, Field
from pymdownx.slugs import slugify

from blogpipe.errors import RendererFailure
from blogpipe.models import Post

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_SLUG_MAX_LEN = 60

_slugify_lower = slugify(case="lower")


class Renderer(Protocol):
    """Converts markup text to output text."""

    def render(self, markup: str) -> str: ...


class MarkdownItRenderer:
    """CommonMark renderer backed by markdown-it-py."""

    def __init__(self, *, html: bool = True) -> None:
        self._md = MarkdownIt("commonmark", {"html": html})

    def render(self, markup: str) -> str:
        try:
            return self._md.render(markup)
        except (ValueError, TypeError, IndexError, RecursionError) as exc:
            raise RendererFailure(str(exc)) from exc


class RenderFailureSpan(BaseModel):
    """A block the renderer could not convert."""

    model_config = ConfigDict(frozen=True)

    index: int
    text: str
    reason: str


class RenderedPost(BaseModel):
    """A post's metadata header plus its rendered content."""

    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    metadata: dict[str, Any]
    content: str
    failures: list[RenderFailureSpan] = Field(default_factory=list)

    def to_text(self) -> str:
        """Serialise as a YAML header followed by the content."""
        header = yaml.safe_dump(
            self.metadata, sort_keys=True, allow_unicode=True, default_flow_style=False
        )
        return f"---\n{header}---\n{self.content}"


def post_slug(post: Post) -> str:
    """File-name slug: publish date plus an ASCII form of the title."""
    ascii_title = (
        unicodedata.normalize("NFKD", post.title).encode("ascii", "ignore").decode("ascii")
    )
    words = _slugify_lower(ascii_title, sep="-").strip("-")
    if len(words) > _SLUG_MAX_LEN:
        words = words[:_SLUG_MAX_LEN].rstrip("-")
    return f"{post.published_at.date().isoformat()}-{words or 'post'}"


def post_header(post: Post) -> dict[str, Any]:
    """Structured metadata attached to a rendered post."""
    header: dict[str, Any] = {
        "id": post.id,
        "title": post.title,
        "date": post.published_at.isoformat(),
        "draft": post.draft,
        "revision_rank": post.revision_rank,
        "source": post.source_path,
    }
    if post.tags:
        header["tags"] = list(post.tags)
    if post.summary:
        header["summary"] = post.summary
    return header


def split_blocks(markup: str) -> list[str]:
    """Split markup on blank lines, keeping fenced code blocks whole."""
    blocks: list[str] = []
    current: list[str] = []
    fence: str | None = None

    for line in markup.splitlines():
        match = _FENCE_RE.match(line)
        if fence is None and match:
            fence = match.group(1)[0] * 3
        elif fence is not None and line.strip().startswith(fence):
            fence = None
            current.append(line)
            continue

        if fence is None and not line.strip():
            if current:
                blocks.append("\n".join(current))
                current = []
            continue
        current.append(line)

    if current:
        blocks.append("\n".join(current))
    return blocks


def render_body(markup: str, renderer: Renderer) -> tuple[str, list[RenderFailureSpan]]:
    """Render markup, degrading to per-block output on failure."""
    try:
        return renderer.render(markup), []
    except RendererFailure as exc:
        logger.debug("Whole-body render failed (%s); retrying per block", exc)

    parts: list[str] = []
    failures: list[RenderFailureSpan] = []
    for i, block in enumerate(split_blocks(markup)):
        try:
            parts.append(renderer.render(block))
        except RendererFailure as exc:
            failures.append(RenderFailureSpan(index=i, text=block, reason=str(exc)))
            parts.append(block + "\n")
    return "".join(parts), failures


def render_post(post: Post, renderer: Renderer) -> RenderedPost:
    """Render a canonical post. Same inputs always give the same artifact."""
    content, failures = render_body(post.body, renderer)
    if failures:
        logger.warning(
            "%d block(s) of %s passed through unrendered", len(failures), post.id
        )
    return RenderedPost(
        id=post.id,
        slug=post_slug(post),
        metadata=post_header(post),
        content=content,
        failures=failures,
    )
