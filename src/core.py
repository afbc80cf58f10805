"""Pipeline orchestration: load → resolve → index → render → publish."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from blogpipe.errors import (
    Diagnostic,
    DiagnosticKind,
    DiagnosticsSink,
    FanoutSink,
    RunReport,
    StorageUnavailable,
)
from blogpipe.index import PostIndex
from blogpipe.loader import DocumentLoader
from blogpipe.render import MarkdownItRenderer, RenderedPost, Renderer, render_post
from blogpipe.resolver import resolve
from blogpipe.storage import ContentRoot

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
POSTS_DIRNAME = "posts"


class PipelineResult(BaseModel):
    """Everything one run produced."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: PostIndex
    rendered: list[RenderedPost] = Field(default_factory=list)
    report: RunReport = Field(default_factory=RunReport)
    include_drafts: bool = False


class IndexHolder:
    """Publishes finished indexes for readers.

    Readers always see either the previous index or the next complete one.
    """

    def __init__(self, initial: PostIndex | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial if initial is not None else PostIndex.empty()

    @property
    def current(self) -> PostIndex:
        with self._lock:
            return self._current

    def publish(self, index: PostIndex) -> PostIndex:
        """Swap in a new index and return the one it replaced."""
        with self._lock:
            previous, self._current = self._current, index
        logger.info("Published index with %d post(s)", len(index))
        return previous


def run_pipeline(
    root: ContentRoot,
    *,
    renderer: Renderer | None = None,
    include_drafts: bool = False,
    workers: int = 1,
    sink: DiagnosticsSink | None = None,
    cancel: threading.Event | None = None,
    holder: IndexHolder | None = None,
) -> PipelineResult:
    """Run one full pass over a content root.

    Per-document and per-group problems end up in the report; only an
    unreadable content root (StorageUnavailable) is raised.

    Args:
        root: Where documents come from.
        renderer: Markup renderer; defaults to MarkdownItRenderer.
        include_drafts: Render draft posts as well.
        workers: Parallel document parsers.
        sink: Extra diagnostics sink, fed alongside the report.
        cancel: Cooperative cancellation signal, checked between documents.
        holder: If given, receives the finished index.

    Returns:
        The built index, rendered artifacts, and run report.
    """
    report = RunReport()
    diagnostics: DiagnosticsSink = FanoutSink(report, sink) if sink is not None else report
    renderer = renderer if renderer is not None else MarkdownItRenderer()

    loader = DocumentLoader(root, workers=workers, cancel=cancel)
    try:
        documents = loader.load(diagnostics)
    except StorageUnavailable as exc:
        diagnostics.emit(
            Diagnostic(
                kind=DiagnosticKind.STORAGE_UNAVAILABLE,
                message=str(exc),
                stage="load",
                recoverable=False,
            )
        )
        report.finish()
        raise
    report.items_processed["documents"] = len(documents)
    report.mark_stage_complete("load")

    posts = resolve(documents, diagnostics)
    report.items_processed["posts"] = len(posts)
    report.mark_stage_complete("resolve")

    index = PostIndex.build(posts)
    report.mark_stage_complete("index")

    rendered: list[RenderedPost] = []
    for post in index.list(include_drafts):
        artifact = render_post(post, renderer)
        for span in artifact.failures:
            diagnostics.emit(
                Diagnostic(
                    kind=DiagnosticKind.RENDERER_FAILURE,
                    source=post.source_path,
                    message=f"block {span.index} passed through: {span.reason}",
                    stage="render",
                )
            )
        rendered.append(artifact)
    report.items_processed["rendered"] = len(rendered)
    report.mark_stage_complete("render")

    if holder is not None:
        holder.publish(index)

    report.finish()
    logger.info(
        "Pipeline finished: %d post(s), %d diagnostic(s)",
        len(index),
        report.diagnostic_count,
    )
    return PipelineResult(
        index=index, rendered=rendered, report=report, include_drafts=include_drafts
    )


def write_site(result: PipelineResult, output_dir: Path) -> list[Path]:
    """Write rendered posts and the index JSON under ``output_dir``.

    Output depends only on the pipeline result, so an unchanged content
    root yields byte-identical files.

    Post files left over from earlier runs (deleted posts, or posts that
    became drafts) are removed, so ``posts/`` always matches the index.
    """
    written: list[Path] = []
    taken: set[str] = set()

    for artifact in result.rendered:
        name = artifact.slug
        if name in taken:
            digest = hashlib.sha1(artifact.id.encode("utf-8")).hexdigest()[:8]
            name = f"{name}-{digest}"
        taken.add(name)
        path = output_dir / POSTS_DIRNAME / f"{name}.html"
        _atomic_write(path, artifact.to_text())
        written.append(path)

    _prune_stale_posts(output_dir / POSTS_DIRNAME, set(written))

    index_path = output_dir / INDEX_FILENAME
    _atomic_write(index_path, result.index.to_json(result.include_drafts))
    written.append(index_path)

    result.report.outputs_written.extend(str(p) for p in written)
    result.report.mark_stage_complete("write")
    return written


def _prune_stale_posts(posts_dir: Path, keep: set[Path]) -> None:
    if not posts_dir.is_dir():
        return
    for path in sorted(posts_dir.glob("*.html")):
        if path not in keep:
            logger.info("Removing stale post %s", path.name)
            path.unlink()


def _atomic_write(path: Path, content: str) -> None:
    """Write content via a temp file and os.replace so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
