"""Error taxonomy and structured diagnostics for pipeline runs."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

REPORT_FILENAME = ".blogpipe-last-run.json"


class BlogPipeError(Exception):
    """Base class for pipeline errors."""


class MalformedMetadata(BlogPipeError):
    """A document's front matter is missing required fields or is invalid."""

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class RendererFailure(BlogPipeError):
    """The renderer could not handle a span of markup."""


class StorageUnavailable(BlogPipeError):
    """The content root cannot be enumerated. Fatal for the run."""


class PostNotFound(BlogPipeError, KeyError):
    """No post with the requested id exists in the index."""

    def __str__(self) -> str:
        return f"post not found: {self.args[0]}" if self.args else "post not found"


class DuplicatePostError(BlogPipeError):
    """Two posts with the same id were offered to one index."""


class PipelineCancelled(BlogPipeError):
    """The run was cancelled between documents."""


class DiagnosticKind(StrEnum):
    MALFORMED_METADATA = "malformed_metadata"
    UNREADABLE_DOCUMENT = "unreadable_document"
    DROPPED_POST = "dropped_post"
    RENDERER_FAILURE = "renderer_failure"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class Diagnostic(BaseModel):
    """A single problem captured during a pipeline run."""

    kind: DiagnosticKind
    source: str = ""
    message: str = ""
    stage: str = ""
    recoverable: bool = True


class DiagnosticsSink(Protocol):
    """Anything that accepts diagnostics as they are produced."""

    def emit(self, diagnostic: Diagnostic) -> None: ...


class LoggingSink:
    """Sink that logs every diagnostic at warning level."""

    def emit(self, diagnostic: Diagnostic) -> None:
        logger.warning(
            "%s [%s] %s: %s",
            diagnostic.stage or "pipeline",
            diagnostic.kind.value,
            diagnostic.source,
            diagnostic.message,
        )


class FanoutSink:
    """Forward each diagnostic to several sinks in order."""

    def __init__(self, *sinks: DiagnosticsSink) -> None:
        self._sinks = sinks

    def emit(self, diagnostic: Diagnostic) -> None:
        for sink in self._sinks:
            sink.emit(diagnostic)


class RunReport(BaseModel):
    """Summary report of a pipeline run. Doubles as a diagnostics sink."""

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    stages_completed: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    items_processed: dict[str, int] = Field(default_factory=dict)
    outputs_written: list[str] = Field(default_factory=list)

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def add_diagnostic(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        source: str = "",
        stage: str = "",
        recoverable: bool = True,
    ) -> None:
        """Record a diagnostic directly."""
        self.emit(
            Diagnostic(
                kind=kind,
                source=source,
                message=message,
                stage=stage,
                recoverable=recoverable,
            )
        )

    def mark_stage_complete(self, stage: str) -> None:
        """Record that a pipeline stage completed."""
        if stage not in self.stages_completed:
            self.stages_completed.append(stage)

    def finish(self) -> None:
        self.finished_at = datetime.now()

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    @property
    def success(self) -> bool:
        """True if no unrecoverable errors occurred."""
        return all(d.recoverable for d in self.diagnostics)

    @property
    def diagnostic_count(self) -> int:
        return len(self.diagnostics)

    def summary_text(self) -> str:
        """Human-readable summary of the pipeline run."""
        duration = ""
        if self.finished_at and self.started_at:
            secs = (self.finished_at - self.started_at).total_seconds()
            duration = f" in {secs:.1f}s" if secs < 60 else f" in {secs / 60:.1f}m"

        status = "completed" if self.success else "failed"
        lines = [f"Pipeline {status}{duration}"]

        if self.stages_completed:
            lines.append(f"Stages: {', '.join(self.stages_completed)}")

        if self.items_processed:
            parts = [f"{k}: {v}" for k, v in self.items_processed.items()]
            lines.append(f"Processed: {', '.join(parts)}")

        if self.outputs_written:
            lines.append(f"Outputs: {len(self.outputs_written)} files")

        if self.diagnostics:
            lines.append(f"Diagnostics: {len(self.diagnostics)}")
            for diag in self.diagnostics[:5]:
                prefix = "[recoverable]" if diag.recoverable else "[FATAL]"
                lines.append(f"  {prefix} {diag.kind.value} {diag.source}: {diag.message}")
            if len(self.diagnostics) > 5:
                lines.append(f"  ... and {len(self.diagnostics) - 5} more")

        return "\n".join(lines)


def save_report(report: RunReport, output_dir: Path) -> Path:
    """Save the run report next to the generated site."""
    report_path = output_dir / REPORT_FILENAME
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    return report_path


def load_report(output_dir: Path) -> RunReport | None:
    """Load the last run report from disk."""
    report_path = output_dir / REPORT_FILENAME
    if not report_path.exists():
        return None
    try:
        data = json.loads(report_path.read_text(encoding="utf-8"))
        return RunReport.model_validate(data)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Corrupt report at %s", report_path)
        return None
