"""Content pipeline for a personal blog.

Loads markdown documents with front matter, resolves duplicate and draft
revisions to one canonical post each, indexes them, and renders them.
"""

from blogpipe.core import IndexHolder, PipelineResult, run_pipeline, write_site
from blogpipe.errors import (
    Diagnostic,
    DiagnosticKind,
    MalformedMetadata,
    PostNotFound,
    RendererFailure,
    RunReport,
    StorageUnavailable,
)
from blogpipe.index import PostIndex
from blogpipe.models import FrontMatter, Post, RawDocument
from blogpipe.render import MarkdownItRenderer, RenderedPost, render_post
from blogpipe.storage import FilesystemContentRoot, MemoryContentRoot

__version__ = "0.1.0"

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "FilesystemContentRoot",
    "FrontMatter",
    "IndexHolder",
    "MalformedMetadata",
    "MarkdownItRenderer",
    "MemoryContentRoot",
    "PipelineResult",
    "Post",
    "PostIndex",
    "PostNotFound",
    "RawDocument",
    "RenderedPost",
    "RendererFailure",
    "RunReport",
    "StorageUnavailable",
    "render_post",
    "run_pipeline",
    "write_site",
]
