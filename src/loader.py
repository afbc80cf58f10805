"""Document loading: content root -> parsed RawDocuments.

Each document is read and parsed on its own, so one unreadable file or one
broken header never stops the rest of the load.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor

from blogpipe.errors import (
    Diagnostic,
    DiagnosticKind,
    DiagnosticsSink,
    MalformedMetadata,
    PipelineCancelled,
)
from blogpipe.frontmatter import parse_front_matter, require_fields
from blogpipe.models import FrontMatter, RawDocument
from blogpipe.storage import ContentEntry, ContentRoot

logger = logging.getLogger(__name__)

STAGE = "load"


class LoadedDocument:
    """A parsed document, or the reason it could not be read."""

    __slots__ = ("document", "diagnostic")

    def __init__(
        self, document: RawDocument | None, diagnostic: Diagnostic | None = None
    ) -> None:
        self.document = document
        self.diagnostic = diagnostic


def parse_document(source_path: str, text: str, position: int = 0) -> RawDocument:
    """Parse one document's text into a RawDocument.

    Metadata problems are recorded on the document's ``error`` field rather
    than raised, so the resolver can still key the document by path.
    """
    try:
        metadata, body = parse_front_matter(text)
    except MalformedMetadata as exc:
        return RawDocument(
            source_path=source_path,
            metadata=FrontMatter(),
            body=text,
            position=position,
            error=str(exc),
        )

    try:
        require_fields(metadata)
    except MalformedMetadata as exc:
        return RawDocument(
            source_path=source_path,
            metadata=metadata,
            body=body,
            position=position,
            error=str(exc),
        )
    return RawDocument(
        source_path=source_path, metadata=metadata, body=body, position=position
    )


class DocumentLoader:
    """Enumerates a content root and parses every document.

    ``iter_documents`` re-reads the root on every call; nothing is cached
    between calls.
    """

    def __init__(
        self,
        root: ContentRoot,
        *,
        workers: int = 1,
        cancel: threading.Event | None = None,
    ) -> None:
        self.root = root
        self.workers = max(1, workers)
        self.cancel = cancel

    def iter_loaded(self) -> Iterator[LoadedDocument]:
        """Yield one LoadedDocument per entry, in path order.

        Raises:
            StorageUnavailable: If the root cannot be enumerated.
            PipelineCancelled: If the cancel event is set between documents.
        """
        entries = self.root.entries()
        logger.info("Loading %d document(s)", len(entries))

        if self.workers == 1:
            for position, entry in enumerate(entries):
                self._check_cancelled()
                yield _load_entry(entry, position)
            return

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = []
            for position, entry in enumerate(entries):
                self._check_cancelled(futures)
                futures.append(pool.submit(_load_entry, entry, position))
            for future in futures:
                self._check_cancelled(futures)
                yield future.result()

    def iter_documents(self) -> Iterator[RawDocument]:
        """Yield every readable document, valid or not."""
        for loaded in self.iter_loaded():
            if loaded.document is not None:
                yield loaded.document

    def load(self, sink: DiagnosticsSink | None = None) -> list[RawDocument]:
        """Load all documents, reporting per-document problems to ``sink``."""
        documents: list[RawDocument] = []
        for loaded in self.iter_loaded():
            if loaded.diagnostic is not None and sink is not None:
                sink.emit(loaded.diagnostic)
            if loaded.document is None:
                continue
            doc = loaded.document
            if doc.error is not None and sink is not None:
                sink.emit(
                    Diagnostic(
                        kind=DiagnosticKind.MALFORMED_METADATA,
                        source=doc.source_path,
                        message=doc.error,
                        stage=STAGE,
                    )
                )
            documents.append(doc)
        return documents

    def _check_cancelled(self, futures: list | None = None) -> None:
        if self.cancel is not None and self.cancel.is_set():
            for future in futures or []:
                future.cancel()
            raise PipelineCancelled("load cancelled")


def _load_entry(entry: ContentEntry, position: int) -> LoadedDocument:
    try:
        text = entry.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read document %s: %s", entry.path, exc)
        return LoadedDocument(
            None,
            Diagnostic(
                kind=DiagnosticKind.UNREADABLE_DOCUMENT,
                source=entry.path,
                message=str(exc),
                stage=STAGE,
            ),
        )

    doc = parse_document(entry.path, text, position)
    if doc.error is not None:
        logger.warning("Malformed metadata in %s: %s", entry.path, doc.error)
    else:
        logger.debug("Loaded %s", entry.path)
    return LoadedDocument(doc)
