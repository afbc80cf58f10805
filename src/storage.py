"""Read-only content stores the loader pulls documents from."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import Protocol

from blogpipe.errors import StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ("*.md", "*.markdown")


class ContentEntry:
    """A document path plus a deferred read of its text."""

    __slots__ = ("path", "_reader")

    def __init__(self, path: str, reader: Callable[[], str]) -> None:
        self.path = path
        self._reader = reader

    def read(self) -> str:
        """Return the text. May raise OSError or UnicodeDecodeError."""
        return self._reader()

    def __repr__(self) -> str:
        return f"ContentEntry({self.path!r})"


class ContentRoot(Protocol):
    """A source of markdown documents."""

    def entries(self) -> list[ContentEntry]:
        """All documents sorted by path. Raises StorageUnavailable."""
        ...

    def enumerate(self) -> Iterator[tuple[str, str]]: ...


class FilesystemContentRoot:
    """Markdown files under a directory, found recursively."""

    def __init__(
        self, directory: str | Path, patterns: Iterable[str] = DEFAULT_PATTERNS
    ) -> None:
        self.directory = Path(directory)
        self.patterns = tuple(patterns)

    def entries(self) -> list[ContentEntry]:
        if not self.directory.is_dir():
            raise StorageUnavailable(f"content root is not a directory: {self.directory}")

        found: set[str] = set()
        try:
            for pattern in self.patterns:
                for path in self.directory.rglob(pattern):
                    if path.is_file():
                        found.add(path.relative_to(self.directory).as_posix())
        except OSError as exc:
            raise StorageUnavailable(
                f"cannot enumerate content root {self.directory}: {exc}"
            ) from exc

        logger.debug("Found %d document(s) under %s", len(found), self.directory)
        return [ContentEntry(rel, self._reader(rel)) for rel in sorted(found)]

    def enumerate(self) -> Iterator[tuple[str, str]]:
        for entry in self.entries():
            yield entry.path, entry.read()

    def _reader(self, rel: str) -> Callable[[], str]:
        path = self.directory / rel
        # utf-8-sig drops a leading byte-order mark
        return lambda: path.read_text(encoding="utf-8-sig")


class MemoryContentRoot:
    """In-memory key-value store of documents.

    Accepts a mapping or a sequence of pairs. A sequence may repeat a path,
    which models the same file being scanned more than once.
    """

    def __init__(self, documents: Mapping[str, str] | Iterable[tuple[str, str]]) -> None:
        items = documents.items() if isinstance(documents, Mapping) else documents
        # Stable sort keeps repeated paths in insertion order.
        self._items = sorted(items, key=lambda item: item[0])

    def entries(self) -> list[ContentEntry]:
        return [ContentEntry(path, _constant(text)) for path, text in self._items]

    def enumerate(self) -> Iterator[tuple[str, str]]:
        yield from self._items


def _constant(text: str) -> Callable[[], str]:
    return lambda: text
