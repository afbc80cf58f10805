"""Revision resolution: pick one canonical post per logical key.

Blog folders accumulate drafts and near-duplicates of the same post. Every
document is grouped with the others that share its normalised
``(title, date)`` key or its source path; within a group the most complete
valid revision wins:

1. longer body
2. body with real content over whitespace only
3. later load position

The rule is deterministic so republishing never flips between two
near-identical drafts.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from blogpipe.errors import Diagnostic, DiagnosticKind, DiagnosticsSink
from blogpipe.models import Post, RawDocument

logger = logging.getLogger(__name__)

STAGE = "resolve"


class _UnionFind:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[max(ra, rb)] = min(ra, rb)


def completeness(doc: RawDocument) -> tuple[int, bool, int]:
    """Ranking tuple for a revision; the maximum wins."""
    return len(doc.body), bool(doc.body.strip()), doc.position


def group_revisions(documents: Iterable[RawDocument]) -> list[list[RawDocument]]:
    """Group documents that describe the same logical post.

    Documents join a group if they share a logical key or a source path.
    Groups come back in order of their first member.
    """
    docs = list(documents)
    uf = _UnionFind(len(docs))
    first_by_key: dict[str, int] = {}
    first_by_path: dict[str, int] = {}

    for i, doc in enumerate(docs):
        for index, value in (
            (first_by_key, doc.logical_key),
            (first_by_path, doc.source_path),
        ):
            if value in index:
                uf.union(index[value], i)
            else:
                index[value] = i

    groups: dict[int, list[RawDocument]] = defaultdict(list)
    for i, doc in enumerate(docs):
        groups[uf.find(i)].append(doc)
    return [groups[root] for root in sorted(groups)]


def select_canonical(group: list[RawDocument]) -> Post | None:
    """Return the winning revision of a group, or None if none are valid."""
    survivors = [doc for doc in group if doc.is_valid]
    if not survivors:
        return None
    winner = max(survivors, key=completeness)
    return Post.from_document(winner, revision_rank=len(survivors) - 1)


def resolve(
    documents: Iterable[RawDocument], sink: DiagnosticsSink | None = None
) -> list[Post]:
    """Resolve raw documents to canonical posts, sorted by id.

    Groups with no valid revision are reported to ``sink`` as dropped posts.
    """
    posts: dict[str, Post] = {}

    for group in group_revisions(documents):
        post = select_canonical(group)
        if post is None:
            key = min(doc.logical_key for doc in group)
            paths = sorted({doc.source_path for doc in group})
            logger.warning("Dropping %s: no valid revision among %d", key, len(group))
            if sink is not None:
                sink.emit(
                    Diagnostic(
                        kind=DiagnosticKind.DROPPED_POST,
                        source=", ".join(paths),
                        message=f"no valid revision for {key} ({len(group)} candidate(s))",
                        stage=STAGE,
                    )
                )
            continue

        if post.revision_rank:
            logger.info(
                "Resolved %s from %s, discarding %d revision(s)",
                post.id,
                post.source_path,
                post.revision_rank,
            )
        # Every document with this key is in this group, so ids are unique.
        posts[post.id] = post

    return [posts[key] for key in sorted(posts)]
