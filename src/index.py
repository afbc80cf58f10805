"""Immutable, ordered collection of canonical posts."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from datetime import date

from blogpipe.errors import DuplicatePostError, PostNotFound
from blogpipe.models import Post


def _order(post: Post) -> tuple[float, str]:
    return -post.published_at.timestamp(), post.id


class PostIndex:
    """Posts keyed uniquely by id, newest first.

    Built once per run and never mutated afterwards.
    """

    __slots__ = ("_posts", "_ordered")

    def __init__(self, posts: dict[str, Post]) -> None:
        self._posts = dict(posts)
        self._ordered = tuple(sorted(self._posts.values(), key=_order))

    @classmethod
    def build(cls, posts: Iterable[Post]) -> PostIndex:
        """Build an index, rejecting duplicate ids."""
        by_id: dict[str, Post] = {}
        for post in posts:
            if post.id in by_id:
                raise DuplicatePostError(f"duplicate post id: {post.id}")
            by_id[post.id] = post
        return cls(by_id)

    @classmethod
    def empty(cls) -> PostIndex:
        return cls({})

    def list(
        self,
        include_drafts: bool = False,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[Post]:
        """Posts sorted by publish time descending, ties by id ascending.

        Drafts are excluded unless ``include_drafts`` is set. ``since`` and
        ``until`` are inclusive bounds on the UTC publish date.
        """
        result = []
        for post in self._ordered:
            if post.draft and not include_drafts:
                continue
            day = post.published_at.date()
            if since is not None and day < since:
                continue
            if until is not None and day > until:
                continue
            result.append(post)
        return result

    def get(self, post_id: str) -> Post:
        try:
            return self._posts[post_id]
        except KeyError:
            raise PostNotFound(post_id) from None

    def tags(self, include_drafts: bool = False) -> dict[str, int]:
        """Tag usage counts across listed posts, sorted by tag."""
        counts: dict[str, int] = {}
        for post in self.list(include_drafts):
            for tag in post.tags:
                counts[tag] = counts.get(tag, 0) + 1
        return dict(sorted(counts.items()))

    def to_json(self, include_drafts: bool = False) -> str:
        """Deterministic JSON serialisation of the listed posts."""
        payload = [
            post.model_dump(mode="json") for post in self.list(include_drafts)
        ]
        return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    def __len__(self) -> int:
        return len(self._posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._ordered)

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._posts

    def __repr__(self) -> str:
        return f"PostIndex({len(self._posts)} posts)"
