"""Tests for src/resolver.py and logical keys in src/models.py."""

from datetime import UTC, datetime

import pytest
from blogpipe.errors import DiagnosticKind, RunReport
from blogpipe.models import FrontMatter, RawDocument, normalize_title, repair_mojibake
from blogpipe.resolver import completeness, group_revisions, resolve, select_canonical

APRIL_18 = datetime(2024, 4, 18, tzinfo=UTC)


def _doc(
    path: str,
    title: str | None = "X",
    body: str = "",
    *,
    date: datetime | None = APRIL_18,
    position: int = 0,
    draft: bool = False,
    error: str | None = None,
) -> RawDocument:
    return RawDocument(
        source_path=path,
        metadata=FrontMatter(title=title, date=date, draft=draft),
        body=body,
        position=position,
        error=error,
    )


def _reposition(docs: list[RawDocument]) -> list[RawDocument]:
    return [d.model_copy(update={"position": i}) for i, d in enumerate(docs)]


class TestNormalizeTitle:
    def test_casefold_and_whitespace(self):
        assert normalize_title("  Hello   World\t") == normalize_title("hello world")

    def test_mojibake_repaired(self):
        assert repair_mojibake("Launch day ðŸš€") == "Launch day 🚀"
        assert normalize_title("Launch day ðŸš€") == normalize_title("Launch Day 🚀")

    def test_plain_accents_untouched(self):
        assert repair_mojibake("Café") == "Café"


class TestGrouping:
    def test_same_title_and_date_grouped(self):
        groups = group_revisions([_doc("a.md"), _doc("b.md", title=" x ")])
        assert len(groups) == 1

    def test_different_dates_kept_apart(self):
        other = datetime(2024, 4, 19, tzinfo=UTC)
        groups = group_revisions([_doc("a.md"), _doc("b.md", date=other)])
        assert len(groups) == 2

    def test_same_path_grouped_despite_title_drift(self):
        docs = _reposition([_doc("a.md", title="Old title"), _doc("a.md", title="New title")])
        groups = group_revisions(docs)
        assert len(groups) == 1

    def test_path_links_are_transitive(self):
        docs = _reposition(
            [
                _doc("a.md", title="One"),
                _doc("a.md", title="Two"),
                _doc("b.md", title="Two"),
            ]
        )
        assert len(group_revisions(docs)) == 1

    def test_every_document_in_exactly_one_group(self):
        docs = _reposition(
            [_doc("a.md"), _doc("b.md", title="Y"), _doc("c.md", title=None), _doc("d.md")]
        )
        groups = group_revisions(docs)
        flattened = [d for g in groups for d in g]
        assert sorted(d.position for d in flattened) == [0, 1, 2, 3]


class TestSelectCanonical:
    def test_longer_body_wins(self):
        post = select_canonical(_reposition([_doc("a.md", body="x" * 500), _doc("b.md", body="x" * 50)]))
        assert post.source_path == "a.md"
        assert post.revision_rank == 1

    def test_content_beats_whitespace_of_equal_length(self):
        docs = _reposition([_doc("a.md", body="abc"), _doc("b.md", body="   ")])
        assert select_canonical(docs).source_path == "a.md"

    def test_last_loaded_wins_tie(self):
        docs = _reposition([_doc("a.md", body="same"), _doc("b.md", body="same")])
        assert select_canonical(docs).source_path == "b.md"

    def test_invalid_revisions_ignored(self):
        docs = _reposition(
            [_doc("a.md", body="x" * 900, error="broken"), _doc("b.md", body="short")]
        )
        post = select_canonical(docs)
        assert post.source_path == "b.md"
        assert post.revision_rank == 0

    def test_no_survivors(self):
        assert select_canonical([_doc("a.md", title=None)]) is None

    def test_completeness_order(self):
        assert completeness(_doc("a.md", body="ab", position=7)) == (2, True, 7)


class TestResolve:
    def test_empty_revision_loses_to_full_text(self):
        docs = _reposition([_doc("A", body=""), _doc("A", body="full text...")])
        (post,) = resolve(docs)
        assert post.body == "full text..."
        assert post.revision_rank == 1
        assert post.title == "X"

    @pytest.mark.parametrize("reverse", [False, True])
    def test_longer_body_selected_regardless_of_order(self, reverse):
        docs = [_doc("short.md", body="s" * 50), _doc("long.md", body="l" * 500)]
        if reverse:
            docs.reverse()
        (post,) = resolve(_reposition(docs))
        assert len(post.body) == 500

    def test_dropped_post_reported(self):
        report = RunReport()
        docs = _reposition(
            [
                _doc("good.md", title="Good", body="ok"),
                _doc("bad.md", title=None, error="missing required field(s): title"),
            ]
        )
        posts = resolve(docs, report)
        assert [p.source_path for p in posts] == ["good.md"]
        dropped = report.of_kind(DiagnosticKind.DROPPED_POST)
        assert len(dropped) == 1
        assert dropped[0].source == "bad.md"
        assert "path::bad.md" in dropped[0].message

    def test_posts_sorted_by_id_and_unique(self):
        docs = _reposition(
            [_doc("b.md", title="Beta"), _doc("a.md", title="Alpha"), _doc("c.md", title="alpha")]
        )
        posts = resolve(docs)
        ids = [p.id for p in posts]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids) == 2

    def test_group_id_follows_winner(self):
        docs = _reposition(
            [_doc("a.md", title="Draft name", body="tiny"), _doc("a.md", title="Final name", body="much longer body")]
        )
        (post,) = resolve(docs)
        assert post.title == "Final name"
        assert post.id == docs[1].logical_key

    def test_draft_flag_taken_from_winner(self):
        docs = _reposition([_doc("a.md", body="short", draft=False), _doc("b.md", body="longer body", draft=True)])
        (post,) = resolve(docs)
        assert post.draft is True

    def test_emoji_and_mojibake_titles_share_key(self):
        docs = _reposition(
            [
                _doc("a.md", title="Launch day ðŸš€", body="short"),
                _doc("b.md", title="Launch day 🚀", body="the longer version"),
            ]
        )
        (post,) = resolve(docs)
        assert post.title == "Launch day 🚀"
        assert post.revision_rank == 1
