"""Unit tests for markdown-threads data models."""

import pytest
from pydantic import ValidationError

from markdown_threads.models import (
    CommentAnchor,
    CommentEntry,
    CommentThread,
    ReconciliationReport,
    Section,
    SidecarFile,
    ThreadStatus,
    utc_now,
)


def make_anchor() -> CommentAnchor:
    return CommentAnchor(section_slug="intro", content_hash="0123456789abcdef", line_hint=0)


class TestSection:
    """Tests for the Section model."""

    def test_valid_section(self) -> None:
        """A section accepts snake_case or camelCase fields."""
        by_name = Section(
            heading="Intro",
            slug="intro",
            level=1,
            start_line=0,
            end_line=3,
            content="Body",
            content_hash="abc",
        )
        by_alias = Section.model_validate(
            {
                "heading": "Intro",
                "slug": "intro",
                "level": 1,
                "startLine": 0,
                "endLine": 3,
                "content": "Body",
                "contentHash": "abc",
            }
        )
        assert by_name == by_alias

    def test_is_immutable(self) -> None:
        """Sections are frozen."""
        section = Section(
            heading="A", slug="a", level=1, start_line=0, end_line=1, content="", content_hash="x"
        )
        with pytest.raises(ValidationError):
            section.slug = "b"  # type: ignore[misc]

    def test_rejects_empty_span(self) -> None:
        """end_line must be greater than start_line."""
        with pytest.raises(ValidationError, match="end_line"):
            Section(
                heading="A", slug="a", level=1, start_line=3, end_line=3, content="", content_hash="x"
            )

    @pytest.mark.parametrize("level", [0, 7])
    def test_rejects_invalid_level(self, level: int) -> None:
        """Heading levels are 1-6."""
        with pytest.raises(ValidationError):
            Section(
                heading="A",
                slug="a",
                level=level,
                start_line=0,
                end_line=1,
                content="",
                content_hash="x",
            )


class TestCommentAnchor:
    """Tests for the CommentAnchor model."""

    def test_dumps_camel_case(self) -> None:
        """Anchors serialize with the sidecar field names."""
        assert make_anchor().model_dump(by_alias=True) == {
            "sectionSlug": "intro",
            "contentHash": "0123456789abcdef",
            "lineHint": 0,
        }

    def test_allows_empty_slug(self) -> None:
        """Punctuation-only headings produce an empty slug, which is valid."""
        anchor = CommentAnchor(section_slug="", content_hash="x", line_hint=2)
        assert anchor.section_slug == ""

    def test_rejects_negative_line_hint(self) -> None:
        """Line hints are 0-indexed line numbers."""
        with pytest.raises(ValidationError):
            CommentAnchor(section_slug="a", content_hash="x", line_hint=-1)


class TestCommentEntry:
    """Tests for the CommentEntry model."""

    def test_defaults(self) -> None:
        """Id and created timestamp are generated; not edited; no reactions."""
        entry = CommentEntry(author="alice", body="Looks good")

        assert len(entry.id) == 26
        assert entry.created.endswith("Z")
        assert entry.edited is None
        assert entry.reactions == []

    def test_unique_ids(self) -> None:
        """Each entry gets its own id."""
        assert CommentEntry(author="a", body="x").id != CommentEntry(author="a", body="x").id

    def test_accepts_foreign_ids(self) -> None:
        """Ids written by other tools (UUIDs) are accepted."""
        entry = CommentEntry(
            id="6f1c1b3e-2b7a-4a8e-9d0c-1f2e3d4c5b6a", author="a", body="x"
        )
        assert entry.id.startswith("6f1c")

    def test_accepts_millisecond_timestamps(self) -> None:
        """Millisecond ISO timestamps with Z are valid."""
        entry = CommentEntry(author="a", body="x", created="2026-02-01T10:00:00.000Z")
        assert entry.created == "2026-02-01T10:00:00.000Z"

    def test_accepts_offset_timestamp(self) -> None:
        """Timestamps with a UTC offset are kept as written."""
        entry = CommentEntry(author="a", body="x", created="2026-02-01T10:00:00+02:00")
        assert entry.created == "2026-02-01T10:00:00+02:00"

    def test_rejects_garbage_timestamp(self) -> None:
        """Unparseable timestamps are rejected."""
        with pytest.raises(ValidationError):
            CommentEntry(author="a", body="x", edited="yesterday")

    def test_accepts_any_author_and_body(self) -> None:
        """Author and body are only required to be strings."""
        entry = CommentEntry(author="a" * 500, body="")
        assert (len(entry.author), entry.body) == (500, "")

    def test_requires_author_and_body(self) -> None:
        """Author and body must be present."""
        with pytest.raises(ValidationError):
            CommentEntry.model_validate({"body": "x"})
        with pytest.raises(ValidationError):
            CommentEntry.model_validate({"author": "a"})

    def test_reactions_are_deduplicated(self) -> None:
        """Each author reacts at most once."""
        entry = CommentEntry(author="a", body="x", reactions=["bob", "carol", "bob"])
        assert entry.reactions == ["bob", "carol"]


class TestCommentThread:
    """Tests for the CommentThread model."""

    def test_defaults(self) -> None:
        """New threads are open drafts."""
        thread = CommentThread(anchor=make_anchor(), thread=[CommentEntry(author="a", body="x")])

        assert thread.status == ThreadStatus.OPEN
        assert thread.is_draft is True

    def test_requires_an_entry(self) -> None:
        """A thread without entries is invalid."""
        with pytest.raises(ValidationError):
            CommentThread(anchor=make_anchor(), thread=[])

    def test_creator_is_first_author(self) -> None:
        """The creator is the author of the first entry."""
        thread = CommentThread(
            anchor=make_anchor(),
            thread=[CommentEntry(author="alice", body="x"), CommentEntry(author="bob", body="y")],
        )
        assert thread.creator == "alice"

    def test_find_entry(self) -> None:
        """Entries are looked up by id."""
        entry = CommentEntry(author="a", body="x")
        thread = CommentThread(anchor=make_anchor(), thread=[entry])

        assert thread.find_entry(entry.id) is entry
        assert thread.find_entry("missing") is None

    def test_round_trip_by_alias(self) -> None:
        """Dumped JSON uses isDraft and parses back to an equal thread."""
        thread = CommentThread(anchor=make_anchor(), thread=[CommentEntry(author="a", body="x")])
        data = thread.model_dump(mode="json", by_alias=True)

        assert data["isDraft"] is True
        assert data["status"] == "open"
        assert CommentThread.model_validate(data) == thread

    def test_rejects_unknown_status(self) -> None:
        """Status must be open, resolved or stale."""
        with pytest.raises(ValidationError):
            CommentThread(
                anchor=make_anchor(),
                status="wontfix",  # type: ignore[arg-type]
                thread=[CommentEntry(author="a", body="x")],
            )


class TestSidecarFile:
    """Tests for the SidecarFile model."""

    def test_defaults(self) -> None:
        """Version defaults to 1.0 with no comments."""
        sidecar = SidecarFile(doc="README.md")

        assert sidecar.version == "1.0"
        assert sidecar.comments == []

    def test_rejects_other_version(self) -> None:
        """Only the current schema version is accepted."""
        with pytest.raises(ValidationError):
            SidecarFile.model_validate({"doc": "a.md", "version": "2.0", "comments": []})

    def test_rejects_non_string_doc(self) -> None:
        """doc must be a string."""
        with pytest.raises(ValidationError):
            SidecarFile.model_validate({"doc": 42, "version": "1.0", "comments": []})

    def test_rejects_non_list_comments(self) -> None:
        """comments must be an array."""
        with pytest.raises(ValidationError):
            SidecarFile.model_validate({"doc": "a.md", "version": "1.0", "comments": {}})


def test_reconciliation_report_defaults() -> None:
    """Transition lists and suggestions default to empty."""
    report = ReconciliationReport(
        total_threads=0,
        open_count=0,
        stale_count=0,
        resolved_count=0,
        orphaned_count=0,
        drifted_count=0,
    )
    assert report.marked_stale == []
    assert report.reparent_suggestions == {}


def test_utc_now_format() -> None:
    """utc_now() produces a Z-suffixed timestamp accepted by the models."""
    stamp = utc_now()
    assert stamp.endswith("Z")
    CommentEntry(author="a", body="x", created=stamp)
