"""Data models for sections, anchors, comment threads, and sidecar files.

JSON field names follow the camelCase sidecar schema (``sectionSlug``,
``isDraft``, ...). Models accept either the alias or the Python attribute
name on input and are always dumped by alias.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from ulid import new as new_ulid

SCHEMA_VERSION = "1.0"


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_id() -> str:
    """Generate a fresh ULID string."""
    return str(new_ulid())


def _validate_iso_timestamp(v: str) -> str:
    # Any offset is accepted on read; new timestamps come from utc_now()
    try:
        datetime.fromisoformat(v.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid ISO 8601 timestamp: {v}") from e
    return v


class ThreadStatus(str, Enum):
    """Thread lifecycle status."""

    OPEN = "open"
    RESOLVED = "resolved"
    STALE = "stale"  # Anchored section drifted or disappeared


class Section(BaseModel):
    """A heading-delimited span of a markdown document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    heading: str
    slug: str
    level: int = Field(..., ge=1, le=6)
    start_line: int = Field(..., ge=0, alias="startLine")
    end_line: int = Field(..., ge=1, alias="endLine", description="Exclusive")
    content: str
    content_hash: str = Field(..., alias="contentHash")

    @model_validator(mode="after")
    def validate_line_span(self) -> "Section":
        """Validate that the section covers at least its heading line."""
        if self.end_line <= self.start_line:
            raise ValueError(
                f"end_line ({self.end_line}) must be > start_line ({self.start_line})"
            )
        return self


class CommentAnchor(BaseModel):
    """Pointer from a thread into a document section.

    - section_slug: slug of the section heading when the anchor was made
    - content_hash: fingerprint of the section body at that time
    - line_hint: heading line at that time; only trusted when reparenting
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    section_slug: str = Field(..., alias="sectionSlug")
    content_hash: str = Field(..., alias="contentHash")
    line_hint: int = Field(..., ge=0, alias="lineHint")


class CommentEntry(BaseModel):
    """A single message within a thread."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, min_length=1)
    author: str
    body: str
    created: str = Field(default_factory=utc_now)
    edited: str | None = None
    reactions: list[str] = Field(default_factory=list)

    @field_validator("created")
    @classmethod
    def validate_created(cls, v: str) -> str:
        """Validate that created is an ISO 8601 timestamp."""
        return _validate_iso_timestamp(v)

    @field_validator("edited")
    @classmethod
    def validate_edited(cls, v: str | None) -> str | None:
        """Validate that edited is an ISO 8601 timestamp if present."""
        if v is None:
            return v
        return _validate_iso_timestamp(v)

    @field_validator("reactions")
    @classmethod
    def dedupe_reactions(cls, v: list[str]) -> list[str]:
        """Keep each reacting author once, in first-seen order."""
        return list(dict.fromkeys(v))


class CommentThread(BaseModel):
    """A discussion thread anchored to a markdown section."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, min_length=1)
    anchor: CommentAnchor
    status: ThreadStatus = ThreadStatus.OPEN
    is_draft: bool = Field(default=True, alias="isDraft")
    thread: list[CommentEntry] = Field(..., min_length=1)

    @property
    def creator(self) -> str:
        """Author of the first entry."""
        return self.thread[0].author

    def find_entry(self, comment_id: str) -> CommentEntry | None:
        """Return the entry with the given id, or None."""
        for entry in self.thread:
            if entry.id == comment_id:
                return entry
        return None


class SidecarFile(BaseModel):
    """Root structure for a ``.comments.json`` sidecar file."""

    model_config = ConfigDict(populate_by_name=True)

    doc: str = Field(..., description="Base name of the markdown document")
    version: Literal["1.0"] = SCHEMA_VERSION
    comments: list[CommentThread] = Field(default_factory=list)


class ReconciliationReport(BaseModel):
    """Summary of a reconciliation pass over one sidecar.

    Counts reflect thread status after the pass. Used for CLI output and
    logging.
    """

    total_threads: int = Field(..., ge=0)
    open_count: int = Field(..., ge=0)
    stale_count: int = Field(..., ge=0)
    resolved_count: int = Field(..., ge=0)
    orphaned_count: int = Field(..., ge=0, description="Anchor slug no longer present")
    drifted_count: int = Field(..., ge=0, description="Slug present, fingerprint changed")
    marked_stale: list[str] = Field(default_factory=list, description="Thread ids moved to stale")
    reopened: list[str] = Field(default_factory=list, description="Thread ids moved back to open")
    reparent_suggestions: dict[str, str] = Field(
        default_factory=dict, description="Orphaned thread id -> candidate section slug"
    )
