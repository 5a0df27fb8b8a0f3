"""Anchor matching and reconciliation: keeping threads attached to sections.

Threads point at a section by slug. After the document changes, the matcher
reports whether the slug still exists (otherwise the thread is orphaned) and
whether the section body fingerprint still matches (otherwise it drifted).
Reconciliation turns those findings into open/stale status transitions, and
reparent search proposes a new section for orphaned anchors using:
1. Heading line position (heading renamed in place)
2. Body fingerprint (heading renamed, body kept, possibly moved)
"""

from typing import NamedTuple

from markdown_threads.logging import get_logger
from markdown_threads.models import (
    CommentAnchor,
    CommentThread,
    ReconciliationReport,
    Section,
    SidecarFile,
    ThreadStatus,
)
from markdown_threads.mutations import update_thread_status
from markdown_threads.sections import (
    find_section_by_slug,
    find_section_containing_line,
    has_content_drifted,
)

__all__ = [
    "AnchorMatch",
    "StatusUpdate",
    "apply_status_updates",
    "create_anchor",
    "detect_status_updates",
    "find_anchored_section",
    "find_reparent_candidate",
    "find_section_containing_line",
    "reconcile_sidecar",
]


class AnchorMatch(NamedTuple):
    """Section located for an anchor, and whether its content drifted."""

    section: Section
    is_stale: bool


class StatusUpdate(NamedTuple):
    """A status transition proposed by reconciliation."""

    thread: CommentThread
    new_status: ThreadStatus


def create_anchor(section: Section) -> CommentAnchor:
    """Create an anchor pointing at a section as it is now."""
    return CommentAnchor(
        section_slug=section.slug,
        content_hash=section.content_hash,
        line_hint=section.start_line,
    )


def find_anchored_section(sections: list[Section], anchor: CommentAnchor) -> AnchorMatch | None:
    """Resolve an anchor against the current sections.

    Args:
        sections: Current parse of the document
        anchor: Anchor to resolve

    Returns:
        AnchorMatch for the first section with the anchor's slug, or None when
        the slug is gone (orphaned). ``is_stale`` is True when the section's
        fingerprint no longer equals the anchor's.
    """
    section = find_section_by_slug(sections, anchor.section_slug)
    if section is None:
        return None

    return AnchorMatch(section=section, is_stale=has_content_drifted(section, anchor.content_hash))


def detect_status_updates(
    sections: list[Section], threads: list[CommentThread]
) -> list[StatusUpdate]:
    """Compute open/stale transitions for threads against the current sections.

    Pure function: threads are not modified. Resolved threads are never
    transitioned. Orphaned or drifted threads become stale unless already
    stale; stale threads whose anchor matches again go back to open.
    Applying the result and running detection again yields no updates.

    Args:
        sections: Current parse of the document
        threads: Threads to check

    Returns:
        Proposed transitions, in thread order
    """
    updates: list[StatusUpdate] = []

    for thread in threads:
        if thread.status == ThreadStatus.RESOLVED:
            continue

        match = find_anchored_section(sections, thread.anchor)
        detached = match is None or match.is_stale

        if detached and thread.status != ThreadStatus.STALE:
            updates.append(StatusUpdate(thread, ThreadStatus.STALE))
        elif not detached and thread.status == ThreadStatus.STALE:
            updates.append(StatusUpdate(thread, ThreadStatus.OPEN))

    return updates


def find_reparent_candidate(sections: list[Section], anchor: CommentAnchor) -> Section | None:
    """Propose a section to re-attach an orphaned anchor to.

    A section starting on the anchor's line hint wins over one whose
    fingerprint matches, since short bodies can share a fingerprint. Returns
    None when neither signal matches; choosing a section is then up to the
    user.
    """
    for section in sections:
        if section.start_line == anchor.line_hint:
            return section

    for section in sections:
        if section.content_hash == anchor.content_hash:
            return section

    return None


def apply_status_updates(sidecar: SidecarFile, updates: list[StatusUpdate]) -> int:
    """Apply detected transitions to the sidecar's threads.

    Returns:
        Number of threads updated
    """
    logger = get_logger()
    applied = 0
    for update in updates:
        if update_thread_status(sidecar, update.thread.id, update.new_status):
            logger.debug(
                "Thread status changed",
                thread=update.thread.id,
                status=update.new_status.value,
            )
            applied += 1
    return applied


def reconcile_sidecar(sidecar: SidecarFile, sections: list[Section]) -> ReconciliationReport:
    """Reconcile every thread in a sidecar against the current sections.

    Applies status transitions in place and collects reparent suggestions
    for orphaned threads that are not resolved. Writing the sidecar back is
    left to the caller.

    Args:
        sidecar: Sidecar to update in place
        sections: Current parse of the document

    Returns:
        ReconciliationReport describing the result
    """
    updates = detect_status_updates(sections, sidecar.comments)
    apply_status_updates(sidecar, updates)

    orphaned_count = 0
    drifted_count = 0
    suggestions: dict[str, str] = {}

    for thread in sidecar.comments:
        match = find_anchored_section(sections, thread.anchor)
        if match is None:
            orphaned_count += 1
            if thread.status == ThreadStatus.RESOLVED:
                continue
            candidate = find_reparent_candidate(sections, thread.anchor)
            if candidate is not None:
                suggestions[thread.id] = candidate.slug
        elif match.is_stale:
            drifted_count += 1

    def count(status: ThreadStatus) -> int:
        return sum(1 for t in sidecar.comments if t.status == status)

    return ReconciliationReport(
        total_threads=len(sidecar.comments),
        open_count=count(ThreadStatus.OPEN),
        stale_count=count(ThreadStatus.STALE),
        resolved_count=count(ThreadStatus.RESOLVED),
        orphaned_count=orphaned_count,
        drifted_count=drifted_count,
        marked_stale=[u.thread.id for u in updates if u.new_status == ThreadStatus.STALE],
        reopened=[u.thread.id for u in updates if u.new_status == ThreadStatus.OPEN],
        reparent_suggestions=suggestions,
    )
