"""Threaded review comments anchored to markdown sections.

This package contains:
- Section parsing and slug/fingerprint helpers
- Anchor matching, reconciliation, and reparent search
- Sidecar models, in-memory mutations, and file storage
"""

from .anchors import (
    AnchorMatch,
    StatusUpdate,
    create_anchor,
    detect_status_updates,
    find_anchored_section,
    find_reparent_candidate,
    reconcile_sidecar,
)
from .hashing import compute_content_hash, slugify
from .models import (
    CommentAnchor,
    CommentEntry,
    CommentThread,
    Section,
    SidecarFile,
    ThreadStatus,
)
from .sections import find_section_containing_line, parse_sections

__all__ = [
    "AnchorMatch",
    "CommentAnchor",
    "CommentEntry",
    "CommentThread",
    "Section",
    "SidecarFile",
    "StatusUpdate",
    "ThreadStatus",
    "compute_content_hash",
    "create_anchor",
    "detect_status_updates",
    "find_anchored_section",
    "find_reparent_candidate",
    "find_section_containing_line",
    "parse_sections",
    "reconcile_sidecar",
    "slugify",
]
