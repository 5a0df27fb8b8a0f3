"""Markdown section parsing: splitting a document at its headings.

A section runs from a heading line (inclusive) to the next heading of any
level, or the end of the document (exclusive). Headings inside fenced code
blocks are ignored. Line numbers are 0-indexed.
"""

import re

from markdown_threads.hashing import compute_content_hash, slugify
from markdown_threads.models import Section

_FENCE = re.compile(r"^(`{3,}|~{3,})")
_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")


def split_lines(text: str) -> list[str]:
    """Split document text into lines, normalizing CRLF and CR endings."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return normalized.split("\n")


def _close_section(
    heading: str, level: int, start_line: int, end_line: int, body_lines: list[str]
) -> Section | None:
    # A heading made of whitespace only opens a span but never yields a section
    if not heading:
        return None

    content = "\n".join(body_lines).strip()
    return Section(
        heading=heading,
        slug=slugify(heading),
        level=level,
        start_line=start_line,
        end_line=end_line,
        content=content,
        content_hash=compute_content_hash(content),
    )


def parse_sections(text: str) -> list[Section]:
    """Parse markdown text into an ordered list of sections.

    Lines before the first heading are discarded, so a document without
    headings yields an empty list. Fence lines (``` or ~~~) toggle code-block
    state and are kept in the body of the enclosing section.

    Args:
        text: Full document text

    Returns:
        Sections in document order, non-overlapping
    """
    lines = split_lines(text)
    sections: list[Section] = []

    current: tuple[str, int, int] | None = None  # (heading, level, start_line)
    body_lines: list[str] = []
    in_code_block = False

    for index, line in enumerate(lines):
        if _FENCE.match(line):
            in_code_block = not in_code_block
            if current is not None:
                body_lines.append(line)
            continue

        match = None if in_code_block else _HEADING.match(line)

        if match:
            if current is not None:
                heading, level, start_line = current
                section = _close_section(heading, level, start_line, index, body_lines)
                if section is not None:
                    sections.append(section)

            current = (match.group(2).strip(), len(match.group(1)), index)
            body_lines = []
        elif current is not None:
            body_lines.append(line)

    if current is not None:
        heading, level, start_line = current
        section = _close_section(heading, level, start_line, len(lines), body_lines)
        if section is not None:
            sections.append(section)

    return sections


def find_section_by_slug(sections: list[Section], slug: str) -> Section | None:
    """Return the first section with the given slug, or None.

    Duplicate headings produce duplicate slugs; the earliest one wins.
    """
    for section in sections:
        if section.slug == slug:
            return section
    return None


def find_section_containing_line(sections: list[Section], line: int) -> Section | None:
    """Return the section whose half-open [start_line, end_line) span holds ``line``."""
    for section in sections:
        if section.start_line <= line < section.end_line:
            return section
    return None


def has_content_drifted(section: Section, stored_hash: str) -> bool:
    """Check whether a section's fingerprint differs from a stored one."""
    return section.content_hash != stored_hash
