"""Per-document section cache and the file-backed document source.

The cache never invalidates itself: callers re-parse after a text change or
call ``invalidate`` when they know the text is out of date. Matching and
reconciliation functions take a section list and never read the cache.
"""

from collections.abc import Callable, Hashable
from pathlib import Path
from typing import Protocol

from markdown_threads.logging import get_logger
from markdown_threads.models import Section
from markdown_threads.sections import parse_sections


class DocumentSource(Protocol):
    """Provides the current full text of a document."""

    def read_text(self, doc_id: Path) -> str | None:
        """Return the document text, or None if it does not exist."""
        ...


class FileDocumentSource:
    """Reads markdown documents from the local file system."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def read_text(self, doc_id: Path) -> str | None:
        try:
            return Path(doc_id).read_text(encoding=self.encoding)
        except FileNotFoundError:
            return None


class SectionCache:
    """Parsed sections keyed by document identity."""

    def __init__(self, parser: Callable[[str], list[Section]] = parse_sections) -> None:
        self._parser = parser
        self._entries: dict[Hashable, list[Section]] = {}

    def parse(self, doc_id: Hashable, text: str) -> list[Section]:
        """Parse ``text`` from scratch and store the result for ``doc_id``."""
        sections = self._parser(text)
        self._entries[doc_id] = sections
        get_logger().debug("Parsed sections", doc=str(doc_id), count=len(sections))
        return sections

    def get(self, doc_id: Hashable, load_text: Callable[[], str | None]) -> list[Section] | None:
        """Return cached sections, parsing ``load_text()`` on a miss.

        Returns:
            Sections, or None if the document could not be loaded
        """
        cached = self._entries.get(doc_id)
        if cached is not None:
            get_logger().debug("Section cache hit", doc=str(doc_id))
            return cached

        text = load_text()
        if text is None:
            return None
        return self.parse(doc_id, text)

    def load(self, source: DocumentSource, doc_id: Path) -> list[Section] | None:
        """Sections of a document from ``source``, cached under ``doc_id``."""
        return self.get(doc_id, lambda: source.read_text(doc_id))

    def peek(self, doc_id: Hashable) -> list[Section] | None:
        """Cached sections without parsing, or None."""
        return self._entries.get(doc_id)

    def invalidate(self, doc_id: Hashable) -> bool:
        """Drop the cached parse for one document.

        Returns:
            True if an entry was removed
        """
        removed = self._entries.pop(doc_id, None) is not None
        if removed:
            get_logger().debug("Invalidated section cache", doc=str(doc_id))
        return removed

    def clear(self) -> None:
        """Drop every cached parse."""
        self._entries.clear()

    def __contains__(self, doc_id: Hashable) -> bool:
        return doc_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
