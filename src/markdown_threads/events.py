"""Change notification for sidecar writes.

Every successful write emits a SidecarChangeEvent naming the document and
the layer that wrote it, so a listener can skip reloads caused by its own
writes.
"""

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import NamedTuple


class WriteOrigin(str, Enum):
    """Layer that triggered a sidecar write."""

    EDITOR = "editor"
    PREVIEW = "preview"
    CLI = "cli"
    INTERNAL = "internal"


class SidecarChangeEvent(NamedTuple):
    """Emitted after a sidecar was written."""

    doc_path: Path
    origin: WriteOrigin


Listener = Callable[[SidecarChangeEvent], None]


class ChangeNotifier:
    """Registry of change listeners.

    Listeners run synchronously in registration order. An exception raised
    by a listener propagates to the writer.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SidecarChangeEvent) -> None:
        """Deliver an event to every registered listener."""
        for listener in list(self._listeners):
            listener(event)

    def __len__(self) -> int:
        return len(self._listeners)
