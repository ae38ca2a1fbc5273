"""
Overlay Change Channel

Message passing between independently-loaded views of the same project.

DESIGN:
=======
No shared in-memory overlay singleton. Writers broadcast an OverlayChange
carrying the storage key; readers that watch the same key re-read the
overlay store and rebuild.

ORDERING:
=========
Subscribers are called synchronously, in subscription order.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, List, Optional


_LOGGER = logging.getLogger("roadmap_projection.overlay.channel")


class ChangeOrigin(Enum):
    LOCAL = "local"          # Saved by an overlay store in this process
    EXTERNAL = "external"    # Storage changed underneath us (other tab, other process)


@dataclass(frozen=True)
class OverlayChange:
    """One overlay write, scoped by its storage key."""
    key: str
    project_id: Optional[str]
    origin: ChangeOrigin = ChangeOrigin.LOCAL


OverlayListener = Callable[[OverlayChange], None]


class OverlayChangeChannel:
    """Synchronous in-process broadcast of overlay changes."""

    def __init__(self) -> None:
        self._listeners: List[OverlayListener] = []

    def subscribe(self, listener: OverlayListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def broadcast(self, change: OverlayChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _LOGGER.exception("Overlay listener failed for key %s", change.key)

    def notify_storage_event(
        self,
        key: str,
        old_value: Optional[str],
        new_value: Optional[str],
        project_id: Optional[str] = None,
    ) -> bool:
        """
        Report a storage change made outside this process.

        Ignored when the value did not change. Returns True if broadcast.
        """
        if old_value == new_value:
            return False
        self.broadcast(OverlayChange(key=key, project_id=project_id, origin=ChangeOrigin.EXTERNAL))
        return True

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
