"""
Projection Contracts

The read-only tree handed to the presentation layer.

READ-ONLY CONTRACT:
===================
- Rebuilt wholesale on every build pass, never patched
- Empty `subtracks` and `items` are valid and must render
- `ui_state` is already resolved; the presentation layer does not merge
  overlay state itself
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .domain import Track, VisibilityInstance, WorkItem


class ProjectionStatus(Enum):
    """Lifecycle of a projection service."""
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


def ordering_key(track: Track, instance: Optional[VisibilityInstance]) -> int:
    """Instance order override if present, else the track's own ordering index."""
    if instance is not None and instance.order_index is not None:
        return instance.order_index
    return track.ordering_index


@dataclass(frozen=True)
class TrackUIState:
    collapsed: bool
    highlighted: bool
    focused: bool


@dataclass(frozen=True)
class SubtrackUIState:
    collapsed: bool
    highlighted: bool


@dataclass(frozen=True)
class ProjectionSubtrack:
    """A direct child of a projected track."""
    track: Track
    instance: Optional[VisibilityInstance]
    items: Tuple[WorkItem, ...]
    can_edit: bool
    item_count: int
    ui_state: SubtrackUIState

    @property
    def sort_key(self) -> int:
        return ordering_key(self.track, self.instance)


@dataclass(frozen=True)
class ProjectionTrack:
    """
    A projected top-level track.

    `total_item_count` is `item_count` plus the item counts of the included
    subtracks.
    """
    track: Track
    instance: Optional[VisibilityInstance]
    subtracks: Tuple[ProjectionSubtrack, ...]
    items: Tuple[WorkItem, ...]
    can_edit: bool
    item_count: int
    total_item_count: int
    ui_state: TrackUIState

    @property
    def sort_key(self) -> int:
        return ordering_key(self.track, self.instance)


@dataclass(frozen=True)
class RoadmapProjection:
    """
    Snapshot of a projection service, as the presentation layer sees it.

    When `status` is ERROR, `tracks` is empty and `error` holds the failure.
    """
    project_id: Optional[str]
    status: ProjectionStatus
    tracks: Tuple[ProjectionTrack, ...] = field(default_factory=tuple)
    error: Optional[Exception] = None

    @property
    def loading(self) -> bool:
        return self.status is ProjectionStatus.LOADING

    @property
    def total_tracks(self) -> int:
        return len(self.tracks)

    @property
    def total_items(self) -> int:
        return sum(track.total_item_count for track in self.tracks)
