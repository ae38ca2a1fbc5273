"""
Domain Contracts

Read-only mirrors of the domain source's records.

OWNERSHIP:
==========
Tracks, visibility instances and work items are owned by the domain source.
The engine never creates, edits or deletes them; every type here is frozen.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class VisibilityState(Enum):
    """
    Per-project visibility of a track.

    Only HIDDEN and ARCHIVED exclude a container. COLLAPSED only sets the
    default collapse state.
    """
    VISIBLE = "visible"
    COLLAPSED = "collapsed"
    HIDDEN = "hidden"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'VisibilityState':
        """Map a wire value to a state. Unknown values read as VISIBLE."""
        try:
            return cls(value)
        except ValueError:
            return cls.VISIBLE


@dataclass(frozen=True)
class Track:
    """
    A grouping container in the domain hierarchy.

    `children` are the subtracks in domain-source order. `include_in_roadmap`
    is the default inclusion flag, used only when no instance exists.
    """
    id: str
    ordering_index: int = 0
    include_in_roadmap: Optional[bool] = None
    children: Tuple['Track', ...] = field(default_factory=tuple)
    name: str = ""
    project_id: Optional[str] = None

    @property
    def child_ids(self) -> Tuple[str, ...]:
        return tuple(child.id for child in self.children)


@dataclass(frozen=True)
class VisibilityInstance:
    """Per-project override for one track or subtrack."""
    track_id: str
    project_id: str
    visibility_state: VisibilityState = VisibilityState.VISIBLE
    include_in_roadmap: bool = True
    order_index: Optional[int] = None


@dataclass(frozen=True)
class WorkItem:
    """
    A timed work item.

    Addressed either by `track_id` alone or, in the legacy form, by the parent
    `track_id` plus a `subtrack_id`.
    """
    id: str
    track_id: str
    subtrack_id: Optional[str] = None
    title: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass(frozen=True)
class TrackWithInstance:
    """Row shape returned by `get_tracks_with_instances`."""
    track: Track
    instance: Optional[VisibilityInstance] = None


@dataclass(frozen=True)
class PermissionResult:
    """Answer of the permission checker for one container."""
    can_edit: bool
    reason: Optional[str] = None
