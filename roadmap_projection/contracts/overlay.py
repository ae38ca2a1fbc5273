"""
Overlay State Contract

Transient, per-device, per-project UI state.

EXPLICIT ACTIONS ONLY:
======================
The collapsed/expanded sets record what the user explicitly did. Absence from
both sets means "use the visibility instance default", never "expanded".

INVARIANT:
==========
A container id is in at most one of its level's collapsed/expanded sets.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple


class ViewMode(Enum):
    """Timeline granularity chosen by the user."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def parse_iso_date(value: Any) -> Optional[date]:
    """Return the date for a `YYYY-MM-DD` string, or None if it is not one."""
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _id_set(value: Any) -> FrozenSet[str]:
    if not isinstance(value, (list, tuple)):
        return frozenset()
    return frozenset(str(v) for v in value if v)


@dataclass(frozen=True)
class UIOverlayState:
    """
    Overlay state for one project on one device.

    Immutable: mutators in the overlay store build a new instance.
    """
    anchor_date: str
    collapsed_tracks: FrozenSet[str] = field(default_factory=frozenset)
    expanded_tracks: FrozenSet[str] = field(default_factory=frozenset)
    collapsed_subtracks: FrozenSet[str] = field(default_factory=frozenset)
    expanded_subtracks: FrozenSet[str] = field(default_factory=frozenset)
    highlighted_tracks: FrozenSet[str] = field(default_factory=frozenset)
    focused_track_id: Optional[str] = None
    view_mode: ViewMode = ViewMode.WEEK
    last_week_anchor: Optional[str] = None

    @classmethod
    def default(cls, today: date) -> 'UIOverlayState':
        """Nothing collapsed, week view, anchored on today."""
        return cls(anchor_date=today.isoformat())

    # =========================================================================
    # STORAGE FORM
    # =========================================================================

    def to_storage_dict(self) -> Dict[str, Any]:
        """
        JSON-serializable form. Sets become sorted arrays.

        Field names match the keys written by the browser client so both can
        share one storage entry.
        """
        data: Dict[str, Any] = {
            'collapsedTracks': sorted(self.collapsed_tracks),
            'expandedTracks': sorted(self.expanded_tracks),
            'collapsedSubtracks': sorted(self.collapsed_subtracks),
            'expandedSubtracks': sorted(self.expanded_subtracks),
            'highlightedTracks': sorted(self.highlighted_tracks),
            'focusedTrackId': self.focused_track_id,
            'viewMode': self.view_mode.value,
            'anchorDate': self.anchor_date,
        }
        if self.last_week_anchor is not None:
            data['lastWeekAnchor'] = self.last_week_anchor
        return data

    @classmethod
    def from_storage_dict(cls, data: Mapping[str, Any], today: date) -> 'UIOverlayState':
        """
        Rebuild state from its storage form.

        Tolerant: missing or malformed fields fall back to their defaults.
        An id found in both sets of a level is kept as collapsed only.
        """
        try:
            view_mode = ViewMode(data.get('viewMode') or ViewMode.WEEK.value)
        except ValueError:
            view_mode = ViewMode.WEEK

        anchor = parse_iso_date(data.get('anchorDate')) or today
        last_week = parse_iso_date(data.get('lastWeekAnchor'))

        collapsed_tracks = _id_set(data.get('collapsedTracks'))
        collapsed_subtracks = _id_set(data.get('collapsedSubtracks'))
        focused = data.get('focusedTrackId')

        return cls(
            anchor_date=anchor.isoformat(),
            collapsed_tracks=collapsed_tracks,
            expanded_tracks=_id_set(data.get('expandedTracks')) - collapsed_tracks,
            collapsed_subtracks=collapsed_subtracks,
            expanded_subtracks=_id_set(data.get('expandedSubtracks')) - collapsed_subtracks,
            highlighted_tracks=_id_set(data.get('highlightedTracks')),
            focused_track_id=str(focused) if focused else None,
            view_mode=view_mode,
            last_week_anchor=last_week.isoformat() if last_week else None,
        )


def with_explicit_collapse(
    collapsed: FrozenSet[str],
    expanded: FrozenSet[str],
    ids: Iterable[str],
    is_collapsed: bool,
) -> Tuple[FrozenSet[str], FrozenSet[str]]:
    """
    Record an explicit collapse or expand for `ids`.

    Returns the new (collapsed, expanded) pair with every id in exactly one.
    """
    ids = frozenset(ids)
    if is_collapsed:
        return collapsed | ids, expanded - ids
    return collapsed - ids, expanded | ids
