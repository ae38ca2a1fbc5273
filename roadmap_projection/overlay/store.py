"""
Overlay Store

Loads, saves and mutates the per-device UI overlay of each project.

RESPONSIBILITY:
===============
- Persist overlay state to the durable key/value store, one key per project
- Apply user actions (collapse, highlight, focus, view navigation)
- Broadcast every write on the change channel

WHAT THIS LAYER MUST NOT DO:
============================
- Touch the domain source
- Resolve collapse state against visibility instances (the builder does)

FAILURE HANDLING:
=================
- Every read goes to durable storage, so writes by other processes sharing
  it are seen on the next build
- Unreadable or unparsable entries fall back to the default state
- Failed writes are logged; the new state is kept in memory and still
  broadcast, so views in this process stay consistent
"""

from __future__ import annotations
from dataclasses import replace
from datetime import date
import json
import logging
from typing import Callable, Dict, Iterable, Optional, Union

from ..contracts.errors import ErrorCode, InvalidOverlayValue
from ..contracts.overlay import UIOverlayState, ViewMode, parse_iso_date, with_explicit_collapse
from .channel import ChangeOrigin, OverlayChange, OverlayChangeChannel
from .navigation import shift_months, shift_weeks, today_utc
from .storage import KeyValueStore


_LOGGER = logging.getLogger("roadmap_projection.overlay.store")

DEFAULT_KEY_PREFIX = "roadmap_ui_state_"


DateLike = Union[date, str]


def _coerce_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    parsed = parse_iso_date(value)
    if parsed is None:
        raise InvalidOverlayValue(f"Not an ISO date: {value!r}")
    return parsed


def _coerce_view_mode(value: Union[ViewMode, str]) -> ViewMode:
    if isinstance(value, ViewMode):
        return value
    try:
        return ViewMode(value)
    except ValueError:
        raise InvalidOverlayValue(f"Unknown view mode: {value!r}") from None


class OverlayStore:
    """
    Project-scoped overlay persistence plus the mutation helpers.

    Reads always go to durable storage. The only state held in memory is the
    one whose write failed, kept per key until a later write succeeds, the
    project is reset, or the channel reports an external change to the key.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        channel: Optional[OverlayChangeChannel] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], date] = today_utc,
    ):
        self._storage = storage
        self._channel = channel or OverlayChangeChannel()
        self._key_prefix = key_prefix
        self._clock = clock
        self._unsaved: Dict[str, UIOverlayState] = {}
        self._unsubscribe = self._channel.subscribe(self._on_change)

    @property
    def channel(self) -> OverlayChangeChannel:
        return self._channel

    def storage_key(self, project_id: str) -> str:
        return f"{self._key_prefix}{project_id}"

    def project_for_key(self, key: str) -> Optional[str]:
        if key.startswith(self._key_prefix):
            return key[len(self._key_prefix):]
        return None

    def close(self) -> None:
        self._unsubscribe()

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def load(self, project_id: str) -> UIOverlayState:
        """Read the overlay from durable storage, ignoring any unsaved state."""
        key = self.storage_key(project_id)
        default = UIOverlayState.default(self._clock())

        try:
            stored = self._storage.get(key)
        except Exception as exc:
            _LOGGER.warning(
                "Failed to read overlay state %s: %s [%s]", key, exc, ErrorCode.OVERLAY_READ_FAILED.name
            )
            return default

        if not stored:
            return default

        try:
            parsed = json.loads(stored)
        except ValueError as exc:
            _LOGGER.warning(
                "Failed to parse overlay state %s: %s [%s]", key, exc, ErrorCode.OVERLAY_READ_FAILED.name
            )
            return default

        if not isinstance(parsed, dict):
            _LOGGER.warning(
                "Ignoring overlay state %s: expected an object [%s]", key, ErrorCode.OVERLAY_READ_FAILED.name
            )
            return default

        return UIOverlayState.from_storage_dict(parsed, self._clock())

    def current(self, project_id: str) -> UIOverlayState:
        """Latest state of a project: a write that failed to persist, else a fresh load."""
        state = self._unsaved.get(self.storage_key(project_id))
        if state is not None:
            return state
        return self.load(project_id)

    def save(self, project_id: str, state: UIOverlayState) -> None:
        """Persist and broadcast. Never raises on storage failure."""
        key = self.storage_key(project_id)
        try:
            self._storage.set(key, json.dumps(state.to_storage_dict(), sort_keys=True))
        except Exception as exc:
            self._unsaved[key] = state
            _LOGGER.warning(
                "Failed to save overlay state %s: %s [%s]", key, exc, ErrorCode.OVERLAY_WRITE_FAILED.name
            )
        else:
            self._unsaved.pop(key, None)
        self._channel.broadcast(OverlayChange(key=key, project_id=project_id))

    def reset(self, project_id: str) -> UIOverlayState:
        """Forget everything recorded for a project."""
        key = self.storage_key(project_id)
        self._unsaved.pop(key, None)
        try:
            self._storage.remove(key)
        except Exception as exc:
            _LOGGER.warning(
                "Failed to remove overlay state %s: %s [%s]", key, exc, ErrorCode.OVERLAY_WRITE_FAILED.name
            )
        self._channel.broadcast(OverlayChange(key=key, project_id=project_id))
        return self.current(project_id)

    def _update(
        self,
        project_id: str,
        change: Callable[[UIOverlayState], UIOverlayState],
    ) -> UIOverlayState:
        state = change(self.current(project_id))
        self.save(project_id, state)
        return state

    def _on_change(self, change: OverlayChange) -> None:
        if change.origin is ChangeOrigin.EXTERNAL:
            self._unsaved.pop(change.key, None)

    # =========================================================================
    # COLLAPSE
    # =========================================================================

    def set_track_collapsed(self, project_id: str, track_id: str, collapsed: bool) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            collapsed_ids, expanded_ids = with_explicit_collapse(
                state.collapsed_tracks, state.expanded_tracks, (track_id,), collapsed
            )
            return replace(state, collapsed_tracks=collapsed_ids, expanded_tracks=expanded_ids)
        return self._update(project_id, change)

    def toggle_track_collapse(
        self,
        project_id: str,
        track_id: str,
        currently_collapsed: Optional[bool] = None,
    ) -> UIOverlayState:
        """
        Flip a track between explicit collapsed and explicit expanded.

        `currently_collapsed` is the resolved state shown to the user. Without
        it the explicit collapsed set decides what "currently" means.
        """
        state = self.current(project_id)
        if currently_collapsed is None:
            currently_collapsed = track_id in state.collapsed_tracks
        return self.set_track_collapsed(project_id, track_id, not currently_collapsed)

    def is_track_collapsed(self, project_id: str, track_id: str) -> bool:
        """Explicit collapse only. The resolved state lives in the projection."""
        return track_id in self.current(project_id).collapsed_tracks

    def set_subtrack_collapsed(self, project_id: str, subtrack_id: str, collapsed: bool) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            collapsed_ids, expanded_ids = with_explicit_collapse(
                state.collapsed_subtracks, state.expanded_subtracks, (subtrack_id,), collapsed
            )
            return replace(state, collapsed_subtracks=collapsed_ids, expanded_subtracks=expanded_ids)
        return self._update(project_id, change)

    def toggle_subtrack_collapse(
        self,
        project_id: str,
        subtrack_id: str,
        currently_collapsed: Optional[bool] = None,
    ) -> UIOverlayState:
        state = self.current(project_id)
        if currently_collapsed is None:
            currently_collapsed = subtrack_id in state.collapsed_subtracks
        return self.set_subtrack_collapsed(project_id, subtrack_id, not currently_collapsed)

    def is_subtrack_collapsed(self, project_id: str, subtrack_id: str) -> bool:
        return subtrack_id in self.current(project_id).collapsed_subtracks

    def expand_all(self, project_id: str) -> UIOverlayState:
        """Clear both collapsed sets. Explicit expands are kept."""
        return self._update(
            project_id,
            lambda state: replace(state, collapsed_tracks=frozenset(), collapsed_subtracks=frozenset()),
        )

    def collapse_tracks(self, project_id: str, track_ids: Iterable[str]) -> UIOverlayState:
        """Explicitly collapse the given tracks."""
        ids = tuple(track_ids)

        def change(state: UIOverlayState) -> UIOverlayState:
            collapsed_ids, expanded_ids = with_explicit_collapse(
                state.collapsed_tracks, state.expanded_tracks, ids, True
            )
            return replace(state, collapsed_tracks=collapsed_ids, expanded_tracks=expanded_ids)
        return self._update(project_id, change)

    # =========================================================================
    # HIGHLIGHT / FOCUS
    # =========================================================================

    def set_highlighted(self, project_id: str, track_id: str, highlighted: bool) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            if highlighted:
                return replace(state, highlighted_tracks=state.highlighted_tracks | {track_id})
            return replace(state, highlighted_tracks=state.highlighted_tracks - {track_id})
        return self._update(project_id, change)

    def clear_highlights(self, project_id: str) -> UIOverlayState:
        return self._update(project_id, lambda state: replace(state, highlighted_tracks=frozenset()))

    def set_focused(self, project_id: str, track_id: Optional[str]) -> UIOverlayState:
        return self._update(project_id, lambda state: replace(state, focused_track_id=track_id or None))

    def clear_focus(self, project_id: str) -> UIOverlayState:
        return self.set_focused(project_id, None)

    # =========================================================================
    # VIEW NAVIGATION
    # =========================================================================

    def set_view_mode(self, project_id: str, view_mode: Union[ViewMode, str]) -> UIOverlayState:
        mode = _coerce_view_mode(view_mode)
        return self._update(project_id, lambda state: replace(state, view_mode=mode))

    def set_anchor_date(self, project_id: str, anchor_date: DateLike) -> UIOverlayState:
        anchor = _coerce_date(anchor_date).isoformat()
        return self._update(project_id, lambda state: replace(state, anchor_date=anchor))

    def navigate_weeks(self, project_id: str, weeks: int) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            anchor = shift_weeks(_coerce_date(state.anchor_date), weeks)
            return replace(state, anchor_date=anchor.isoformat())
        return self._update(project_id, change)

    def navigate_months(self, project_id: str, months: int) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            anchor = shift_months(_coerce_date(state.anchor_date), months)
            return replace(state, anchor_date=anchor.isoformat())
        return self._update(project_id, change)

    def navigate_to_today(self, project_id: str) -> UIOverlayState:
        today = self._clock().isoformat()
        return self._update(project_id, lambda state: replace(state, anchor_date=today))

    def enter_day_view(self, project_id: str, week_start: DateLike) -> UIOverlayState:
        """
        Switch to day view for a week, remembering the week view's anchor.

        Re-entering from day view keeps the originally remembered anchor.
        """
        start = _coerce_date(week_start).isoformat()

        def change(state: UIOverlayState) -> UIOverlayState:
            remembered = state.anchor_date
            if state.view_mode is ViewMode.DAY and state.last_week_anchor is not None:
                remembered = state.last_week_anchor
            return replace(state, view_mode=ViewMode.DAY, last_week_anchor=remembered, anchor_date=start)
        return self._update(project_id, change)

    def return_to_week_view(self, project_id: str) -> UIOverlayState:
        def change(state: UIOverlayState) -> UIOverlayState:
            return replace(
                state,
                view_mode=ViewMode.WEEK,
                anchor_date=state.last_week_anchor or state.anchor_date,
                last_week_anchor=None,
            )
        return self._update(project_id, change)
