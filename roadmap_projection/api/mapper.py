"""
API Mapper
==========

Transforms projections and overlay state into camelCase JSON DTOs for the
presentation layer. No interpretation: resolved ui state is passed through.
"""
from typing import Any, Dict

from ..contracts.overlay import UIOverlayState
from ..contracts.projection import ProjectionSubtrack, ProjectionTrack, RoadmapProjection
from ..sources.wire import instance_to_wire, item_to_wire, track_to_wire


def map_projection_to_dto(projection: RoadmapProjection) -> Dict[str, Any]:
    """Map a RoadmapProjection snapshot to the projection DTO."""
    error = None
    if projection.error is not None:
        error = {
            "code": getattr(getattr(projection.error, "code", None), "name", None),
            "message": str(projection.error),
        }

    return {
        "projectId": projection.project_id,
        "status": projection.status.value,
        "loading": projection.loading,
        "error": error,
        "totalTracks": projection.total_tracks,
        "totalItems": projection.total_items,
        "tracks": [_map_track(track) for track in projection.tracks],
    }


def _map_track(node: ProjectionTrack) -> Dict[str, Any]:
    # Children are projected separately; the raw child list would bypass the policy.
    track = track_to_wire(node.track)
    track.pop("children")
    return {
        "track": track,
        "instance": instance_to_wire(node.instance),
        "subtracks": [_map_subtrack(sub) for sub in node.subtracks],
        "items": [item_to_wire(item) for item in node.items],
        "canEdit": node.can_edit,
        "itemCount": node.item_count,
        "totalItemCount": node.total_item_count,
        "uiState": {
            "collapsed": node.ui_state.collapsed,
            "highlighted": node.ui_state.highlighted,
            "focused": node.ui_state.focused,
        },
    }


def _map_subtrack(node: ProjectionSubtrack) -> Dict[str, Any]:
    track = track_to_wire(node.track)
    track.pop("children")
    return {
        "track": track,
        "instance": instance_to_wire(node.instance),
        "items": [item_to_wire(item) for item in node.items],
        "canEdit": node.can_edit,
        "itemCount": node.item_count,
        "uiState": {
            "collapsed": node.ui_state.collapsed,
            "highlighted": node.ui_state.highlighted,
        },
    }


def map_overlay_to_dto(project_id: str, state: UIOverlayState) -> Dict[str, Any]:
    """Overlay state in its storage shape, plus the project it belongs to."""
    dto = state.to_storage_dict()
    dto["projectId"] = project_id
    dto.setdefault("lastWeekAnchor", None)
    return dto
