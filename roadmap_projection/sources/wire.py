"""
Wire Format

Conversion between the domain service's camelCase JSON and domain contracts.

MAPPING RULES:
==============
1. Unknown fields are ignored
2. Missing optional fields map to None, never to a guessed value
3. Unknown visibility states read as visible
"""

from __future__ import annotations
from typing import Any, Dict, Mapping, Optional

from ..contracts.domain import (
    Track, VisibilityInstance, VisibilityState, WorkItem, TrackWithInstance,
    PermissionResult,
)


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def track_from_wire(data: Mapping[str, Any]) -> Track:
    children = data.get('children') or []
    return Track(
        id=str(data['id']),
        ordering_index=_optional_int(data.get('orderingIndex')) or 0,
        include_in_roadmap=_optional_bool(data.get('includeInRoadmap')),
        children=tuple(track_from_wire(child) for child in children),
        name=data.get('name') or "",
        project_id=data.get('masterProjectId'),
    )


def instance_from_wire(data: Mapping[str, Any], project_id: Optional[str] = None) -> VisibilityInstance:
    include = data.get('includeInRoadmap')
    return VisibilityInstance(
        track_id=str(data['trackId']),
        project_id=str(data.get('masterProjectId') or data.get('projectId') or project_id or ""),
        visibility_state=VisibilityState.parse(data.get('visibilityState')),
        include_in_roadmap=include if isinstance(include, bool) else True,
        order_index=_optional_int(data.get('orderIndex')),
    )


def item_from_wire(data: Mapping[str, Any]) -> WorkItem:
    subtrack_id = data.get('subtrackId')
    return WorkItem(
        id=str(data['id']),
        track_id=str(data['trackId']),
        subtrack_id=str(subtrack_id) if subtrack_id else None,
        title=data.get('title') or "",
        start_date=data.get('startDate'),
        end_date=data.get('endDate'),
    )


def track_with_instance_from_wire(data: Mapping[str, Any], project_id: str) -> TrackWithInstance:
    """Rows carry the track fields inline plus an optional `instance`."""
    instance_data = data.get('instance')
    instance = None
    if isinstance(instance_data, Mapping):
        instance = instance_from_wire({'trackId': data['id'], **instance_data}, project_id)
    return TrackWithInstance(track=track_from_wire(data), instance=instance)


def permission_from_wire(data: Mapping[str, Any]) -> PermissionResult:
    can_edit = data.get('canEdit')
    if not isinstance(can_edit, bool):
        raise ValueError(f"Permission answer without boolean canEdit: {data!r}")
    return PermissionResult(can_edit=can_edit, reason=data.get('reason'))


def track_to_wire(track: Track) -> Dict[str, Any]:
    return {
        'id': track.id,
        'name': track.name,
        'orderingIndex': track.ordering_index,
        'includeInRoadmap': track.include_in_roadmap,
        'masterProjectId': track.project_id,
        'children': [track_to_wire(child) for child in track.children],
    }


def instance_to_wire(instance: Optional[VisibilityInstance]) -> Optional[Dict[str, Any]]:
    if instance is None:
        return None
    return {
        'trackId': instance.track_id,
        'masterProjectId': instance.project_id,
        'visibilityState': instance.visibility_state.value,
        'includeInRoadmap': instance.include_in_roadmap,
        'orderIndex': instance.order_index,
    }


def item_to_wire(item: WorkItem) -> Dict[str, Any]:
    return {
        'id': item.id,
        'trackId': item.track_id,
        'subtrackId': item.subtrack_id,
        'title': item.title,
        'startDate': item.start_date,
        'endDate': item.end_date,
    }
