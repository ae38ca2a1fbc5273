"""
In-Memory Collaborators

Reference implementations of the domain source and the permission checker.
Suitable for tests, demos and the default server wiring.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..contracts.domain import (
    Track, VisibilityInstance, WorkItem, TrackWithInstance, PermissionResult
)
from .base import DomainSource, PermissionChecker


class InMemoryDomainSource(DomainSource):
    """
    Domain source backed by plain dictionaries.

    Tracks are registered per project as top-level trees; instances are keyed
    by (track_id, project_id).
    """

    def __init__(self):
        self._trees: Dict[str, List[Track]] = {}
        self._items: Dict[str, List[WorkItem]] = {}
        self._instances: Dict[Tuple[str, str], VisibilityInstance] = {}

    # =========================================================================
    # SETUP
    # =========================================================================

    def add_track(self, project_id: str, track: Track) -> None:
        """Register a top-level track (with its children) for a project."""
        self._trees.setdefault(project_id, []).append(track)

    def add_items(self, project_id: str, items: Iterable[WorkItem]) -> None:
        self._items.setdefault(project_id, []).extend(items)

    def set_instance(self, instance: VisibilityInstance) -> None:
        self._instances[(instance.track_id, instance.project_id)] = instance

    def find_track(self, project_id: str, track_id: str) -> Optional[Track]:
        for track in self._walk(project_id):
            if track.id == track_id:
                return track
        return None

    def _walk(self, project_id: str):
        stack = list(reversed(self._trees.get(project_id, [])))
        while stack:
            track = stack.pop()
            yield track
            stack.extend(reversed(track.children))

    # =========================================================================
    # DOMAIN SOURCE INTERFACE
    # =========================================================================

    async def get_track_tree(self, project_id: str) -> List[Track]:
        return list(self._trees.get(project_id, []))

    async def get_items_by_project(self, project_id: str) -> List[WorkItem]:
        return list(self._items.get(project_id, []))

    async def get_tracks_with_instances(
        self,
        project_id: str,
        include_instances: bool = True,
    ) -> List[TrackWithInstance]:
        rows = []
        for track in self._walk(project_id):
            instance = self._instances.get((track.id, project_id)) if include_instances else None
            rows.append(TrackWithInstance(track=track, instance=instance))
        return rows

    async def get_track_instance(
        self,
        track_id: str,
        project_id: str,
    ) -> Optional[VisibilityInstance]:
        return self._instances.get((track_id, project_id))


class InMemoryPermissionChecker(PermissionChecker):
    """
    Grant table per project.

    When a domain source is given, containers it does not know are denied
    with reason "Track not found".
    """

    def __init__(
        self,
        grants: Optional[Mapping[str, Iterable[str]]] = None,
        domain_source: Optional[InMemoryDomainSource] = None,
    ):
        self._grants: Dict[str, Set[str]] = {
            project_id: set(ids) for project_id, ids in (grants or {}).items()
        }
        self._domain_source = domain_source

    def grant(self, project_id: str, container_id: str) -> None:
        self._grants.setdefault(project_id, set()).add(container_id)

    def revoke(self, project_id: str, container_id: str) -> None:
        self._grants.get(project_id, set()).discard(container_id)

    async def check_edit_permission(
        self,
        container_id: str,
        project_id: str,
    ) -> PermissionResult:
        if self._domain_source is not None:
            if self._domain_source.find_track(project_id, container_id) is None:
                return PermissionResult(can_edit=False, reason="Track not found")

        if container_id in self._grants.get(project_id, set()):
            return PermissionResult(can_edit=True)
        return PermissionResult(can_edit=False, reason="No edit grant for this project")
