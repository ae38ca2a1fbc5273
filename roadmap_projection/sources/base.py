"""
Collaborator Interfaces

Abstract interfaces for the domain source and the permission checker.

WHY ABSTRACT:
=============
The builder and the service must not know where tracks, instances and
permissions come from. Concrete sources (in-memory, HTTP) implement these.

BATCHING:
=========
The batch methods have sequential default implementations, so every source
supports batched lookups. Sources with a real batch endpoint override them.
The default instance batch recovers each failing id on its own, exactly as
the sequential path does.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import logging
from typing import Dict, Iterable, List, Optional

from ..contracts.domain import (
    Track, VisibilityInstance, WorkItem, TrackWithInstance, PermissionResult
)
from ..contracts.errors import ErrorCode


_LOGGER = logging.getLogger("roadmap_projection.sources")


class DomainSource(ABC):
    """Read-only access to the track hierarchy, items and instances."""

    @abstractmethod
    async def get_track_tree(self, project_id: str) -> List[Track]:
        """Top-level tracks of a project, each with its children."""

    @abstractmethod
    async def get_items_by_project(self, project_id: str) -> List[WorkItem]:
        """Every work item of a project."""

    @abstractmethod
    async def get_tracks_with_instances(
        self,
        project_id: str,
        include_instances: bool = True,
    ) -> List[TrackWithInstance]:
        """Tracks of a project paired with their visibility instance."""

    @abstractmethod
    async def get_track_instance(
        self,
        track_id: str,
        project_id: str,
    ) -> Optional[VisibilityInstance]:
        """Visibility instance of one track, or None if it has none."""

    async def get_track_instances(
        self,
        track_ids: Iterable[str],
        project_id: str,
    ) -> Dict[str, Optional[VisibilityInstance]]:
        """
        Instances for many tracks at once.

        A failed lookup maps that one id to None and never cancels the rest.
        """
        instances: Dict[str, Optional[VisibilityInstance]] = {}
        for track_id in track_ids:
            try:
                instances[track_id] = await self.get_track_instance(track_id, project_id)
            except Exception as exc:
                _LOGGER.warning(
                    "Instance lookup failed for track %s in project %s: %s [%s]",
                    track_id, project_id, exc, ErrorCode.INSTANCE_LOOKUP_FAILED.name,
                )
                instances[track_id] = None
        return instances


class PermissionChecker(ABC):
    """Answers "can the current actor edit this container"."""

    @abstractmethod
    async def check_edit_permission(
        self,
        container_id: str,
        project_id: str,
    ) -> PermissionResult:
        """May raise; callers treat failures as denied."""

    async def check_edit_permissions(
        self,
        container_ids: Iterable[str],
        project_id: str,
    ) -> Dict[str, PermissionResult]:
        results: Dict[str, PermissionResult] = {}
        for container_id in container_ids:
            results[container_id] = await self.check_edit_permission(container_id, project_id)
        return results
