"""
Projection Builder

Assembles the read-only projection tree from domain inputs, visibility
instances and overlay state.

ALGORITHM (per top-level track T that passes the inclusion policy):
===================================================================
1. Resolve T's visibility instance (absence is tolerated)
2. Resolve T's edit capability, fail-closed
3. Partition T's directly-owned items
4. For each child S of T: resolve S's instance, apply the policy to S on its
   own, and on inclusion resolve S's items, capability and ui state
5. item_count = own items; total_item_count = own + included subtracks
6. Resolve T's collapse/highlight/focus

DEPTH:
======
Exactly one level. Children of subtracks are not projected and their items
are not counted anywhere.

LOOKUP MODES:
=============
SEQUENTIAL awaits one instance and one permission lookup per container.
BATCHED collects the ids first and issues one call of each kind. Both modes
produce identical trees.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .contracts.domain import (
    Track, TrackWithInstance, VisibilityInstance, VisibilityState, WorkItem
)
from .contracts.errors import ErrorCode
from .contracts.overlay import UIOverlayState
from .contracts.projection import (
    ProjectionSubtrack, ProjectionTrack, SubtrackUIState, TrackUIState
)
from .permissions import Capability, resolve_edit_capabilities, resolve_edit_capability
from .policy import should_include
from .sources.base import DomainSource, PermissionChecker


_LOGGER = logging.getLogger("roadmap_projection.builder")


class LookupMode(Enum):
    SEQUENTIAL = "sequential"
    BATCHED = "batched"


# =============================================================================
# PURE RESOLUTION HELPERS
# =============================================================================

def owned_track_items(track: Track, items: Iterable[WorkItem]) -> Tuple[WorkItem, ...]:
    """
    Items a track owns directly.

    An item that names one of the track's children as its subtrack belongs
    to that child, not to the track.
    """
    child_ids = set(track.child_ids)
    return tuple(
        item for item in items
        if item.track_id == track.id
        and (not item.subtrack_id or item.subtrack_id not in child_ids)
    )


def owned_subtrack_items(subtrack: Track, items: Iterable[WorkItem]) -> Tuple[WorkItem, ...]:
    """Items addressed to the subtrack itself or, in the legacy form, through its parent."""
    return tuple(
        item for item in items
        if item.track_id == subtrack.id or item.subtrack_id == subtrack.id
    )


def resolve_collapsed(
    container_id: str,
    collapsed: FrozenSet[str],
    expanded: FrozenSet[str],
    instance: Optional[VisibilityInstance],
) -> bool:
    """Explicit collapse, then explicit expand, then the instance default."""
    if container_id in collapsed:
        return True
    if container_id in expanded:
        return False
    return instance is not None and instance.visibility_state is VisibilityState.COLLAPSED


def index_instances(rows: Iterable[TrackWithInstance]) -> Dict[str, VisibilityInstance]:
    """Map track id to instance, skipping rows without one."""
    return {row.track.id: row.instance for row in rows if row.instance is not None}


@dataclass
class _Prefetched:
    """Lookup results gathered up front in batched mode."""
    instances: Dict[str, Optional[VisibilityInstance]] = field(default_factory=dict)
    capabilities: Dict[str, Capability] = field(default_factory=dict)


# =============================================================================
# BUILDER
# =============================================================================

class ProjectionBuilder:
    """
    Builds one projection pass.

    Instance and permission lookup failures are recovered per container and
    never abort the pass.
    """

    def __init__(
        self,
        domain_source: DomainSource,
        permission_checker: PermissionChecker,
        lookup_mode: LookupMode = LookupMode.SEQUENTIAL,
        sort_subtracks: bool = False,
    ):
        self._domain = domain_source
        self._permissions = permission_checker
        self._lookup_mode = lookup_mode
        self._sort_subtracks = sort_subtracks

    @property
    def lookup_mode(self) -> LookupMode:
        return self._lookup_mode

    async def build(
        self,
        project_id: str,
        actor_id: Optional[str],
        tree: Sequence[Track],
        items: Sequence[WorkItem],
        instances: Mapping[str, VisibilityInstance],
        overlay: UIOverlayState,
    ) -> Tuple[ProjectionTrack, ...]:
        """
        Project the top-level tracks of `tree`.

        `instances` holds the top-level instances from
        `get_tracks_with_instances`. Subtrack instances are looked up.
        """
        included: List[Tuple[Track, Optional[VisibilityInstance]]] = []
        for track in tree:
            instance = instances.get(track.id)
            if instance is None:
                _LOGGER.debug("No visibility instance for track %s in project %s", track.id, project_id)
            if should_include(instance, track.include_in_roadmap):
                included.append((track, instance))

        prefetched: Optional[_Prefetched] = None
        if self._lookup_mode is LookupMode.BATCHED:
            prefetched = await self._prefetch(project_id, actor_id, included)

        projected = []
        for track, instance in included:
            projected.append(
                await self._project_track(project_id, actor_id, track, instance, items, overlay, prefetched)
            )

        projected.sort(key=lambda node: node.sort_key)
        return tuple(projected)

    # =========================================================================
    # PER-CONTAINER ASSEMBLY
    # =========================================================================

    async def _project_track(
        self,
        project_id: str,
        actor_id: Optional[str],
        track: Track,
        instance: Optional[VisibilityInstance],
        items: Sequence[WorkItem],
        overlay: UIOverlayState,
        prefetched: Optional[_Prefetched],
    ) -> ProjectionTrack:
        can_edit = await self._can_edit(track.id, project_id, actor_id, prefetched)
        own_items = owned_track_items(track, items)

        subtracks: List[ProjectionSubtrack] = []
        for child in track.children:
            child_instance = await self._subtrack_instance(child, project_id, prefetched)
            if not should_include(child_instance, child.include_in_roadmap):
                continue
            child_items = owned_subtrack_items(child, items)
            subtracks.append(ProjectionSubtrack(
                track=child,
                instance=child_instance,
                items=child_items,
                can_edit=await self._can_edit(child.id, project_id, actor_id, prefetched),
                item_count=len(child_items),
                ui_state=SubtrackUIState(
                    collapsed=resolve_collapsed(
                        child.id, overlay.collapsed_subtracks, overlay.expanded_subtracks, child_instance
                    ),
                    highlighted=child.id in overlay.highlighted_tracks,
                ),
            ))

        if self._sort_subtracks:
            subtracks.sort(key=lambda node: node.sort_key)

        item_count = len(own_items)
        return ProjectionTrack(
            track=track,
            instance=instance,
            subtracks=tuple(subtracks),
            items=own_items,
            can_edit=can_edit,
            item_count=item_count,
            total_item_count=item_count + sum(sub.item_count for sub in subtracks),
            ui_state=TrackUIState(
                collapsed=resolve_collapsed(
                    track.id, overlay.collapsed_tracks, overlay.expanded_tracks, instance
                ),
                highlighted=track.id in overlay.highlighted_tracks,
                focused=overlay.focused_track_id == track.id,
            ),
        )

    async def _subtrack_instance(
        self,
        subtrack: Track,
        project_id: str,
        prefetched: Optional[_Prefetched],
    ) -> Optional[VisibilityInstance]:
        if prefetched is not None:
            return prefetched.instances.get(subtrack.id)
        try:
            return await self._domain.get_track_instance(subtrack.id, project_id)
        except Exception as exc:
            _LOGGER.warning(
                "Instance lookup failed for subtrack %s in project %s: %s [%s]",
                subtrack.id, project_id, exc, ErrorCode.INSTANCE_LOOKUP_FAILED.name,
            )
            return None

    async def _can_edit(
        self,
        container_id: str,
        project_id: str,
        actor_id: Optional[str],
        prefetched: Optional[_Prefetched],
    ) -> bool:
        if prefetched is not None:
            capability = prefetched.capabilities.get(container_id, Capability.UNKNOWN)
        else:
            capability = await resolve_edit_capability(
                self._permissions, container_id, project_id, actor_id
            )
        return capability.can_edit

    # =========================================================================
    # BATCHED LOOKUPS
    # =========================================================================

    async def _prefetch(
        self,
        project_id: str,
        actor_id: Optional[str],
        included: Sequence[Tuple[Track, Optional[VisibilityInstance]]],
    ) -> _Prefetched:
        prefetched = _Prefetched()
        subtrack_ids = [child.id for track, _ in included for child in track.children]

        if subtrack_ids:
            try:
                found = await self._domain.get_track_instances(subtrack_ids, project_id)
                prefetched.instances.update(found)
            except Exception as exc:
                _LOGGER.warning(
                    "Batched instance lookup failed for %d subtracks in project %s: %s [%s]",
                    len(subtrack_ids), project_id, exc, ErrorCode.INSTANCE_LOOKUP_FAILED.name,
                )

        # Only containers that will be projected are permission-checked.
        container_ids = []
        for track, _ in included:
            container_ids.append(track.id)
            for child in track.children:
                if should_include(prefetched.instances.get(child.id), child.include_in_roadmap):
                    container_ids.append(child.id)

        prefetched.capabilities.update(
            await resolve_edit_capabilities(self._permissions, container_ids, project_id, actor_id)
        )
        return prefetched
