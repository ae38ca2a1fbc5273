"""
Projection Test Fixtures

Explicit, deterministic fixtures. No random generation.
"""

import asyncio
from datetime import date
from typing import Dict, Iterable, List, Optional

from roadmap_projection.builder import LookupMode, ProjectionBuilder, index_instances
from roadmap_projection.contracts import (
    OverlayStorageError,
    PermissionResult,
    Track,
    VisibilityInstance,
    VisibilityState,
    WorkItem,
)
from roadmap_projection.overlay import InMemoryKeyValueStore, KeyValueStore, OverlayChangeChannel, OverlayStore
from roadmap_projection.sources import (
    DomainSource,
    InMemoryDomainSource,
    InMemoryPermissionChecker,
    PermissionChecker,
)


# =============================================================================
# FIXED VALUES (deterministic)
# =============================================================================

PROJECT = "proj_alpha"
OTHER_PROJECT = "proj_beta"
ACTOR = "user_001"
TODAY = date(2024, 1, 10)


def fixed_clock() -> date:
    return TODAY


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# DOMAIN BUILDERS
# =============================================================================

def make_track(track_id: str, ordering_index: int = 0, children: Iterable[Track] = (),
               include_in_roadmap: Optional[bool] = None) -> Track:
    return Track(
        id=track_id,
        ordering_index=ordering_index,
        include_in_roadmap=include_in_roadmap,
        children=tuple(children),
        name=track_id.upper(),
        project_id=PROJECT,
    )


def make_instance(track_id: str, state: VisibilityState = VisibilityState.VISIBLE,
                  include_in_roadmap: bool = True, order_index: Optional[int] = None,
                  project_id: str = PROJECT) -> VisibilityInstance:
    return VisibilityInstance(
        track_id=track_id,
        project_id=project_id,
        visibility_state=state,
        include_in_roadmap=include_in_roadmap,
        order_index=order_index,
    )


def make_items(track_id: str, count: int, subtrack_id: Optional[str] = None,
               prefix: Optional[str] = None) -> List[WorkItem]:
    prefix = prefix or (subtrack_id or track_id)
    return [
        WorkItem(id=f"{prefix}_item_{n}", track_id=track_id, subtrack_id=subtrack_id, title=f"Item {n}")
        for n in range(count)
    ]


# =============================================================================
# SCENARIOS
# =============================================================================

def create_source_hidden_subtrack() -> InMemoryDomainSource:
    """Track A (no instance) with child B (hidden). No items anywhere."""
    source = InMemoryDomainSource()
    source.add_track(PROJECT, make_track("A", children=[make_track("B")]))
    source.set_instance(make_instance("B", VisibilityState.HIDDEN))
    return source


def create_source_with_counts() -> InMemoryDomainSource:
    """Track A with 2 own items and subtrack B with 3 items, both included."""
    source = InMemoryDomainSource()
    source.add_track(PROJECT, make_track("A", children=[make_track("B")]))
    source.add_items(PROJECT, make_items("A", 2))
    source.add_items(PROJECT, make_items("B", 3))
    return source


def create_source_ordered() -> InMemoryDomainSource:
    """Three tracks whose instance order overrides their ordering index."""
    source = InMemoryDomainSource()
    source.add_track(PROJECT, make_track("first", ordering_index=0))
    source.add_track(PROJECT, make_track("second", ordering_index=1))
    source.add_track(PROJECT, make_track("third", ordering_index=2))
    source.set_instance(make_instance("first", order_index=5))
    source.set_instance(make_instance("third", order_index=-1))
    return source


def create_store(storage: Optional[KeyValueStore] = None,
                 channel: Optional[OverlayChangeChannel] = None) -> OverlayStore:
    return OverlayStore(storage or InMemoryKeyValueStore(), channel or OverlayChangeChannel(), clock=fixed_clock)


def create_builder(source: DomainSource, checker: Optional[PermissionChecker] = None,
                   lookup_mode: LookupMode = LookupMode.SEQUENTIAL,
                   sort_subtracks: bool = False) -> ProjectionBuilder:
    return ProjectionBuilder(
        source,
        checker or InMemoryPermissionChecker(),
        lookup_mode=lookup_mode,
        sort_subtracks=sort_subtracks,
    )


async def build_projection(builder: ProjectionBuilder, source: DomainSource, store: OverlayStore,
                           actor_id: Optional[str] = ACTOR, project_id: str = PROJECT):
    """Run one build pass the way the service does."""
    tree = await source.get_track_tree(project_id)
    items = await source.get_items_by_project(project_id)
    rows = await source.get_tracks_with_instances(project_id, True)
    return await builder.build(project_id, actor_id, tree, items, index_instances(rows), store.current(project_id))


# =============================================================================
# FAILING COLLABORATORS
# =============================================================================

class FailingInstanceSource(InMemoryDomainSource):
    """Instance lookups for the listed tracks raise."""

    def __init__(self, failing_ids: Iterable[str]):
        super().__init__()
        self.failing_ids = set(failing_ids)
        self.instance_calls: List[str] = []
        self.batch_calls = 0

    async def get_track_instance(self, track_id, project_id):
        self.instance_calls.append(track_id)
        if track_id in self.failing_ids:
            raise ConnectionError(f"instance lookup for {track_id} failed")
        return await super().get_track_instance(track_id, project_id)

    async def get_track_instances(self, track_ids, project_id):
        self.batch_calls += 1
        return await super().get_track_instances(track_ids, project_id)


class UnavailableDomainSource(InMemoryDomainSource):
    """The item listing fails while `available` is False."""

    def __init__(self):
        super().__init__()
        self.available = False

    async def get_items_by_project(self, project_id):
        if not self.available:
            raise ConnectionError("domain service unreachable")
        return await super().get_items_by_project(project_id)


class RecordingPermissionChecker(PermissionChecker):
    """Grants everything except `failing` (raises) and `denied`, recording calls."""

    def __init__(self, failing: Iterable[str] = (), denied: Iterable[str] = (), malformed: Iterable[str] = ()):
        self.failing = set(failing)
        self.denied = set(denied)
        self.malformed = set(malformed)
        self.calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    async def check_edit_permission(self, container_id, project_id):
        self.calls.append(container_id)
        if container_id in self.failing:
            raise TimeoutError(f"permission service timed out for {container_id}")
        if container_id in self.malformed:
            return {"canEdit": "yes"}
        return PermissionResult(can_edit=container_id not in self.denied)

    async def check_edit_permissions(self, container_ids, project_id):
        ids = list(container_ids)
        self.batch_calls.append(ids)
        if self.failing & set(ids):
            raise TimeoutError("batched permission lookup timed out")
        results: Dict[str, PermissionResult] = {}
        for container_id in ids:
            results[container_id] = PermissionResult(can_edit=container_id not in self.denied)
        return results


class FailingKeyValueStore(InMemoryKeyValueStore):
    """Writes raise like a full disk; reads work."""

    def set(self, key, value):
        raise OverlayStorageError(f"quota exceeded writing {key}")


class BrokenReadKeyValueStore(InMemoryKeyValueStore):
    def get(self, key):
        raise OSError("storage unavailable")

