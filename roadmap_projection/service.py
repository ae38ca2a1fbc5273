"""
Projection Service

Orchestrates one live projection for a (project, actor) pair.

STATE MACHINE:
==============
    LOADING --fetch + build ok--> READY
    LOADING --domain fetch fails--> ERROR   (tracks cleared, error exposed)
    LOADING --build fails--> ERROR
    READY/ERROR --refresh() or trigger change--> LOADING

TRIGGERS:
=========
- Project id change
- Actor change
- Overlay change notification for this project's storage key

SUPERSEDED BUILDS:
==================
Every pass captures its trigger key and a sequence number at start. A pass
that completes after a newer pass started, or after the trigger changed, is
discarded.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, List, Optional, Set, Tuple

from .builder import ProjectionBuilder, index_instances
from .contracts.errors import DomainFetchError, ProjectionBuildError
from .contracts.projection import ProjectionStatus, RoadmapProjection
from .overlay.channel import OverlayChange
from .overlay.store import OverlayStore
from .sources.base import DomainSource


_LOGGER = logging.getLogger("roadmap_projection.service")


ProjectionListener = Callable[[RoadmapProjection], None]


class ProjectionService:
    """
    Live projection of one project for one actor.

    The presentation layer reads `projection`, calls `refresh()`, and sends
    user actions to the overlay store. Overlay writes for the bound project
    schedule a rebuild on the running event loop.
    """

    def __init__(
        self,
        domain_source: DomainSource,
        builder: ProjectionBuilder,
        overlay_store: OverlayStore,
    ):
        self._domain = domain_source
        self._builder = builder
        self._overlay = overlay_store

        self._project_id: Optional[str] = None
        self._actor_id: Optional[str] = None
        self._sequence = 0
        self._snapshot = RoadmapProjection(project_id=None, status=ProjectionStatus.LOADING)
        self._listeners: List[ProjectionListener] = []
        self._pending: Set[asyncio.Task] = set()
        self._stale = False

        self._unsubscribe = overlay_store.channel.subscribe(self._on_overlay_change)

    # =========================================================================
    # PRESENTATION INTERFACE
    # =========================================================================

    @property
    def projection(self) -> RoadmapProjection:
        return self._snapshot

    @property
    def project_id(self) -> Optional[str]:
        return self._project_id

    @property
    def actor_id(self) -> Optional[str]:
        return self._actor_id

    @property
    def stale(self) -> bool:
        """True when an overlay change arrived with no event loop to rebuild on."""
        return self._stale

    def subscribe(self, listener: ProjectionListener) -> Callable[[], None]:
        """Receive every published snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_context(self, project_id: Optional[str], actor_id: Optional[str] = None) -> RoadmapProjection:
        """Bind the service to a project and actor. Rebuilds when either changes."""
        changed = (project_id, actor_id) != (self._project_id, self._actor_id)
        self._project_id = project_id
        self._actor_id = actor_id
        if changed or self._sequence == 0:
            return await self.refresh()
        return self._snapshot

    async def refresh(self) -> RoadmapProjection:
        """Run one build pass for the current trigger key."""
        self._stale = False
        project_id, actor_id = self._project_id, self._actor_id
        self._sequence += 1
        sequence = self._sequence
        trigger = (project_id, actor_id)

        if project_id is None:
            self._publish(RoadmapProjection(project_id=None, status=ProjectionStatus.READY))
            return self._snapshot

        previous = self._snapshot.tracks if self._snapshot.project_id == project_id else ()
        self._publish(RoadmapProjection(project_id=project_id, status=ProjectionStatus.LOADING, tracks=previous))
        _LOGGER.debug("Build %d started for project %s", sequence, project_id)

        overlay = self._overlay.current(project_id)

        try:
            tree, items, rows = await asyncio.gather(
                self._domain.get_track_tree(project_id),
                self._domain.get_items_by_project(project_id),
                self._domain.get_tracks_with_instances(project_id, True),
            )
        except Exception as exc:
            if self._superseded(sequence, trigger):
                _LOGGER.debug("Discarding failed build %d for project %s", sequence, project_id)
                return self._snapshot
            _LOGGER.error("Domain fetch failed for project %s", project_id, exc_info=exc)
            return self._fail(project_id, exc, DomainFetchError)

        try:
            tracks = await self._builder.build(
                project_id, actor_id, tree, items, index_instances(rows), overlay
            )
        except Exception as exc:
            if self._superseded(sequence, trigger):
                _LOGGER.debug("Discarding failed build %d for project %s", sequence, project_id)
                return self._snapshot
            _LOGGER.error("Projection build failed for project %s", project_id, exc_info=exc)
            return self._fail(project_id, exc, ProjectionBuildError)

        if self._superseded(sequence, trigger):
            _LOGGER.debug("Discarding superseded build %d for project %s", sequence, project_id)
            return self._snapshot

        self._publish(RoadmapProjection(project_id=project_id, status=ProjectionStatus.READY, tracks=tracks))
        _LOGGER.debug("Build %d ready for project %s: %d tracks", sequence, project_id, len(tracks))
        return self._snapshot

    async def wait_idle(self) -> None:
        """Wait for rebuilds scheduled by overlay changes."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def close(self) -> None:
        self._unsubscribe()
        for task in list(self._pending):
            task.cancel()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _superseded(self, sequence: int, trigger: Tuple[Optional[str], Optional[str]]) -> bool:
        return sequence != self._sequence or trigger != (self._project_id, self._actor_id)

    def _fail(self, project_id: str, exc: Exception, error_type: type) -> RoadmapProjection:
        error = exc if isinstance(exc, error_type) else error_type(str(exc))
        if error is not exc:
            error.__cause__ = exc
        error.with_context("project_id", project_id)
        self._publish(RoadmapProjection(
            project_id=project_id, status=ProjectionStatus.ERROR, error=error
        ))
        return self._snapshot

    def _publish(self, snapshot: RoadmapProjection) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _LOGGER.exception("Projection listener failed for project %s", snapshot.project_id)

    def _on_overlay_change(self, change: OverlayChange) -> None:
        if self._project_id is None or change.key != self._overlay.storage_key(self._project_id):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._stale = True
            _LOGGER.debug("Overlay changed for %s with no running loop; marked stale", change.key)
            return

        task = loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
