"""
Engine Wiring Module

Builds the collaborators, the overlay store and the builder from one
configuration, and opens projection services on top of them.

DESIGN PRINCIPLES:
==================
1. One overlay store and one change channel per engine, shared by every
   service it opens, so views of the same project stay consistent
2. Collaborators are injectable; configuration only fills the gaps
"""

from __future__ import annotations
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from .builder import ProjectionBuilder
from .config import ProjectionConfig
from .overlay.channel import OverlayChangeChannel
from .overlay.navigation import today_utc
from .overlay.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .overlay.store import OverlayStore
from .service import ProjectionService
from .sources.base import DomainSource, PermissionChecker
from .sources.http import HttpDomainSource, HttpPermissionChecker
from .sources.memory import InMemoryDomainSource, InMemoryPermissionChecker


class RoadmapEngine:
    """
    Unified entry point for the projection engine.

    WIRING:
    =======
    - domain_base_url set: HTTP domain source and permission checker
    - otherwise: in-memory collaborators (empty until populated)
    - overlay_dir set: one JSON file per project overlay
    - otherwise: process-local key/value store
    """

    def __init__(
        self,
        config: Optional[ProjectionConfig] = None,
        domain_source: Optional[DomainSource] = None,
        permission_checker: Optional[PermissionChecker] = None,
        storage: Optional[KeyValueStore] = None,
        clock: Callable[[], date] = today_utc,
    ):
        self._config = config or ProjectionConfig()

        if domain_source is None:
            domain_source = self._default_domain_source()
        if permission_checker is None:
            permission_checker = self._default_permission_checker(domain_source)
        if storage is None:
            storage = self._default_storage()

        self._domain = domain_source
        self._permissions = permission_checker
        self._channel = OverlayChangeChannel()
        self._overlay = OverlayStore(
            storage,
            self._channel,
            key_prefix=self._config.storage_key_prefix,
            clock=clock,
        )
        self._builder = ProjectionBuilder(
            domain_source,
            permission_checker,
            lookup_mode=self._config.lookup_mode,
            sort_subtracks=self._config.sort_subtracks,
        )

    @property
    def config(self) -> ProjectionConfig:
        return self._config

    @property
    def domain_source(self) -> DomainSource:
        return self._domain

    @property
    def permission_checker(self) -> PermissionChecker:
        return self._permissions

    @property
    def overlay(self) -> OverlayStore:
        return self._overlay

    @property
    def channel(self) -> OverlayChangeChannel:
        return self._channel

    @property
    def builder(self) -> ProjectionBuilder:
        return self._builder

    def open_projection(self) -> ProjectionService:
        """A new, unbound projection service. Call `set_context` to start it."""
        return ProjectionService(self._domain, self._builder, self._overlay)

    # =========================================================================
    # DEFAULT COLLABORATORS
    # =========================================================================

    def _default_domain_source(self) -> DomainSource:
        if self._config.domain_base_url:
            return HttpDomainSource(self._config.domain_base_url, timeout=self._config.request_timeout)
        return InMemoryDomainSource()

    def _default_permission_checker(self, domain_source: DomainSource) -> PermissionChecker:
        if self._config.domain_base_url:
            return HttpPermissionChecker(self._config.domain_base_url, timeout=self._config.request_timeout)
        if isinstance(domain_source, InMemoryDomainSource):
            return InMemoryPermissionChecker(domain_source=domain_source)
        return InMemoryPermissionChecker()

    def _default_storage(self) -> KeyValueStore:
        if self._config.overlay_dir:
            return JsonFileKeyValueStore(Path(self._config.overlay_dir))
        return InMemoryKeyValueStore()
