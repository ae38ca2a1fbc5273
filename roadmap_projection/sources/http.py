"""
HTTP Collaborators

Domain source and permission checker backed by a REST domain service.

PRINCIPLES:
===========
1. Transport and HTTP failures become DomainFetchError, never bare httpx errors
2. A 404 on an instance lookup means "no instance", not a failure
3. Parse with tolerance; malformed rows fail the whole call explicitly
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..contracts.domain import (
    Track, VisibilityInstance, WorkItem, TrackWithInstance, PermissionResult
)
from ..contracts.errors import DomainFetchError
from .base import DomainSource, PermissionChecker
from .wire import (
    track_from_wire, item_from_wire, instance_from_wire,
    track_with_instance_from_wire, permission_from_wire,
)


class _HttpClientMixin:
    """Shared request handling for the HTTP collaborators."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Any:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params)
            if allow_missing and response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise DomainFetchError(f"Timed out fetching {path}").with_context('path', path) from exc
        except httpx.HTTPStatusError as exc:
            raise DomainFetchError(
                f"HTTP {exc.response.status_code} fetching {path}"
            ).with_context('path', path) from exc
        except httpx.HTTPError as exc:
            raise DomainFetchError(f"Network error fetching {path}: {exc}").with_context('path', path) from exc
        except ValueError as exc:
            raise DomainFetchError(f"Invalid JSON from {path}").with_context('path', path) from exc


def _require_list(payload: Any, path: str) -> List[Any]:
    if not isinstance(payload, list):
        raise DomainFetchError(f"Expected a list from {path}").with_context('path', path)
    return payload


class HttpDomainSource(_HttpClientMixin, DomainSource):
    """
    Domain source talking to the domain service.

    Endpoints (relative to base_url):
        GET /projects/{project}/tracks/tree
        GET /projects/{project}/roadmap-items
        GET /projects/{project}/tracks?includeInstances=true
        GET /projects/{project}/tracks/{track}/instance
    """

    async def get_track_tree(self, project_id: str) -> List[Track]:
        path = f"/projects/{project_id}/tracks/tree"
        rows = _require_list(await self._get_json(path), path)
        try:
            return [track_from_wire(row) for row in rows]
        except (KeyError, TypeError, AttributeError) as exc:
            raise DomainFetchError(f"Malformed track row from {path}") from exc

    async def get_items_by_project(self, project_id: str) -> List[WorkItem]:
        path = f"/projects/{project_id}/roadmap-items"
        rows = _require_list(await self._get_json(path), path)
        try:
            return [item_from_wire(row) for row in rows]
        except (KeyError, TypeError, AttributeError) as exc:
            raise DomainFetchError(f"Malformed item row from {path}") from exc

    async def get_tracks_with_instances(
        self,
        project_id: str,
        include_instances: bool = True,
    ) -> List[TrackWithInstance]:
        path = f"/projects/{project_id}/tracks"
        params = {'includeInstances': 'true' if include_instances else 'false'}
        rows = _require_list(await self._get_json(path, params=params), path)
        try:
            return [track_with_instance_from_wire(row, project_id) for row in rows]
        except (KeyError, TypeError, AttributeError) as exc:
            raise DomainFetchError(f"Malformed track row from {path}") from exc

    async def get_track_instance(
        self,
        track_id: str,
        project_id: str,
    ) -> Optional[VisibilityInstance]:
        path = f"/projects/{project_id}/tracks/{track_id}/instance"
        payload = await self._get_json(path, allow_missing=True)
        if not payload:
            return None
        try:
            return instance_from_wire({'trackId': track_id, **payload}, project_id)
        except (KeyError, TypeError) as exc:
            raise DomainFetchError(f"Malformed instance from {path}") from exc


class HttpPermissionChecker(_HttpClientMixin, PermissionChecker):
    """
    Permission checker talking to the domain service.

    The actor is identified by the headers given at construction
    (e.g. an Authorization header).
    """

    async def check_edit_permission(
        self,
        container_id: str,
        project_id: str,
    ) -> PermissionResult:
        path = f"/projects/{project_id}/tracks/{container_id}/permissions"
        payload = await self._get_json(path)
        if not isinstance(payload, Mapping):
            raise DomainFetchError(f"Expected an object from {path}").with_context('path', path)
        return permission_from_wire(payload)
