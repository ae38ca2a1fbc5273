"""
Edit Capability Resolution

Turns permission checker answers into a tri-state capability.

FAIL-CLOSED:
============
GRANTED is the only state that allows editing. A failed or malformed lookup
is UNKNOWN and is treated as DENIED. No exception from the checker ever
reaches the caller.
"""

from __future__ import annotations
from enum import Enum
import logging
from typing import Dict, Iterable, Mapping, Optional

from .contracts.domain import PermissionResult
from .contracts.errors import ErrorCode
from .sources.base import PermissionChecker


_LOGGER = logging.getLogger("roadmap_projection.permissions")


class Capability(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN = "unknown"

    @property
    def can_edit(self) -> bool:
        return self is Capability.GRANTED


def capability_from_result(result: object) -> Capability:
    """Classify a checker answer. Anything but a PermissionResult is UNKNOWN."""
    if not isinstance(result, PermissionResult):
        return Capability.UNKNOWN
    return Capability.GRANTED if result.can_edit is True else Capability.DENIED


async def resolve_edit_capability(
    checker: PermissionChecker,
    container_id: str,
    project_id: str,
    actor_id: Optional[str],
) -> Capability:
    """
    Ask the checker about one container.

    Without an actor there is nothing to check and the answer is DENIED.
    """
    if not actor_id:
        return Capability.DENIED

    try:
        result = await checker.check_edit_permission(container_id, project_id)
    except Exception as exc:
        _LOGGER.warning(
            "Permission check failed for container %s in project %s: %s [%s]",
            container_id, project_id, exc, ErrorCode.PERMISSION_LOOKUP_FAILED.name,
        )
        return Capability.UNKNOWN

    capability = capability_from_result(result)
    if capability is Capability.UNKNOWN:
        _LOGGER.warning(
            "Permission check for container %s returned %r; treating as denied [%s]",
            container_id, result, ErrorCode.PERMISSION_LOOKUP_FAILED.name,
        )
    return capability


async def resolve_edit_capabilities(
    checker: PermissionChecker,
    container_ids: Iterable[str],
    project_id: str,
    actor_id: Optional[str],
) -> Dict[str, Capability]:
    """
    Batched variant: one checker call for many containers.

    A failed or malformed batch leaves every container UNKNOWN.
    """
    ids = list(container_ids)
    if not actor_id:
        return {container_id: Capability.DENIED for container_id in ids}
    if not ids:
        return {}

    try:
        results: Mapping[str, PermissionResult] = await checker.check_edit_permissions(ids, project_id)
    except Exception as exc:
        _LOGGER.warning(
            "Batched permission check failed for %d containers in project %s: %s [%s]",
            len(ids), project_id, exc, ErrorCode.PERMISSION_LOOKUP_FAILED.name,
        )
        return {container_id: Capability.UNKNOWN for container_id in ids}

    if not isinstance(results, Mapping):
        _LOGGER.warning(
            "Batched permission check for project %s returned %r; treating as denied [%s]",
            project_id, results, ErrorCode.PERMISSION_LOOKUP_FAILED.name,
        )
        return {container_id: Capability.UNKNOWN for container_id in ids}

    return {
        container_id: capability_from_result(results.get(container_id))
        for container_id in ids
    }
