"""
Projection Contracts Package

Immutable data types shared by every component of the engine.

BOUNDARY ENFORCEMENT:
=====================
1. Domain types mirror the domain source and are never written
2. Overlay state is per-device UI state, never domain state
3. Projection types are derived and discarded on every rebuild
"""

from .errors import (
    ErrorCode,
    ProjectionError,
    DomainFetchError,
    ProjectionBuildError,
    OverlayStorageError,
    InvalidOverlayValue,
)
from .domain import (
    VisibilityState,
    Track,
    VisibilityInstance,
    WorkItem,
    TrackWithInstance,
    PermissionResult,
)
from .overlay import ViewMode, UIOverlayState, parse_iso_date
from .projection import (
    ProjectionStatus,
    TrackUIState,
    SubtrackUIState,
    ProjectionTrack,
    ProjectionSubtrack,
    RoadmapProjection,
    ordering_key,
)

__all__ = [
    # Errors
    'ErrorCode',
    'ProjectionError',
    'DomainFetchError',
    'ProjectionBuildError',
    'OverlayStorageError',
    'InvalidOverlayValue',
    # Domain
    'VisibilityState',
    'Track',
    'VisibilityInstance',
    'WorkItem',
    'TrackWithInstance',
    'PermissionResult',
    # Overlay
    'ViewMode',
    'UIOverlayState',
    'parse_iso_date',
    # Projection
    'ProjectionStatus',
    'TrackUIState',
    'SubtrackUIState',
    'ProjectionTrack',
    'ProjectionSubtrack',
    'RoadmapProjection',
    'ordering_key',
]
