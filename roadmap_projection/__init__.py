"""
Roadmap Projection Engine
=========================

Turns a hierarchical domain model (tracks, subtracks, work items), per-project
visibility instances and per-device UI overlay state into one read-only,
permission-annotated projection tree.

LAYER STRUCTURE:
================
1. contracts    - Immutable domain, overlay and projection types
2. policy       - The single inclusion gate
3. overlay      - Overlay persistence, mutation and change notification
4. sources      - Domain source and permission checker collaborators
5. builder      - One projection pass
6. service      - Live projection with refresh and resync
7. api          - Optional FastAPI surface

BOUNDARY RULES:
===============
- The engine never writes domain state
- Overlay state never leaves the device it was recorded on
- Projections are rebuilt wholesale, never patched
"""

from .builder import LookupMode, ProjectionBuilder
from .config import ProjectionConfig
from .engine import RoadmapEngine
from .overlay import OverlayChangeChannel, OverlayStore
from .policy import should_include
from .service import ProjectionService

__all__ = [
    'LookupMode',
    'ProjectionBuilder',
    'ProjectionConfig',
    'RoadmapEngine',
    'OverlayChangeChannel',
    'OverlayStore',
    'should_include',
    'ProjectionService',
]

__version__ = "0.1.0"
