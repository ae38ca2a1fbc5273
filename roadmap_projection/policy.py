"""
Inclusion Policy

The single gate deciding whether a track or subtrack enters the projection.

RULES:
======
- No instance: the track's default inclusion flag, or True when unset
- Instance excluded from the roadmap: False
- Instance hidden or archived: False
- Anything else: True

WHAT THIS MODULE MUST NOT DO:
=============================
- Look at item counts or child counts. Empty containers are included like
  any other container.
"""

from __future__ import annotations
from typing import Optional

from .contracts.domain import VisibilityInstance, VisibilityState


EXCLUDED_STATES = frozenset({VisibilityState.HIDDEN, VisibilityState.ARCHIVED})


def should_include(
    instance: Optional[VisibilityInstance],
    default_include: Optional[bool],
) -> bool:
    """Decide inclusion for one container. Used for tracks and subtracks alike."""
    if instance is None:
        return default_include if default_include is not None else True

    if not instance.include_in_roadmap:
        return False

    return instance.visibility_state not in EXCLUDED_STATES
