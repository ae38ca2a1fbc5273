"""
Error Contracts

Explicit, enumerated error states for the projection engine.

FAILURE TAXONOMY:
=================
1. Domain fetch failure      -> fatal to one build pass, surfaced to callers
2. Instance lookup failure   -> recovered as "no instance"
3. Permission lookup failure -> recovered as can_edit = False
4. Overlay read failure      -> recovered as default overlay state
5. Overlay write failure     -> recovered, in-memory state kept
6. Unexpected build failure  -> fatal to one build pass, surfaced to callers

Only (1) and (6) ever reach the presentation layer as errors.
"""

from __future__ import annotations
from enum import Enum, auto
from typing import Optional, Tuple


class ErrorCode(Enum):
    """Every error state the engine can report."""
    DOMAIN_UNAVAILABLE = auto()
    INSTANCE_LOOKUP_FAILED = auto()
    PERMISSION_LOOKUP_FAILED = auto()
    OVERLAY_READ_FAILED = auto()
    OVERLAY_WRITE_FAILED = auto()
    INVALID_OVERLAY_VALUE = auto()
    BUILD_FAILED = auto()


class ProjectionError(Exception):
    """Base error for the engine. Carries a code and key/value context."""

    code: ErrorCode = ErrorCode.DOMAIN_UNAVAILABLE

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        context: Tuple[Tuple[str, str], ...] = (),
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context

    def with_context(self, key: str, value: str) -> "ProjectionError":
        self.context = self.context + ((key, value),)
        return self


class DomainFetchError(ProjectionError):
    """The domain source could not deliver the inputs of a build."""
    code = ErrorCode.DOMAIN_UNAVAILABLE


class ProjectionBuildError(ProjectionError):
    """Assembling the tree failed after the domain inputs arrived."""
    code = ErrorCode.BUILD_FAILED


class OverlayStorageError(ProjectionError):
    """The durable key/value store rejected a read or write."""
    code = ErrorCode.OVERLAY_WRITE_FAILED


class InvalidOverlayValue(ProjectionError, ValueError):
    """A mutator received a value the overlay cannot hold."""
    code = ErrorCode.INVALID_OVERLAY_VALUE
