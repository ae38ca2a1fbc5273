"""
Engine Configuration

WHY FROZEN:
Configuration is read once at wiring time. Changes require a new instance.

ENVIRONMENT:
============
ROADMAP_STORAGE_KEY_PREFIX  overlay storage key prefix
ROADMAP_LOOKUP_MODE         sequential | batched
ROADMAP_SORT_SUBTRACKS      1/true/yes to order subtracks like tracks
ROADMAP_DOMAIN_URL          base URL of the REST domain service (unset = in-memory)
ROADMAP_REQUEST_TIMEOUT     seconds per domain/permission request
ROADMAP_OVERLAY_DIR         directory for overlay files (unset = in-memory)
ROADMAP_LOG_LEVEL           logging level name
ROADMAP_LOG_DIR             directory for the rotating log file
"""

from __future__ import annotations
from dataclasses import dataclass
import os
from typing import Mapping, Optional

from .builder import LookupMode
from .overlay.store import DEFAULT_KEY_PREFIX


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class ProjectionConfig:
    """Wiring options for the projection engine and its API server."""
    storage_key_prefix: str = DEFAULT_KEY_PREFIX
    lookup_mode: LookupMode = LookupMode.SEQUENTIAL
    sort_subtracks: bool = False  # Subtracks keep domain order by default
    domain_base_url: Optional[str] = None
    request_timeout: float = 10.0
    overlay_dir: Optional[str] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ProjectionConfig':
        env = os.environ if environ is None else environ
        defaults = cls()

        mode_value = env.get("ROADMAP_LOOKUP_MODE", defaults.lookup_mode.value).strip().lower()
        try:
            lookup_mode = LookupMode(mode_value)
        except ValueError:
            raise ValueError(f"ROADMAP_LOOKUP_MODE must be sequential or batched, got {mode_value!r}") from None

        timeout_value = env.get("ROADMAP_REQUEST_TIMEOUT")
        try:
            request_timeout = float(timeout_value) if timeout_value else defaults.request_timeout
        except ValueError:
            raise ValueError(f"ROADMAP_REQUEST_TIMEOUT must be a number, got {timeout_value!r}") from None

        return cls(
            storage_key_prefix=env.get("ROADMAP_STORAGE_KEY_PREFIX", defaults.storage_key_prefix),
            lookup_mode=lookup_mode,
            sort_subtracks=env.get("ROADMAP_SORT_SUBTRACKS", "").strip().lower() in _TRUE_VALUES,
            domain_base_url=env.get("ROADMAP_DOMAIN_URL") or None,
            request_timeout=request_timeout,
            overlay_dir=env.get("ROADMAP_OVERLAY_DIR") or None,
            log_level=env.get("ROADMAP_LOG_LEVEL", defaults.log_level).upper(),
            log_dir=env.get("ROADMAP_LOG_DIR") or None,
        )
