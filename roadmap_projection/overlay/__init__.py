"""
Overlay Package

Per-device UI overlay: persistence, mutation and cross-instance change
notification. Never touches domain state.
"""

from .storage import KeyValueStore, InMemoryKeyValueStore, JsonFileKeyValueStore
from .channel import ChangeOrigin, OverlayChange, OverlayChangeChannel
from .store import OverlayStore, DEFAULT_KEY_PREFIX

__all__ = [
    'KeyValueStore',
    'InMemoryKeyValueStore',
    'JsonFileKeyValueStore',
    'ChangeOrigin',
    'OverlayChange',
    'OverlayChangeChannel',
    'OverlayStore',
    'DEFAULT_KEY_PREFIX',
]
