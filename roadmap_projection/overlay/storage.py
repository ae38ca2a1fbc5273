"""Durable client-local key/value stores for overlay state."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from ..contracts.errors import ErrorCode, OverlayStorageError


_LOGGER = logging.getLogger("roadmap_projection.overlay.storage")


class KeyValueStore:
    """
    Synchronous string key/value store.

    Implementations raise OverlayStorageError when the medium fails.
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Survives reloads of a service, not of the process."""

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """One file per key under a directory, replaced atomically on write."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise OverlayStorageError(
                f"Failed to read {path}: {exc}", code=ErrorCode.OVERLAY_READ_FAILED
            ) from exc

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise OverlayStorageError(f"Failed to write {path}: {exc}") from exc
        _LOGGER.debug("Wrote overlay entry %s", path)

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise OverlayStorageError(f"Failed to remove {path}: {exc}") from exc
