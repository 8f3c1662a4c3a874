"""Opaque key -> blob stores for persisting the ephemeris cache.

A store exposes ``load(id) -> bytes | None`` and ``save(id, blob)``.
"""

import logging
import re
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class CacheStore(Protocol):
    def load(self, key: str) -> Optional[bytes]:
        ...

    def save(self, key: str, blob: bytes) -> bool:
        ...


class InMemoryCacheStore:
    """Process-local store, only suitable for development and tests."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(key)

    def save(self, key: str, blob: bytes) -> bool:
        with self._lock:
            self._blobs[key] = bytes(blob)
        return True


class FileCacheStore:
    """One file per key under ``root``."""

    def __init__(self, root) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_SAFE_ID.sub('_', key)}.json"

    def load(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def save(self, key: str, blob: bytes) -> bool:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(blob)
        tmp.replace(path)
        logger.debug("cache_blob_saved", extra={"path": str(path), "size": len(blob)})
        return True
