"""In-process object store.

Backs the discovery protocol with a dict so several nodes inside one
process can share a "bucket" (local runs, tests).
"""

from __future__ import annotations

import threading
from typing import Iterator

from ..exceptions import ObjectNotFoundError
from .store_gateway import StoreGateway


class MemoryStoreGateway(StoreGateway):
    """Thread-safe dict-backed :class:`StoreGateway`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: dict[str, bytes] = {}

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[key] = bytes(data)

    def get(self, key: str) -> bytes:
        with self._lock:
            data = self._objects.get(key)
        if data is None:
            raise ObjectNotFoundError(key)
        return data

    def list(self, prefix: str) -> Iterator[str]:
        # Snapshot so concurrent writers cannot break iteration
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
        yield from keys

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def keys(self) -> list[str]:
        """Return every stored key, sorted."""
        with self._lock:
            return sorted(self._objects)
