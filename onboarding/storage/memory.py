"""In-memory object store.

Keeps objects in a dict keyed by storage key. All data lives in memory and
is lost on restart; suitable for development and tests. Writes are guarded
by a lock so create-only writes stay atomic across threads.
"""

import threading
from typing import Dict, List, Tuple

from onboarding.errors import ObjectNotFound


class MemoryObjectStore:
    """Thread-safe in-memory implementation of the object store contract."""

    def __init__(self) -> None:
        # key -> (content type, body)
        self._objects: Dict[str, Tuple[str, bytes]] = {}
        self._lock = threading.Lock()

    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        """Store an object, replacing any existing one under the key."""
        with self._lock:
            self._objects[key] = (content_type, bytes(body))

    def put_object_if_absent(self, key: str, content_type: str, body: bytes) -> bool:
        """Store an object only if the key is free. Returns False if it was taken."""
        with self._lock:
            if key in self._objects:
                return False
            self._objects[key] = (content_type, bytes(body))
            return True

    def get_object(self, key: str) -> bytes:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise ObjectNotFound(f"No object stored under {key}")
        return entry[1]

    def list_keys(self, prefix: str) -> List[str]:
        """Return all keys starting with prefix, sorted."""
        with self._lock:
            return sorted(k for k in self._objects if k.startswith(prefix))
