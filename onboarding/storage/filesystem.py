"""Filesystem object store.

Maps storage keys to files under a root directory, so a single-node
deployment keeps its case records across restarts. Every write lands in a
temporary file first, so a key never holds a partial body. Replacing writes
then rename over the key; create-only writes hard-link the temporary file
into place, which fails if the key already exists.
"""

import os
import tempfile
from pathlib import Path
from typing import List

from onboarding.errors import ObjectNotFound, PersistenceError

TEMP_PREFIX = ".tmp-"


class FileObjectStore:
    """Object store backed by a directory tree."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise PersistenceError(f"Storage key escapes the store root: {key}")
        return path

    def _write_temp(self, path: Path, body: bytes) -> str:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=TEMP_PREFIX)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            os.unlink(tmp_name)
            raise
        return tmp_name

    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        path = self._path(key)
        tmp_name = self._write_temp(path, body)
        try:
            os.replace(tmp_name, path)
        except BaseException:
            os.unlink(tmp_name)
            raise

    def put_object_if_absent(self, key: str, content_type: str, body: bytes) -> bool:
        path = self._path(key)
        tmp_name = self._write_temp(path, body)
        try:
            os.link(tmp_name, path)
        except FileExistsError:
            return False
        finally:
            os.unlink(tmp_name)
        return True

    def get_object(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFound(f"No object stored under {key}", original_error=e) from e

    def list_keys(self, prefix: str) -> List[str]:
        """Return all keys starting with prefix, sorted.

        Only the directory named by the prefix is walked, not the whole store.
        """
        base = self.root / prefix[: prefix.rfind("/") + 1]
        if not base.is_dir():
            return []
        keys = []
        for path in base.rglob("*"):
            if path.is_file() and not path.name.startswith(TEMP_PREFIX):
                key = path.relative_to(self.root).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
        return sorted(keys)
