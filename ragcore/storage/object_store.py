"""
Object storage boundary.

The pipeline only needs atomic put/get of whole objects by key; encoding
is the caller's job. Two variants: a directory on the local filesystem
and a process-local dictionary.
"""

import asyncio
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from ragcore.errors import StorageError


logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Abstract byte-object store."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous object."""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the object stored under ``key``; raises StorageError if missing."""
        pass


class LocalObjectStorage(ObjectStorage):
    """Objects as files under a root directory, written via rename for atomicity."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LocalObjectStorage at {self.root}")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError("Storage key escapes the storage root", key=key)
        return path

    def _write(self, path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise StorageError(f"Failed to write object: {e}", key=key) from e
        logger.debug(f"Stored {len(data)} bytes at {key}")

    async def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError("Object not found", key=key) from e
        except OSError as e:
            raise StorageError(f"Failed to read object: {e}", key=key) from e


class InMemoryObjectStorage(ObjectStorage):
    """Objects in a dictionary; for development and tests."""

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()

    async def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[key] = bytes(data)

    async def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise StorageError("Object not found", key=key)
            return self._objects[key]
