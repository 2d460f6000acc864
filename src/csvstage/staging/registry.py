"""Collection name to staging file mapping.

Each collection gets exactly one staging file at
``<staging_root>/<collection>/temp_data.sqlite``. The registry remembers the
paths it has handed out and owns the per-collection locks that serialize
mutating operations on the same collection.
"""

from __future__ import annotations

import asyncio
import re
import threading
from pathlib import Path

from csvstage.core.errors import InvalidCollectionError, StagingIOError
from csvstage.core.logging import get_logger

logger = get_logger(__name__)

STAGING_FILENAME = "temp_data.sqlite"
MAX_COLLECTION_NAME_LENGTH = 120

_COLLECTION_NAME = re.compile(r"^[A-Za-z0-9_.\-]+$")


def check_collection_name(collection: str) -> str:
    """Reject names that cannot safely be used as a directory name.

    Raises:
        InvalidCollectionError: If the name is empty, too long, contains path
            separators or other characters outside ``[A-Za-z0-9_.-]``, or is
            made of dots only.
    """
    if not collection or len(collection) > MAX_COLLECTION_NAME_LENGTH:
        raise InvalidCollectionError(
            f"Invalid collection name: {collection!r}", collection=collection
        )
    if not _COLLECTION_NAME.match(collection) or set(collection) == {"."}:
        raise InvalidCollectionError(
            f"Invalid collection name: {collection!r}", collection=collection
        )
    return collection


class StagingPathRegistry:
    """Injected registry of staging file locations.

    The path map is shared by worker threads and guarded by a thread lock.
    Per-collection ``asyncio.Lock`` objects are handed out from the event
    loop thread only.
    """

    def __init__(self, staging_root: Path):
        self.staging_root = staging_root
        self._paths: dict[str, Path] = {}
        self._paths_lock = threading.Lock()
        self._locks: dict[str, asyncio.Lock] = {}

    def collection_dir(self, collection: str) -> Path:
        """Directory holding the collection's staging file."""
        return self.staging_root / check_collection_name(collection)

    def lookup(self, collection: str) -> Path:
        """Path of the staging file, without creating anything."""
        with self._paths_lock:
            known = self._paths.get(collection)
        if known is not None:
            return known
        return self.collection_dir(collection) / STAGING_FILENAME

    def resolve(self, collection: str) -> Path:
        """Return the staging file path, creating its directory on first use.

        Raises:
            InvalidCollectionError: If the collection name is unusable
            StagingIOError: If the directory cannot be created
        """
        with self._paths_lock:
            known = self._paths.get(collection)
            if known is not None and known.parent.is_dir():
                return known

            directory = self.collection_dir(collection)
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StagingIOError(
                    f"Cannot create staging directory {directory}: {e}",
                    collection=collection,
                ) from e

            path = directory / STAGING_FILENAME
            self._paths[collection] = path
            logger.debug("staging_path_resolved", collection=collection, path=str(path))
            return path

    def release(self, collection: str) -> Path | None:
        """Forget a collection's path. The filesystem is left untouched."""
        with self._paths_lock:
            return self._paths.pop(collection, None)

    def lock(self, collection: str) -> asyncio.Lock:
        """Per-collection lock serializing upload, validate, import and delete."""
        lock = self._locks.get(collection)
        if lock is None:
            lock = self._locks[collection] = asyncio.Lock()
        return lock
