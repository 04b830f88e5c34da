# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Local filesystem object store.

Objects are written atomically (write to temp, then rename) to
prevent partial files.
"""

from pathlib import Path, PurePosixPath

import aiofiles
import structlog

from sitevault.config import StorageProvider
from sitevault.exceptions import StorageReadFailed, StorageWriteFailed

logger = structlog.get_logger()


class LocalObjectStore:
    """Object store rooted at a directory of the vault."""

    provider = StorageProvider.LOCAL

    def __init__(self, root: Path):
        self.root = root

    def _resolve(self, key: str) -> Path | None:
        """Map a key to a path under the root, rejecting traversal."""
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            return None
        return self.root.joinpath(*parts)

    async def put(self, key: str, data: bytes) -> str:
        path = self._resolve(key)
        if path is None:
            raise StorageWriteFailed(f"Unsafe object key: {key}", details={"key": key})

        temp_path = path.with_name(path.name + ".tmp")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)

            # Atomic on POSIX filesystems
            temp_path.replace(path)

        except OSError as e:
            raise StorageWriteFailed(
                f"Failed to write object: {e}",
                details={"key": key, "provider": self.provider.value},
            ) from e

        logger.debug("object_written", key=key, size=len(data), provider=self.provider.value)

        return path.resolve().as_uri()

    async def get(self, key: str) -> bytes:
        path = self._resolve(key)
        if path is None:
            raise StorageReadFailed(f"Unsafe object key: {key}", details={"key": key})

        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise StorageReadFailed(
                f"Object not found: {key}",
                details={"key": key, "provider": self.provider.value},
            ) from e
        except OSError as e:
            raise StorageReadFailed(
                f"Failed to read object: {e}",
                details={"key": key, "provider": self.provider.value},
            ) from e

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path is None:
            raise StorageWriteFailed(f"Unsafe object key: {key}", details={"key": key})

        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteFailed(
                f"Failed to delete object: {e}",
                details={"key": key, "provider": self.provider.value},
            ) from e

        logger.debug("object_deleted", key=key, provider=self.provider.value)
