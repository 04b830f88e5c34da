# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object storage contract and key layout.
"""

import hashlib
from typing import Protocol, runtime_checkable

from sitevault.config import BackupKind, StorageProvider


@runtime_checkable
class ObjectStore(Protocol):
    """Provider-agnostic object storage."""

    provider: StorageProvider

    async def put(self, key: str, data: bytes) -> str:
        """
        Write an object.

        Returns:
            URL of the stored object

        Raises:
            StorageWriteFailed: If the write fails
        """
        ...

    async def get(self, key: str) -> bytes:
        """
        Read an object.

        Raises:
            StorageReadFailed: If the object is missing or the read fails
        """
        ...

    async def delete(self, key: str) -> None:
        """
        Delete an object. Deleting a missing object is not an error.

        Raises:
            StorageWriteFailed: If the delete fails
        """
        ...


def _sanitize_component(value: str) -> str:
    """
    Convert an identifier to a safe key component.

    Replaces path separators and special characters with underscores.
    """
    safe = value.replace("/", "_").replace("\\", "_")

    for char in [":", "*", "?", '"', "<", ">", "|", " "]:
        safe = safe.replace(char, "_")

    if safe in ("", ".", ".."):
        safe = "_" + hashlib.sha256(value.encode()).hexdigest()[:8]

    # Keep keys short; hash keeps them unique
    if len(safe) > 100:
        name_hash = hashlib.sha256(value.encode()).hexdigest()[:8]
        safe = safe[:90] + "_" + name_hash

    return safe


def build_object_key(
    prefix: str,
    target_id: str,
    kind: BackupKind,
    artifact_id: str,
) -> str:
    """
    Build the object key of an artifact payload.

    Keys are unique per artifact (target + kind + artifact id), so
    concurrent uploads of different artifacts never collide.
    """
    return (
        f"{prefix.strip('/')}/{_sanitize_component(target_id)}/"
        f"{kind.value}/{artifact_id}.json.zst"
    )
