# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Compressor - zstd encoding of artifact payloads.

Artifact payloads are JSON documents (the manifest produced by the
collector) compressed with zstd before they are written to object storage.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

import structlog
import zstandard as zstd

from sitevault.exceptions import StorageReadFailed, StorageWriteFailed

logger = structlog.get_logger()

# Thread pool for CPU-bound compression of large payloads
_executor = ThreadPoolExecutor(max_workers=4)

DEFAULT_ZSTD_LEVEL = 19  # Maximum practical compression

# Payloads above this size are (de)compressed off the event loop
_OFFLOAD_THRESHOLD = 1024 * 1024


async def compress_payload(
    manifest: Dict[str, Any],
    zstd_level: int = DEFAULT_ZSTD_LEVEL,
) -> bytes:
    """
    Serialize and compress an artifact manifest.

    Args:
        manifest: JSON-serializable manifest
        zstd_level: zstd compression level (1-22, default 19)

    Returns:
        Compressed bytes
    """
    try:
        raw_bytes = json.dumps(manifest, sort_keys=True).encode("utf-8")
        compressed = await _run(_compress_zstd_sync, raw_bytes, zstd_level)
    except (TypeError, ValueError, zstd.ZstdError) as e:
        raise StorageWriteFailed(
            f"Could not encode artifact payload: {e}",
            details={"artifact_id": manifest.get("artifact_id")},
        )

    logger.debug(
        "payload_compressed",
        artifact_id=manifest.get("artifact_id"),
        original_size=len(raw_bytes),
        compressed_size=len(compressed),
    )

    return compressed


async def decompress_payload(compressed_bytes: bytes) -> Dict[str, Any]:
    """
    Decompress and parse an artifact payload.

    Args:
        compressed_bytes: zstd-compressed JSON manifest

    Returns:
        The manifest
    """
    try:
        raw_bytes = await _run(_decompress_zstd_sync, compressed_bytes)
        manifest = json.loads(raw_bytes)
    except (ValueError, zstd.ZstdError) as e:
        raise StorageReadFailed(f"Artifact payload is corrupt: {e}")

    if not isinstance(manifest, dict):
        raise StorageReadFailed("Artifact payload is not a manifest object")

    return manifest


async def _run(func, *args):
    """Run small jobs inline and large ones in the thread pool."""
    if len(args[0]) > _OFFLOAD_THRESHOLD:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, func, *args)
    return func(*args)


def _compress_zstd_sync(data: bytes, level: int) -> bytes:
    """Synchronous zstd compression."""
    cctx = zstd.ZstdCompressor(level=level)
    return cctx.compress(data)


def _decompress_zstd_sync(data: bytes) -> bytes:
    """Synchronous zstd decompression."""
    dctx = zstd.ZstdDecompressor()
    return dctx.decompress(data)
