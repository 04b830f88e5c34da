# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Checksum Catalog - Path to checksum maps per artifact.

Each artifact stores the complete catalog of the target as of that
artifact, for incremental artifacts too. The next incremental backup
diffs against it.
"""

import json
from typing import Dict

import aiosqlite
import structlog

logger = structlog.get_logger()

# Relative path -> content checksum
Catalog = Dict[str, str]


async def store_checksums(
    db: aiosqlite.Connection,
    artifact_id: str,
    checksums: Catalog,
) -> None:
    """
    Store the resulting catalog of an artifact.

    Args:
        db: SQLite database connection
        artifact_id: Artifact the catalog belongs to
        checksums: Complete path -> checksum map
    """
    await db.execute(
        """
        INSERT INTO backup_checksums (artifact_id, checksums)
        VALUES (?, ?)
        ON CONFLICT(artifact_id) DO UPDATE SET checksums = excluded.checksums
        """,
        (artifact_id, json.dumps(checksums, sort_keys=True)),
    )
    await db.commit()

    logger.debug("checksums_stored", artifact_id=artifact_id, paths=len(checksums))


async def get_stored_checksums(
    db: aiosqlite.Connection,
    artifact_id: str,
) -> Catalog:
    """
    Get the stored catalog of an artifact.

    Returns:
        The path -> checksum map, or an empty dict if none is stored
    """
    async with db.execute(
        "SELECT checksums FROM backup_checksums WHERE artifact_id = ?",
        (artifact_id,),
    ) as cursor:
        row = await cursor.fetchone()

    if not row:
        return {}

    return json.loads(row[0])
