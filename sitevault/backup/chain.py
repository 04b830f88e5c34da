# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Chain Builder - Resolve the artifacts needed to rebuild a point in time.

A chain starts with one full artifact and continues with the incremental
artifacts that were taken on top of it, in order. A chain that cannot be
resolved is reported as ChainBroken and never truncated: a truncated chain
would restore without error and still miss data.
"""

from typing import List, Set

import aiosqlite
import structlog

from sitevault.config import BackupKind
from sitevault.exceptions import ChainBroken
from sitevault.vault.sqlite_vault import BackupArtifact, get_artifact

logger = structlog.get_logger()


async def build_chain(
    db: aiosqlite.Connection,
    artifact: BackupArtifact,
) -> List[BackupArtifact]:
    """
    Walk parent links from an artifact back to its full base.

    Args:
        db: SQLite database connection
        artifact: Last artifact of the chain

    Returns:
        Artifacts ordered full first, ending with the given artifact

    Raises:
        ChainBroken: If a parent is missing, belongs to another target,
            links form a cycle, or the chain does not end at a full artifact
    """
    chain = [artifact]
    seen: Set[str] = {artifact["id"]}
    current = artifact

    while current["parent_id"]:
        parent_id = current["parent_id"]

        if parent_id in seen:
            raise ChainBroken(
                "Backup chain contains a cycle",
                details={"artifact_id": artifact["id"], "repeated_id": parent_id},
            )

        parent = await get_artifact(db, parent_id)
        if parent is None:
            raise ChainBroken(
                f"Parent artifact {parent_id} does not exist",
                details={"artifact_id": artifact["id"], "child_id": current["id"]},
            )

        if parent["target_id"] != artifact["target_id"]:
            raise ChainBroken(
                f"Parent artifact {parent_id} belongs to another target",
                details={
                    "artifact_id": artifact["id"],
                    "target_id": artifact["target_id"],
                    "parent_target_id": parent["target_id"],
                },
            )

        seen.add(parent_id)
        chain.insert(0, parent)
        current = parent

    if current["kind"] != BackupKind.FULL.value:
        raise ChainBroken(
            "Backup chain does not start with a full artifact",
            details={"artifact_id": artifact["id"], "root_id": current["id"]},
        )

    logger.debug(
        "backup_chain_built",
        artifact_id=artifact["id"],
        length=len(chain),
        root_id=current["id"],
    )

    return chain


async def load_chain(
    db: aiosqlite.Connection,
    artifact_ids: List[str],
) -> List[BackupArtifact]:
    """
    Load a frozen chain by artifact ids, keeping its order.

    Raises:
        ChainBroken: If an id no longer resolves
    """
    chain: List[BackupArtifact] = []

    for index, artifact_id in enumerate(artifact_ids):
        artifact = await get_artifact(db, artifact_id)
        if artifact is None:
            raise ChainBroken(
                f"Chain artifact {artifact_id} does not exist",
                details={"index": index, "artifact_id": artifact_id},
            )
        chain.append(artifact)

    return chain
