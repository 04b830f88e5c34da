# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Backup Manager - Artifact payload storage and backup history.

Payloads are read, written and deleted through the store of the
provider persisted on the artifact, never the current default provider.
Retention removes whole chains only, so every kept incremental still
has its full backup and all of its ancestors.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Tuple

import aiosqlite
import structlog

from sitevault.config import BackupKind, BackupStatus, SiteVaultConfig
from sitevault.core import VaultState
from sitevault.exceptions import InvalidRequest, SiteVaultError, StorageReadFailed, TargetNotFound
from sitevault.storage import build_object_key, resolve_store
from sitevault.vault.compressor import compress_payload, decompress_payload
from sitevault.vault.sqlite_vault import (
    BackupArtifact,
    delete_completed_artifact,
    format_timestamp,
    get_target,
    list_active_restore_artifact_ids,
    list_artifacts,
    list_completed_artifacts,
    parse_timestamp,
)

logger = structlog.get_logger()

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


@dataclass
class BackupHistory:
    """Artifacts of a target with their size totals and recovery points."""

    target_id: str
    backups: List[BackupArtifact]
    total_size: int
    total_size_formatted: str
    recovery_points: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.backups)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "backups": self.backups,
            "total_size": self.total_size,
            "total_size_formatted": self.total_size_formatted,
            "recovery_points": self.recovery_points,
            "count": self.count,
        }


def format_bytes(num_bytes: int | None) -> str:
    """
    Format a byte count with a binary unit (B, KB, MB, GB).

    Values keep at most two decimals, without trailing zeros.
    """
    if not num_bytes:
        return "0 B"

    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and num_bytes >= 1024 ** (exponent + 1):
        exponent += 1

    value = f"{num_bytes / 1024**exponent:.2f}".rstrip("0").rstrip(".")
    return f"{value} {_SIZE_UNITS[exponent]}"


async def write_artifact_payload(
    config: SiteVaultConfig,
    state: VaultState,
    artifact: BackupArtifact,
    manifest: Dict[str, Any],
) -> Tuple[str, str, int]:
    """
    Compress a manifest and upload it for an artifact.

    Args:
        config: SiteVault configuration
        state: Runtime state
        artifact: Artifact the payload belongs to
        manifest: Payload produced by the collector

    Returns:
        Tuple of (object_key, storage_url, size_bytes)

    Raises:
        StorageWriteFailed: If encoding or upload fails
    """
    store = resolve_store(state["stores"], artifact["provider"])
    key = build_object_key(
        config.object_key_prefix,
        artifact["target_id"],
        BackupKind(artifact["kind"]),
        artifact["id"],
    )

    data = await compress_payload(manifest)
    url = await store.put(key, data)

    logger.info(
        "artifact_payload_uploaded",
        artifact_id=artifact["id"],
        provider=artifact["provider"],
        object_key=key,
        size=len(data),
    )

    return key, url, len(data)


async def read_artifact_payload(
    state: VaultState,
    artifact: BackupArtifact,
) -> Dict[str, Any]:
    """
    Download and decode the payload of an artifact.

    Raises:
        StorageReadFailed: If the artifact has no payload or it cannot be read
    """
    if not artifact["object_key"]:
        raise StorageReadFailed(
            f"Artifact {artifact['id']} has no stored payload",
            details={"artifact_id": artifact["id"]},
        )

    store = resolve_store(state["stores"], artifact["provider"])
    data = await store.get(artifact["object_key"])

    return await decompress_payload(data)


async def delete_artifact_payload(
    state: VaultState,
    artifact: BackupArtifact,
    object_key: str,
) -> None:
    """Delete an uploaded payload through the store of the artifact's provider."""
    store = resolve_store(state["stores"], artifact["provider"])
    await store.delete(object_key)

    logger.info(
        "artifact_payload_deleted",
        artifact_id=artifact["id"],
        provider=artifact["provider"],
        object_key=object_key,
    )


async def get_backup_history(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    limit: int = 50,
    kind: BackupKind | None = None,
    include_failed: bool = False,
) -> BackupHistory:
    """
    List the backups of a target, newest first.

    Only completed artifacts are listed unless include_failed is set.
    Sizes are summed over the listed artifacts; recovery points are the
    completed ones.

    Raises:
        TargetNotFound: If the target is unknown
    """
    statuses = [BackupStatus.COMPLETED]
    if include_failed:
        statuses.append(BackupStatus.FAILED)

    async with aiosqlite.connect(state["db_path"]) as db:
        if await get_target(db, target_id) is None:
            raise TargetNotFound(f"Unknown target: {target_id}", details={"target_id": target_id})

        backups = await list_artifacts(db, target_id, limit=limit, kind=kind, statuses=statuses)

    total_size = sum(b["size_bytes"] or 0 for b in backups)

    recovery_points = [
        {
            "artifact_id": b["id"],
            "timestamp": b["completed_at"],
            "kind": b["kind"],
            "changes": b["added_count"] + b["modified_count"] + b["deleted_count"],
        }
        for b in backups
        if b["status"] == BackupStatus.COMPLETED.value
    ]

    return BackupHistory(
        target_id=target_id,
        backups=backups,
        total_size=total_size,
        total_size_formatted=format_bytes(total_size),
        recovery_points=recovery_points,
    )


# ============================================================================
# Retention
# ============================================================================

@dataclass
class PruneResult:
    """Outcome of a retention pass over one target."""

    target_id: str
    cutoff: datetime
    dry_run: bool
    deleted: List[str] = field(default_factory=list)  # Artifact ids, newest first per chain
    chains_deleted: int = 0
    bytes_freed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)  # Artifact id -> error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_id": self.target_id,
            "cutoff": format_timestamp(self.cutoff),
            "dry_run": self.dry_run,
            "deleted": self.deleted,
            "chains_deleted": self.chains_deleted,
            "bytes_freed": self.bytes_freed,
            "bytes_freed_formatted": format_bytes(self.bytes_freed),
            "errors": self.errors,
        }


def group_chains(artifacts: List[BackupArtifact]) -> List[List[BackupArtifact]]:
    """
    Group completed artifacts by the full backup their chain starts from.

    Each group is ordered oldest first. An artifact whose ancestors are
    not all in the list is grouped under the oldest ancestor found.
    """
    by_id = {a["id"]: a for a in artifacts}
    groups: Dict[str, List[BackupArtifact]] = {}

    for artifact in artifacts:
        root = artifact
        seen = {root["id"]}
        while root["parent_id"] in by_id and root["parent_id"] not in seen:
            root = by_id[root["parent_id"]]
            seen.add(root["id"])
        groups.setdefault(root["id"], []).append(artifact)

    return list(groups.values())


def _newest_completed_at(chain: List[BackupArtifact]) -> datetime:
    return max(parse_timestamp(a["completed_at"]) for a in chain)


async def prune_old_backups(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    retention_days: int = 30,
    dry_run: bool = False,
) -> PruneResult:
    """
    Delete backup chains whose newest artifact is older than the retention period.

    A chain is only deleted as a whole, newest artifact first, so an
    interrupted pass never leaves an incremental without its ancestors.
    The chain holding the latest completed artifact is always kept, as
    is every chain used by a pending or running restore. Failed
    artifacts are never deleted.

    Args:
        config: SiteVault configuration
        state: Runtime state
        target_id: Target to prune
        retention_days: Age in days past which a chain may be deleted
        dry_run: If True, report what would be deleted without deleting

    Returns:
        PruneResult listing the deleted artifacts

    Raises:
        InvalidRequest: If retention_days is negative
        TargetNotFound: If the target is unknown
    """
    if retention_days < 0:
        raise InvalidRequest(
            f"retention_days must be >= 0, got {retention_days}",
            details={"retention_days": retention_days},
        )

    cutoff = state["clock"]() - timedelta(days=retention_days)
    result = PruneResult(target_id=target_id, cutoff=cutoff, dry_run=dry_run)

    async with aiosqlite.connect(state["db_path"]) as db:
        if await get_target(db, target_id) is None:
            raise TargetNotFound(f"Unknown target: {target_id}", details={"target_id": target_id})

        completed = await list_completed_artifacts(db, target_id)
        if not completed:
            return result

        latest_id = completed[-1]["id"]
        restoring = await list_active_restore_artifact_ids(db, target_id)

        for chain in group_chains(completed):
            ids = {a["id"] for a in chain}
            if latest_id in ids or ids & restoring:
                continue
            if _newest_completed_at(chain) >= cutoff:
                continue

            chain_failed = False
            for artifact in reversed(chain):
                if not dry_run:
                    try:
                        if artifact["object_key"]:
                            await delete_artifact_payload(state, artifact, artifact["object_key"])
                    except SiteVaultError as e:
                        result.errors[artifact["id"]] = e.message
                        logger.warning(
                            "prune_artifact_error",
                            artifact_id=artifact["id"],
                            provider=artifact["provider"],
                            error=e.message,
                        )
                        chain_failed = True
                        break

                    if not await delete_completed_artifact(db, artifact["id"]):
                        continue

                result.deleted.append(artifact["id"])
                result.bytes_freed += artifact["size_bytes"] or 0

            if not chain_failed:
                result.chains_deleted += 1

    logger.info(
        "backup_pruning_complete",
        target_id=target_id,
        retention_days=retention_days,
        chains_deleted=result.chains_deleted,
        artifacts_deleted=len(result.deleted),
        bytes_freed=result.bytes_freed,
        errors=len(result.errors),
        dry_run=dry_run,
    )

    return result
