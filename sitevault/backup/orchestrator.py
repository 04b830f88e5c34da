# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Backup Orchestrator - Create full and incremental backups.

Creation validates the request, records the artifact in CREATING and
returns it; a background routine then drives the artifact through
PROCESSING and UPLOADING to COMPLETED, or to FAILED on the first error.
Errors of the background routine are recorded on the artifact and never
raised to the caller, who has already returned.

At most one non-terminal artifact exists per target. The early check
below rejects most second requests; the partial unique index of the
store rejects the ones that race past it.
"""

import sqlite3
from datetime import datetime
from typing import List

import aiosqlite
import structlog
from ulid import ULID

from sitevault.backup.changes import ChangeSet, diff_checksums, full_snapshot
from sitevault.backup.manager import delete_artifact_payload, write_artifact_payload
from sitevault.config import BackupKind, BackupStatus, SiteVaultConfig
from sitevault.core import VaultState, spawn_background
from sitevault.exceptions import (
    BackupInProgress,
    ErrorKind,
    SiteVaultError,
    TargetNotFound,
    VaultError,
)
from sitevault.notifications import notify
from sitevault.vault.catalog import Catalog, get_stored_checksums, store_checksums
from sitevault.vault.sqlite_vault import (
    BackupArtifact,
    TargetRecord,
    get_artifact,
    get_in_flight_artifact,
    get_latest_completed_artifact,
    get_realtime_config,
    get_target,
    insert_artifact,
    parse_timestamp,
    transition_artifact,
)

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400


async def create_full_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> BackupArtifact:
    """
    Create a full backup of a target.

    The complete checksum catalog is fetched by the background routine,
    so an unreachable target fails the artifact instead of the call.

    Args:
        config: SiteVault configuration
        state: Runtime state
        target_id: Target ID

    Returns:
        The new artifact, in CREATING

    Raises:
        TargetNotFound: If the target is unknown
        BackupInProgress: If the target already has a non-terminal artifact
    """
    now = state["clock"]()

    async with aiosqlite.connect(state["db_path"]) as db:
        target = await _require_target(db, target_id)
        await _ensure_idle(db, target_id)
        patterns = await _exclude_patterns(db, target_id)

        return await _start_full_backup(config, state, db, target, patterns, now)


async def create_incremental_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> BackupArtifact | None:
    """
    Create an incremental backup on top of the latest completed artifact.

    Redirects to a full backup when the target has no completed full
    artifact or the latest one is older than max_full_backup_age_days.

    Args:
        config: SiteVault configuration
        state: Runtime state
        target_id: Target ID

    Returns:
        The new artifact (incremental, or full when redirected), or None
        when nothing changed since the parent

    Raises:
        TargetNotFound: If the target is unknown
        BackupInProgress: If the target already has a non-terminal artifact
        TargetUnreachable: If the current catalog cannot be fetched
    """
    now = state["clock"]()

    async with aiosqlite.connect(state["db_path"]) as db:
        target = await _require_target(db, target_id)
        await _ensure_idle(db, target_id)
        patterns = await _exclude_patterns(db, target_id)

        latest_full = await get_latest_completed_artifact(db, target_id, kind=BackupKind.FULL)

        if latest_full is None:
            logger.info("incremental_redirected_to_full", target_id=target_id, reason="no_full_backup")
            return await _start_full_backup(config, state, db, target, patterns, now)

        age_days = _age_in_days(latest_full, now)
        if age_days > config.max_full_backup_age_days:
            logger.info(
                "incremental_redirected_to_full",
                target_id=target_id,
                reason="full_backup_too_old",
                full_backup_id=latest_full["id"],
                age_days=round(age_days, 2),
            )
            return await _start_full_backup(config, state, db, target, patterns, now)

        parent = await get_latest_completed_artifact(db, target_id)
        if parent is None:
            raise VaultError("Completed full artifact vanished", details={"target_id": target_id})

        previous = await get_stored_checksums(db, parent["id"])
        current = await state["reporter"].get_current_checksums(target, patterns)
        changes = diff_checksums(previous, current)

        if changes.is_empty:
            logger.info("incremental_skipped_no_changes", target_id=target_id, parent_id=parent["id"])
            return None

        counts = changes.counts()
        artifact_id = str(ULID())

        try:
            artifact = await insert_artifact(
                db,
                artifact_id,
                target_id,
                BackupKind.INCREMENTAL,
                parent["id"],
                config.default_provider,
                now,
                f"Incremental backup queued ({changes.total} changes)",
                added_count=counts.added,
                modified_count=counts.modified,
                deleted_count=counts.deleted,
            )
        except sqlite3.IntegrityError:
            raise _in_progress(target_id)

    logger.info(
        "backup_created",
        artifact_id=artifact_id,
        target_id=target_id,
        kind=BackupKind.INCREMENTAL.value,
        parent_id=parent["id"],
        added=counts.added,
        modified=counts.modified,
        deleted=counts.deleted,
        provider=artifact["provider"],
    )

    state["jobs"].track("backup", artifact)
    spawn_background(
        state,
        process_artifact(config, state, artifact, target, patterns, changes, current),
        name=f"backup-{artifact_id}",
    )

    return artifact


async def _start_full_backup(
    config: SiteVaultConfig,
    state: VaultState,
    db: aiosqlite.Connection,
    target: TargetRecord,
    patterns: List[str],
    now: datetime,
) -> BackupArtifact:
    artifact_id = str(ULID())

    try:
        artifact = await insert_artifact(
            db,
            artifact_id,
            target["id"],
            BackupKind.FULL,
            None,
            config.default_provider,
            now,
            "Full backup queued",
        )
    except sqlite3.IntegrityError:
        raise _in_progress(target["id"])

    logger.info(
        "backup_created",
        artifact_id=artifact_id,
        target_id=target["id"],
        kind=BackupKind.FULL.value,
        provider=artifact["provider"],
    )

    state["jobs"].track("backup", artifact)
    spawn_background(
        state,
        process_artifact(config, state, artifact, target, patterns),
        name=f"backup-{artifact_id}",
    )

    return artifact


async def process_artifact(
    config: SiteVaultConfig,
    state: VaultState,
    artifact: BackupArtifact,
    target: TargetRecord,
    exclude_patterns: List[str],
    changes: ChangeSet | None = None,
    checksums: Catalog | None = None,
) -> None:
    """
    Drive an artifact from CREATING to a terminal status.

    Full artifacts arrive without changes or checksums; their catalog
    is fetched here. This routine is the only writer of the artifact
    until it is terminal.
    """
    artifact_id = artifact["id"]
    status = BackupStatus.CREATING
    object_key: str | None = None

    async with aiosqlite.connect(state["db_path"]) as db:
        try:
            if changes is None or checksums is None:
                checksums = await state["reporter"].get_current_checksums(target, exclude_patterns)
                changes = full_snapshot(checksums)

            counts = changes.counts()
            artifact = await _advance(
                db,
                state,
                artifact_id,
                status,
                BackupStatus.PROCESSING,
                f"Collecting {changes.total} changed paths",
                added_count=counts.added,
                modified_count=counts.modified,
                deleted_count=counts.deleted,
            )
            status = BackupStatus.PROCESSING

            manifest = await state["collector"].collect(artifact, changes, checksums)

            artifact = await _advance(
                db,
                state,
                artifact_id,
                status,
                BackupStatus.UPLOADING,
                f"Uploading to {artifact['provider']}",
            )
            status = BackupStatus.UPLOADING

            object_key, storage_url, size_bytes = await write_artifact_payload(
                config, state, artifact, manifest
            )

            await store_checksums(db, artifact_id, checksums)
            artifact = await _advance(
                db,
                state,
                artifact_id,
                status,
                BackupStatus.COMPLETED,
                "Backup completed",
                size_bytes=size_bytes,
                object_key=object_key,
                storage_url=storage_url,
                completed_at=state["clock"](),
            )
            status = BackupStatus.COMPLETED

        except Exception as e:
            stored = await _reread(db, artifact_id)

            if stored is not None and stored["status"] == BackupStatus.COMPLETED.value:
                # Only the read-back after the completion write failed
                logger.warning(
                    "backup_completion_reread_failed",
                    artifact_id=artifact_id,
                    error=str(e),
                )
                state["jobs"].evict(artifact_id)
                artifact = stored
            else:
                if object_key is not None and stored is not None:
                    await _discard_payload(state, artifact, object_key)

                await _fail(db, state, artifact_id, status, e)
                return

    logger.info(
        "backup_completed",
        artifact_id=artifact_id,
        target_id=artifact["target_id"],
        kind=artifact["kind"],
        size_bytes=artifact["size_bytes"],
        provider=artifact["provider"],
    )

    await notify(state["notifier"], "on_backup_completed", artifact)


async def _advance(
    db: aiosqlite.Connection,
    state: VaultState,
    artifact_id: str,
    from_status: BackupStatus,
    to_status: BackupStatus,
    progress_message: str,
    **fields,
) -> BackupArtifact:
    """Apply one transition and mirror the result into the job registry."""
    updated = await transition_artifact(
        db, artifact_id, from_status, to_status, progress_message, **fields
    )
    if not updated:
        raise VaultError(
            f"Artifact left {from_status.value} unexpectedly",
            details={"artifact_id": artifact_id, "to_status": to_status.value},
        )

    artifact = await get_artifact(db, artifact_id)
    if artifact is None:
        raise VaultError("Artifact vanished", details={"artifact_id": artifact_id})

    state["jobs"].track("backup", artifact)

    logger.debug(
        "backup_status_changed",
        artifact_id=artifact_id,
        from_status=from_status.value,
        to_status=to_status.value,
    )

    return artifact


async def _fail(
    db: aiosqlite.Connection,
    state: VaultState,
    artifact_id: str,
    status: BackupStatus,
    error: Exception,
) -> None:
    """Record the terminal FAILED status with the cause."""
    if isinstance(error, SiteVaultError):
        error_kind = error.kind
        message = error.message
    else:
        error_kind = ErrorKind.INTERNAL
        message = str(error) or type(error).__name__

    logger.error(
        "backup_failed",
        artifact_id=artifact_id,
        status=status.value,
        error_kind=error_kind.value,
        error=message,
    )

    try:
        recorded = await transition_artifact(
            db,
            artifact_id,
            status,
            BackupStatus.FAILED,
            f"Failed while {status.value}",
            error_kind=error_kind.value,
            error_message=message,
        )
        artifact = await get_artifact(db, artifact_id)
    except Exception as e:
        # The store itself is failing; the next start-up fails the artifact
        logger.error("backup_failure_not_recorded", artifact_id=artifact_id, error=str(e))
        state["jobs"].evict(artifact_id)
        return

    state["jobs"].evict(artifact_id)

    if recorded and artifact is not None:
        await notify(state["notifier"], "on_backup_failed", artifact)


async def _reread(db: aiosqlite.Connection, artifact_id: str) -> BackupArtifact | None:
    """Stored artifact, or None when the store cannot be read."""
    try:
        return await get_artifact(db, artifact_id)
    except Exception as e:
        logger.error("artifact_reread_failed", artifact_id=artifact_id, error=str(e))
        return None


async def _discard_payload(state: VaultState, artifact: BackupArtifact, object_key: str) -> None:
    try:
        await delete_artifact_payload(state, artifact, object_key)
    except SiteVaultError as e:
        logger.error(
            "orphan_payload_left",
            artifact_id=artifact["id"],
            object_key=object_key,
            error=str(e),
        )


async def _require_target(db: aiosqlite.Connection, target_id: str) -> TargetRecord:
    target = await get_target(db, target_id)
    if target is None:
        raise TargetNotFound(f"Unknown target: {target_id}", details={"target_id": target_id})
    return target


async def _ensure_idle(db: aiosqlite.Connection, target_id: str) -> None:
    in_flight = await get_in_flight_artifact(db, target_id)
    if in_flight is not None:
        raise _in_progress(target_id, in_flight)


def _in_progress(target_id: str, in_flight: BackupArtifact | None = None) -> BackupInProgress:
    details = {"target_id": target_id}
    if in_flight is not None:
        details["artifact_id"] = in_flight["id"]
        details["status"] = in_flight["status"]
    return BackupInProgress(f"A backup is already in progress for {target_id}", details=details)


async def _exclude_patterns(db: aiosqlite.Connection, target_id: str) -> List[str]:
    """Exclusion patterns stored for the target, whether or not real-time is enabled."""
    realtime = await get_realtime_config(db, target_id)
    return list(realtime["exclude_patterns"]) if realtime else []


def _age_in_days(artifact: BackupArtifact, now: datetime) -> float:
    completed_at = parse_timestamp(artifact["completed_at"] or artifact["created_at"])
    return (now - completed_at).total_seconds() / SECONDS_PER_DAY
