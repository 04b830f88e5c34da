# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Restore Manager - Point-in-time restore operations.

A restore selects the latest completed artifact that does not overshoot
the requested time, freezes its chain on a restore job and applies the
chain to the target, full artifact first, one element at a time.

There is no rollback. When element k fails the job is FAILED with k
recorded and the target is left in an undefined state.
"""

from datetime import datetime

import aiosqlite
import structlog
from ulid import ULID

from sitevault.backup.chain import build_chain, load_chain
from sitevault.backup.manager import read_artifact_payload
from sitevault.config import RestoreStatus, SiteVaultConfig
from sitevault.core import VaultState, spawn_background
from sitevault.exceptions import (
    ErrorKind,
    InvalidRequest,
    NoBackupAvailable,
    SiteVaultError,
    TargetNotFound,
    VaultError,
)
from sitevault.notifications import notify
from sitevault.vault.sqlite_vault import (
    BackupArtifact,
    RestoreJob,
    TargetRecord,
    format_timestamp,
    get_latest_completed_artifact,
    get_restore_job,
    get_target,
    insert_restore_job,
    transition_restore_job,
    update_restore_progress,
)

logger = structlog.get_logger()


async def select_restore_point(
    db: aiosqlite.Connection,
    target_id: str,
    timestamp: datetime,
) -> BackupArtifact:
    """
    Pick the artifact a restore to timestamp resolves to.

    Returns:
        The completed artifact with the greatest completed_at <= timestamp

    Raises:
        NoBackupAvailable: If no completed artifact qualifies
    """
    artifact = await get_latest_completed_artifact(db, target_id, completed_before=timestamp)
    if artifact is None:
        raise NoBackupAvailable(
            f"No completed backup of {target_id} at or before {format_timestamp(timestamp)}",
            details={"target_id": target_id, "timestamp": format_timestamp(timestamp)},
        )
    return artifact


async def restore_to_point_in_time(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    timestamp: datetime,
    requested_by: str | None = None,
) -> RestoreJob:
    """
    Restore a target to its state at a point in time.

    The chain is resolved and frozen here; the job is applied by a
    background routine.

    Args:
        config: SiteVault configuration
        state: Runtime state
        target_id: Target ID
        timestamp: Point in time to restore (naive values are UTC)
        requested_by: Who asked for the restore, kept for auditing

    Returns:
        The new restore job, in PENDING

    Raises:
        TargetNotFound: If the target is unknown
        NoBackupAvailable: If no completed artifact covers timestamp
        ChainBroken: If the chain of the selected artifact cannot be resolved
    """
    if not isinstance(timestamp, datetime):
        raise InvalidRequest(
            "timestamp must be a datetime",
            details={"timestamp": repr(timestamp)},
        )

    now = state["clock"]()

    async with aiosqlite.connect(state["db_path"]) as db:
        target = await get_target(db, target_id)
        if target is None:
            raise TargetNotFound(f"Unknown target: {target_id}", details={"target_id": target_id})

        point = await select_restore_point(db, target_id, timestamp)
        chain = await build_chain(db, point)

        job_id = str(ULID())
        job = await insert_restore_job(
            db,
            job_id,
            target_id,
            timestamp,
            [artifact["id"] for artifact in chain],
            now,
            requested_by=requested_by,
        )

    logger.info(
        "restore_job_created",
        job_id=job_id,
        target_id=target_id,
        restore_point=point["id"],
        chain_length=len(chain),
        requested_by=requested_by,
    )

    state["jobs"].track("restore", job)
    spawn_background(
        state,
        process_restore_job(config, state, job, target),
        name=f"restore-{job_id}",
    )

    return job


async def process_restore_job(
    config: SiteVaultConfig,
    state: VaultState,
    job: RestoreJob,
    target: TargetRecord,
) -> None:
    """Apply the frozen chain of a restore job, strictly in order."""
    job_id = job["id"]
    artifact_ids = job["backup_chain"]
    total = len(artifact_ids)

    async with aiosqlite.connect(state["db_path"]) as db:
        try:
            await _advance(
                db,
                state,
                job_id,
                RestoreStatus.PENDING,
                RestoreStatus.RUNNING,
                f"Applying {total} artifacts",
            )
        except SiteVaultError as e:
            await _fail(db, state, job_id, RestoreStatus.PENDING, e)
            return

        logger.info("restore_job_started", job_id=job_id, target_id=target["id"], chain_length=total)

        try:
            chain = await load_chain(db, artifact_ids)
        except SiteVaultError as e:
            await _fail(db, state, job_id, RestoreStatus.RUNNING, e, index=e.details.get("index"))
            return

        for index, artifact in enumerate(chain):
            try:
                await update_restore_progress(
                    db,
                    job_id,
                    f"Applying {artifact['kind']} artifact {index + 1}/{total}",
                )
                await _refresh(db, state, job_id)

                manifest = await read_artifact_payload(state, artifact)
                await state["applier"].apply_artifact(target, artifact, manifest)

            except Exception as e:
                await _fail(
                    db,
                    state,
                    job_id,
                    RestoreStatus.RUNNING,
                    e,
                    index=index,
                    artifact_id=artifact["id"],
                )
                return

            logger.debug("restore_element_applied", job_id=job_id, index=index, artifact_id=artifact["id"])

        try:
            job = await _advance(
                db,
                state,
                job_id,
                RestoreStatus.RUNNING,
                RestoreStatus.COMPLETED,
                "Restore completed",
                completed_at=state["clock"](),
            )
        except SiteVaultError as e:
            await _fail(db, state, job_id, RestoreStatus.RUNNING, e)
            return

    logger.info("restore_job_completed", job_id=job_id, target_id=target["id"], chain_length=total)

    await notify(state["notifier"], "on_restore_completed", job)


async def _refresh(db: aiosqlite.Connection, state: VaultState, job_id: str) -> RestoreJob:
    job = await get_restore_job(db, job_id)
    if job is None:
        raise VaultError("Restore job vanished", details={"job_id": job_id})
    state["jobs"].track("restore", job)
    return job


async def _advance(
    db: aiosqlite.Connection,
    state: VaultState,
    job_id: str,
    from_status: RestoreStatus,
    to_status: RestoreStatus,
    progress_message: str,
    **fields,
) -> RestoreJob:
    updated = await transition_restore_job(
        db, job_id, from_status, to_status, progress_message, **fields
    )
    if not updated:
        raise VaultError(
            f"Restore job left {from_status.value} unexpectedly",
            details={"job_id": job_id, "to_status": to_status.value},
        )
    return await _refresh(db, state, job_id)


async def _fail(
    db: aiosqlite.Connection,
    state: VaultState,
    job_id: str,
    status: RestoreStatus,
    error: Exception,
    index: int | None = None,
    artifact_id: str | None = None,
) -> None:
    """Record the terminal FAILED status with the failing chain element."""
    if isinstance(error, SiteVaultError):
        error_kind = error.kind
        message = error.message
    else:
        error_kind = ErrorKind.INTERNAL
        message = str(error) or type(error).__name__

    if artifact_id is None and index is not None:
        artifact_id = error.details.get("artifact_id") if isinstance(error, SiteVaultError) else None

    logger.error(
        "restore_job_failed",
        job_id=job_id,
        failed_index=index,
        failed_artifact_id=artifact_id,
        error_kind=error_kind.value,
        error=message,
    )

    fields = {
        "error_kind": error_kind.value,
        "error_message": message,
        "completed_at": state["clock"](),
    }
    if index is not None:
        fields["failed_index"] = index
        fields["failed_artifact_id"] = artifact_id

    progress = "Restore failed" if index is None else f"Restore failed at element {index}"

    try:
        await transition_restore_job(db, job_id, status, RestoreStatus.FAILED, progress, **fields)
        job = await get_restore_job(db, job_id)
    except Exception as e:
        logger.error("restore_failure_not_recorded", job_id=job_id, error=str(e))
        state["jobs"].evict(job_id)
        return

    state["jobs"].evict(job_id)

    if job is not None:
        await notify(state["notifier"], "on_restore_failed", job)

