# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Service - One operation per public contract.

Operations never raise SiteVault errors to the caller. Each returns an
OperationResult with either the data or a structured error kind, ready
to be mapped onto a response by the embedding application.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Dict, List

import aiosqlite
import structlog

from sitevault import scheduler
from sitevault.backup import manager, orchestrator, restore
from sitevault.config import BackupKind, SiteVaultConfig
from sitevault.core import VaultState
from sitevault.exceptions import ErrorKind, InvalidRequest, JobNotFound, SiteVaultError
from sitevault.vault.sqlite_vault import get_artifact, get_restore_job
from sitevault.vault.sqlite_vault import register_target as store_target

logger = structlog.get_logger()


@dataclass
class OperationResult:
    """Result of a facade operation."""

    success: bool
    data: Any = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    details: Dict[str, Any] | None = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error_kind"] = self.error_kind.value if self.error_kind else None
            result["error"] = self.error
            if self.details:
                result["details"] = self.details
        return result


async def _run(operation: str, call: Awaitable[Any]) -> OperationResult:
    try:
        data = await call
    except SiteVaultError as e:
        logger.warning(
            "operation_failed",
            operation=operation,
            error_kind=e.kind.value,
            error=e.message,
        )
        return OperationResult(
            success=False,
            error_kind=e.kind,
            error=e.message,
            details=e.details or None,
        )
    except Exception as e:
        logger.error(
            "operation_failed",
            operation=operation,
            error_kind=ErrorKind.INTERNAL.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return OperationResult(
            success=False,
            error_kind=ErrorKind.INTERNAL,
            error=str(e) or type(e).__name__,
        )
    return OperationResult(success=True, data=data)


async def create_full_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> OperationResult:
    """Start a full backup. Data is the new artifact."""
    return await _run(
        "create_full_backup",
        orchestrator.create_full_backup(config, state, target_id),
    )


async def create_incremental_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> OperationResult:
    """
    Start an incremental backup.

    Data is the new artifact (full when redirected), or a zero-change
    marker when nothing changed since the last completed artifact.
    """

    async def call():
        artifact = await orchestrator.create_incremental_backup(config, state, target_id)
        if artifact is None:
            return {"artifact": None, "changes": 0, "message": "No changes since last backup"}
        return {
            "artifact": artifact,
            "changes": artifact["added_count"] + artifact["modified_count"] + artifact["deleted_count"],
            "message": f"{artifact['kind'].capitalize()} backup started",
        }

    return await _run("create_incremental_backup", call())


async def get_backup_history(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    limit: int = 50,
    kind: str | None = None,
    include_failed: bool = False,
) -> OperationResult:
    """List backups of a target with size totals and recovery points."""

    async def call():
        if limit < 1:
            raise InvalidRequest(f"limit must be >= 1, got {limit}")
        try:
            backup_kind = BackupKind(kind) if kind else None
        except ValueError:
            raise InvalidRequest(f"Unknown backup kind: {kind!r}")

        history = await manager.get_backup_history(
            config, state, target_id, limit=limit, kind=backup_kind, include_failed=include_failed
        )
        return history.to_dict()

    return await _run("get_backup_history", call())


async def prune_backups(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    retention_days: int = 30,
    dry_run: bool = False,
) -> OperationResult:
    """Delete whole backup chains older than retention_days. Data is the prune summary."""

    async def call():
        result = await manager.prune_old_backups(
            config, state, target_id, retention_days=retention_days, dry_run=dry_run
        )
        return result.to_dict()

    return await _run("prune_backups", call())


async def enable_realtime_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    watch_interval_seconds: int | None = None,
    exclude_patterns: List[str] | None = None,
    max_daily_backups: int | None = None,
) -> OperationResult:
    """Enable real-time backup. Data is the stored configuration."""
    return await _run(
        "enable_realtime_backup",
        scheduler.enable_realtime_backup(
            config,
            state,
            target_id,
            watch_interval_seconds=watch_interval_seconds,
            exclude_patterns=exclude_patterns,
            max_daily_backups=max_daily_backups,
        ),
    )


async def disable_realtime_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> OperationResult:
    """Disable real-time backup. Data is the stored configuration."""
    return await _run(
        "disable_realtime_backup",
        scheduler.disable_realtime_backup(config, state, target_id),
    )


async def get_realtime_status(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> OperationResult:
    return await _run(
        "get_realtime_status",
        scheduler.get_realtime_status(config, state, target_id),
    )


async def restore_to_point_in_time(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    timestamp: datetime,
    requested_by: str | None = None,
) -> OperationResult:
    """Start a point-in-time restore. Data is the new restore job."""
    return await _run(
        "restore_to_point_in_time",
        restore.restore_to_point_in_time(config, state, target_id, timestamp, requested_by),
    )


async def get_job_status(
    config: SiteVaultConfig,
    state: VaultState,
    job_id: str,
) -> OperationResult:
    """
    Status of a backup artifact or restore job.

    Active jobs are answered from the in-memory registry; finished or
    unknown ones are looked up in the store.
    """

    async def call():
        cached = state["jobs"].get(job_id)
        if cached is not None:
            job_type, record = cached
            return {"job_type": job_type, "job": record, "source": "registry"}

        async with aiosqlite.connect(state["db_path"]) as db:
            artifact = await get_artifact(db, job_id)
            if artifact is not None:
                return {"job_type": "backup", "job": artifact, "source": "store"}

            job = await get_restore_job(db, job_id)
            if job is not None:
                return {"job_type": "restore", "job": job, "source": "store"}

        raise JobNotFound(f"Unknown job: {job_id}", details={"job_id": job_id})

    return await _run("get_job_status", call())


async def register_target(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    name: str,
    agent_url: str,
    api_key: str | None = None,
) -> OperationResult:
    """Register a managed target, or update how its agent is reached."""

    async def call():
        if not target_id or not name or not agent_url:
            raise InvalidRequest("target_id, name and agent_url are required")
        async with aiosqlite.connect(state["db_path"]) as db:
            return await store_target(db, target_id, name, agent_url, api_key)

    return await _run("register_target", call())
