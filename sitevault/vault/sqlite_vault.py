# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault SQLite Store - Targets, backup artifacts, restore jobs and
real-time backup configuration.

The store is the single source of truth for every status. Failed
artifacts and restore jobs are never deleted: they stay as an audit trail
of what was attempted and why it failed. Completed artifacts only leave
through retention, one whole chain at a time. Status updates are
compare-and-set on the current status, so a record cannot move backwards
or change after reaching a terminal state.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, TypedDict

import aiosqlite
import structlog

from sitevault.config import (
    BACKUP_TRANSITIONS,
    RESTORE_TRANSITIONS,
    BackupKind,
    BackupStatus,
    RestoreStatus,
    StorageProvider,
)
from sitevault.exceptions import VaultError

logger = structlog.get_logger()


class TargetRecord(TypedDict):
    """A managed target and how to reach its agent."""

    id: str
    name: str
    agent_url: str
    api_key: str | None
    created_at: str  # ISO 8601


class BackupArtifact(TypedDict):
    """A full or incremental backup artifact."""

    id: str  # ULID
    target_id: str
    kind: str  # full, incremental
    parent_id: str | None  # Set iff kind == incremental
    status: str
    added_count: int
    modified_count: int
    deleted_count: int
    size_bytes: int | None
    progress_message: str | None
    provider: str  # Frozen at creation, used for every later read/delete
    object_key: str | None
    storage_url: str | None
    error_kind: str | None
    error_message: str | None
    created_at: str  # ISO 8601
    completed_at: str | None  # ISO 8601


class RestoreJob(TypedDict):
    """A point-in-time restore job with its frozen chain."""

    id: str  # ULID
    target_id: str
    requested_by: str | None
    target_timestamp: str  # ISO 8601
    backup_chain: List[str]  # Artifact ids, full first
    status: str
    progress_message: str | None
    failed_index: int | None
    failed_artifact_id: str | None
    error_kind: str | None
    error_message: str | None
    created_at: str
    completed_at: str | None


class RealTimeBackupConfig(TypedDict):
    """Real-time backup settings of one target."""

    target_id: str
    enabled: bool
    watch_interval_seconds: int
    exclude_patterns: List[str]
    max_daily_backups: int
    updated_at: str


ARTIFACT_COLUMNS = (
    "id",
    "target_id",
    "kind",
    "parent_id",
    "status",
    "added_count",
    "modified_count",
    "deleted_count",
    "size_bytes",
    "progress_message",
    "provider",
    "object_key",
    "storage_url",
    "error_kind",
    "error_message",
    "created_at",
    "completed_at",
)

RESTORE_JOB_COLUMNS = (
    "id",
    "target_id",
    "requested_by",
    "target_timestamp",
    "backup_chain",
    "status",
    "progress_message",
    "failed_index",
    "failed_artifact_id",
    "error_kind",
    "error_message",
    "created_at",
    "completed_at",
)

# Columns a status transition may set alongside the status itself
_ARTIFACT_UPDATABLE = {
    "added_count",
    "modified_count",
    "deleted_count",
    "size_bytes",
    "object_key",
    "storage_url",
    "error_kind",
    "error_message",
    "completed_at",
}

_RESTORE_UPDATABLE = {
    "failed_index",
    "failed_artifact_id",
    "error_kind",
    "error_message",
    "completed_at",
}

_ARTIFACT_SELECT = f"SELECT {', '.join(ARTIFACT_COLUMNS)} FROM backup_artifacts"
_RESTORE_SELECT = f"SELECT {', '.join(RESTORE_JOB_COLUMNS)} FROM restore_jobs"

_IN_FLIGHT = (
    BackupStatus.CREATING.value,
    BackupStatus.PROCESSING.value,
    BackupStatus.UPLOADING.value,
)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime for storage.

    Naive values are taken as UTC. Microseconds are always written so
    that lexical order of stored strings equals chronological order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into an aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _now() -> str:
    return format_timestamp(datetime.now(UTC))


def _expect(record: Any, what: str, record_id: str) -> Any:
    if record is None:
        raise VaultError(
            f"Stored {what} could not be read back",
            details={"id": record_id},
        )
    return record


def _artifact_from_row(row: Any) -> BackupArtifact:
    return BackupArtifact(**dict(zip(ARTIFACT_COLUMNS, row)))


def _restore_job_from_row(row: Any) -> RestoreJob:
    record = dict(zip(RESTORE_JOB_COLUMNS, row))
    record["backup_chain"] = json.loads(record["backup_chain"])
    return RestoreJob(**record)


def _realtime_config_from_row(row: Any) -> RealTimeBackupConfig:
    return RealTimeBackupConfig(
        target_id=row[0],
        enabled=bool(row[1]),
        watch_interval_seconds=row[2],
        exclude_patterns=json.loads(row[3]) if row[3] else [],
        max_daily_backups=row[4],
        updated_at=row[5],
    )


async def init_vault_db(db_path: Path) -> None:
    """
    Initialize the store schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS targets (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    agent_url TEXT NOT NULL,
                    api_key TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS backup_artifacts (
                    id TEXT PRIMARY KEY,
                    target_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    parent_id TEXT,
                    status TEXT NOT NULL,
                    added_count INTEGER NOT NULL DEFAULT 0,
                    modified_count INTEGER NOT NULL DEFAULT 0,
                    deleted_count INTEGER NOT NULL DEFAULT 0,
                    size_bytes INTEGER,
                    progress_message TEXT,
                    provider TEXT NOT NULL,
                    object_key TEXT,
                    storage_url TEXT,
                    error_kind TEXT,
                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT,
                    FOREIGN KEY (target_id) REFERENCES targets(id),
                    FOREIGN KEY (parent_id) REFERENCES backup_artifacts(id),
                    CHECK ((kind = 'full') = (parent_id IS NULL))
                )
            """)

            # At most one non-terminal artifact per target
            await db.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_artifacts_one_in_flight
                ON backup_artifacts(target_id)
                WHERE status IN ('creating', 'processing', 'uploading')
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_artifacts_target_completed
                ON backup_artifacts(target_id, status, completed_at)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_artifacts_target_created
                ON backup_artifacts(target_id, created_at)
            """)

            # Complete resulting catalog as of each artifact
            await db.execute("""
                CREATE TABLE IF NOT EXISTS backup_checksums (
                    artifact_id TEXT PRIMARY KEY,
                    checksums TEXT NOT NULL,
                    FOREIGN KEY (artifact_id) REFERENCES backup_artifacts(id)
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS restore_jobs (
                    id TEXT PRIMARY KEY,
                    target_id TEXT NOT NULL,
                    requested_by TEXT,
                    target_timestamp TEXT NOT NULL,
                    backup_chain TEXT NOT NULL,
                    status TEXT NOT NULL,
                    progress_message TEXT,
                    failed_index INTEGER,
                    failed_artifact_id TEXT,
                    error_kind TEXT,
                    error_message TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT,
                    FOREIGN KEY (target_id) REFERENCES targets(id)
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS realtime_backup_config (
                    target_id TEXT PRIMARY KEY,
                    enabled INTEGER NOT NULL,
                    watch_interval_seconds INTEGER NOT NULL,
                    exclude_patterns TEXT NOT NULL,
                    max_daily_backups INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (target_id) REFERENCES targets(id)
                )
            """)

            await db.commit()

        logger.info("vault_db_initialized", db_path=str(db_path))

    except Exception as e:
        raise VaultError(
            f"Failed to initialize vault database: {e}",
            details={"db_path": str(db_path)},
        )


# ============================================================================
# Targets
# ============================================================================

async def register_target(
    db: aiosqlite.Connection,
    target_id: str,
    name: str,
    agent_url: str,
    api_key: str | None = None,
) -> TargetRecord:
    """
    Register a managed target, or update how its agent is reached.

    Args:
        db: SQLite database connection
        target_id: Target ID
        name: Display name
        agent_url: Base URL of the agent running on the target
        api_key: Key the agent expects in requests

    Returns:
        The stored target record
    """
    now = _now()

    await db.execute(
        """
        INSERT INTO targets (id, name, agent_url, api_key, created_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            agent_url = excluded.agent_url,
            api_key = excluded.api_key
        """,
        (target_id, name, agent_url, api_key, now),
    )
    await db.commit()

    logger.info("target_registered", target_id=target_id, agent_url=agent_url)

    return _expect(await get_target(db, target_id), "target", target_id)


async def get_target(
    db: aiosqlite.Connection,
    target_id: str,
) -> TargetRecord | None:
    """Get a target record, or None if the id is unknown."""
    async with db.execute(
        "SELECT id, name, agent_url, api_key, created_at FROM targets WHERE id = ?",
        (target_id,),
    ) as cursor:
        row = await cursor.fetchone()

        if row:
            return TargetRecord(
                id=row[0],
                name=row[1],
                agent_url=row[2],
                api_key=row[3],
                created_at=row[4],
            )

        return None


# ============================================================================
# Backup artifacts
# ============================================================================

async def insert_artifact(
    db: aiosqlite.Connection,
    artifact_id: str,
    target_id: str,
    kind: BackupKind,
    parent_id: str | None,
    provider: StorageProvider,
    created_at: datetime,
    progress_message: str,
    added_count: int = 0,
    modified_count: int = 0,
    deleted_count: int = 0,
) -> BackupArtifact:
    """
    Record a new artifact in the CREATING status.

    Raises:
        sqlite3.IntegrityError: If the target already has a non-terminal artifact
    """
    await db.execute(
        """
        INSERT INTO backup_artifacts
        (id, target_id, kind, parent_id, status, added_count, modified_count,
         deleted_count, progress_message, provider, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            artifact_id,
            target_id,
            kind.value,
            parent_id,
            BackupStatus.CREATING.value,
            added_count,
            modified_count,
            deleted_count,
            progress_message,
            provider.value,
            format_timestamp(created_at),
        ),
    )
    await db.commit()

    logger.debug(
        "artifact_recorded",
        artifact_id=artifact_id,
        target_id=target_id,
        kind=kind.value,
        parent_id=parent_id,
    )

    return _expect(await get_artifact(db, artifact_id), "artifact", artifact_id)


async def get_artifact(
    db: aiosqlite.Connection,
    artifact_id: str,
) -> BackupArtifact | None:
    """Get an artifact by id, or None if not found."""
    async with db.execute(f"{_ARTIFACT_SELECT} WHERE id = ?", (artifact_id,)) as cursor:
        row = await cursor.fetchone()
        return _artifact_from_row(row) if row else None


async def get_latest_completed_artifact(
    db: aiosqlite.Connection,
    target_id: str,
    kind: BackupKind | None = None,
    completed_before: datetime | None = None,
) -> BackupArtifact | None:
    """
    Get the most recently completed artifact of a target.

    Args:
        db: SQLite database connection
        target_id: Target ID
        kind: Optional filter by kind
        completed_before: Only consider artifacts completed at or before this time

    Returns:
        The artifact with the greatest completed_at, or None
    """
    query = f"{_ARTIFACT_SELECT} WHERE target_id = ? AND status = ?"
    params: List[Any] = [target_id, BackupStatus.COMPLETED.value]

    if kind is not None:
        query += " AND kind = ?"
        params.append(kind.value)

    if completed_before is not None:
        query += " AND completed_at <= ?"
        params.append(format_timestamp(completed_before))

    query += " ORDER BY completed_at DESC LIMIT 1"

    async with db.execute(query, params) as cursor:
        row = await cursor.fetchone()
        return _artifact_from_row(row) if row else None


async def get_in_flight_artifact(
    db: aiosqlite.Connection,
    target_id: str,
) -> BackupArtifact | None:
    """Get the non-terminal artifact of a target, if there is one."""
    async with db.execute(
        f"{_ARTIFACT_SELECT} WHERE target_id = ? AND status IN (?, ?, ?) LIMIT 1",
        (target_id, *_IN_FLIGHT),
    ) as cursor:
        row = await cursor.fetchone()
        return _artifact_from_row(row) if row else None


async def transition_artifact(
    db: aiosqlite.Connection,
    artifact_id: str,
    from_status: BackupStatus,
    to_status: BackupStatus,
    progress_message: str,
    **fields: Any,
) -> bool:
    """
    Move an artifact to its next status.

    The update only applies while the artifact is still in from_status,
    so concurrent or stale writers cannot overwrite a newer status.

    Args:
        db: SQLite database connection
        artifact_id: Artifact ID
        from_status: Status the artifact is expected to be in
        to_status: New status
        progress_message: Human-readable progress, replaces the previous one
        **fields: Extra columns to set (size_bytes, completed_at, ...)

    Returns:
        True if the artifact was updated
    """
    if to_status not in BACKUP_TRANSITIONS.get(from_status, set()):
        raise VaultError(
            f"Invalid artifact transition {from_status.value} -> {to_status.value}",
            details={"artifact_id": artifact_id},
        )

    unknown = set(fields) - _ARTIFACT_UPDATABLE
    if unknown:
        raise VaultError(
            f"Cannot update artifact columns: {sorted(unknown)}",
            details={"artifact_id": artifact_id},
        )

    values = {
        key: format_timestamp(value) if isinstance(value, datetime) else value
        for key, value in fields.items()
    }
    assignments = ", ".join(["status = ?", "progress_message = ?"] + [f"{k} = ?" for k in values])

    cursor = await db.execute(
        f"UPDATE backup_artifacts SET {assignments} WHERE id = ? AND status = ?",
        (
            to_status.value,
            progress_message,
            *values.values(),
            artifact_id,
            from_status.value,
        ),
    )
    await db.commit()

    return cursor.rowcount > 0


async def list_artifacts(
    db: aiosqlite.Connection,
    target_id: str,
    limit: int = 50,
    kind: BackupKind | None = None,
    statuses: List[BackupStatus] | None = None,
) -> List[BackupArtifact]:
    """
    List artifacts of a target, newest first.

    Args:
        db: SQLite database connection
        target_id: Target ID
        limit: Maximum number of records to return
        kind: Optional filter by kind
        statuses: Optional filter by status

    Returns:
        List of artifact records
    """
    query = f"{_ARTIFACT_SELECT} WHERE target_id = ?"
    params: List[Any] = [target_id]

    if kind is not None:
        query += " AND kind = ?"
        params.append(kind.value)

    if statuses:
        query += f" AND status IN ({', '.join('?' for _ in statuses)})"
        params.extend(s.value for s in statuses)

    query += " ORDER BY COALESCE(completed_at, created_at) DESC LIMIT ?"
    params.append(limit)

    records: List[BackupArtifact] = []

    async with db.execute(query, params) as cursor:
        async for row in cursor:
            records.append(_artifact_from_row(row))

    return records


async def count_artifacts_created_since(
    db: aiosqlite.Connection,
    target_id: str,
    since: datetime,
) -> int:
    """Count artifacts of a target created at or after a point in time."""
    async with db.execute(
        "SELECT COUNT(*) FROM backup_artifacts WHERE target_id = ? AND created_at >= ?",
        (target_id, format_timestamp(since)),
    ) as cursor:
        row = await cursor.fetchone()
        return row[0] if row else 0


async def get_last_artifact_created_at(
    db: aiosqlite.Connection,
    target_id: str,
) -> datetime | None:
    """Get the creation time of the newest artifact of a target."""
    async with db.execute(
        "SELECT MAX(created_at) FROM backup_artifacts WHERE target_id = ?",
        (target_id,),
    ) as cursor:
        row = await cursor.fetchone()
        if row and row[0]:
            return parse_timestamp(row[0])
        return None


# ============================================================================
# Restore jobs
# ============================================================================

async def insert_restore_job(
    db: aiosqlite.Connection,
    job_id: str,
    target_id: str,
    target_timestamp: datetime,
    backup_chain: List[str],
    created_at: datetime,
    requested_by: str | None = None,
) -> RestoreJob:
    """
    Record a new restore job in the PENDING status.

    The chain is written once here and never updated.
    """
    await db.execute(
        """
        INSERT INTO restore_jobs
        (id, target_id, requested_by, target_timestamp, backup_chain, status,
         progress_message, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job_id,
            target_id,
            requested_by,
            format_timestamp(target_timestamp),
            json.dumps(backup_chain),
            RestoreStatus.PENDING.value,
            "Restore queued",
            format_timestamp(created_at),
        ),
    )
    await db.commit()

    logger.debug(
        "restore_job_recorded",
        job_id=job_id,
        target_id=target_id,
        chain_length=len(backup_chain),
    )

    return _expect(await get_restore_job(db, job_id), "restore job", job_id)


async def get_restore_job(
    db: aiosqlite.Connection,
    job_id: str,
) -> RestoreJob | None:
    """Get a restore job by id, or None if not found."""
    async with db.execute(f"{_RESTORE_SELECT} WHERE id = ?", (job_id,)) as cursor:
        row = await cursor.fetchone()
        return _restore_job_from_row(row) if row else None


async def transition_restore_job(
    db: aiosqlite.Connection,
    job_id: str,
    from_status: RestoreStatus,
    to_status: RestoreStatus,
    progress_message: str,
    **fields: Any,
) -> bool:
    """
    Move a restore job to its next status (compare-and-set on from_status).

    Returns:
        True if the job was updated
    """
    if to_status not in RESTORE_TRANSITIONS.get(from_status, set()):
        raise VaultError(
            f"Invalid restore transition {from_status.value} -> {to_status.value}",
            details={"job_id": job_id},
        )

    unknown = set(fields) - _RESTORE_UPDATABLE
    if unknown:
        raise VaultError(
            f"Cannot update restore job columns: {sorted(unknown)}",
            details={"job_id": job_id},
        )

    values = {
        key: format_timestamp(value) if isinstance(value, datetime) else value
        for key, value in fields.items()
    }
    assignments = ", ".join(["status = ?", "progress_message = ?"] + [f"{k} = ?" for k in values])

    cursor = await db.execute(
        f"UPDATE restore_jobs SET {assignments} WHERE id = ? AND status = ?",
        (
            to_status.value,
            progress_message,
            *values.values(),
            job_id,
            from_status.value,
        ),
    )
    await db.commit()

    return cursor.rowcount > 0


async def update_restore_progress(
    db: aiosqlite.Connection,
    job_id: str,
    progress_message: str,
) -> bool:
    """Replace the progress message of a running restore job."""
    cursor = await db.execute(
        "UPDATE restore_jobs SET progress_message = ? WHERE id = ? AND status = ?",
        (progress_message, job_id, RestoreStatus.RUNNING.value),
    )
    await db.commit()
    return cursor.rowcount > 0


# ============================================================================
# Real-time backup configuration
# ============================================================================

async def upsert_realtime_config(
    db: aiosqlite.Connection,
    target_id: str,
    enabled: bool,
    watch_interval_seconds: int,
    exclude_patterns: List[str],
    max_daily_backups: int,
) -> RealTimeBackupConfig:
    """
    Insert or replace the real-time backup configuration of a target.
    """
    now = _now()

    await db.execute(
        """
        INSERT INTO realtime_backup_config
        (target_id, enabled, watch_interval_seconds, exclude_patterns,
         max_daily_backups, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(target_id) DO UPDATE SET
            enabled = excluded.enabled,
            watch_interval_seconds = excluded.watch_interval_seconds,
            exclude_patterns = excluded.exclude_patterns,
            max_daily_backups = excluded.max_daily_backups,
            updated_at = excluded.updated_at
        """,
        (
            target_id,
            int(enabled),
            watch_interval_seconds,
            json.dumps(exclude_patterns),
            max_daily_backups,
            now,
        ),
    )
    await db.commit()

    return _expect(await get_realtime_config(db, target_id), "real-time config", target_id)


async def set_realtime_enabled(
    db: aiosqlite.Connection,
    target_id: str,
    enabled: bool,
    defaults: Dict[str, Any],
) -> RealTimeBackupConfig:
    """
    Flip the enabled flag, keeping the other settings.

    If the target has no configuration yet, one is inserted with the
    given defaults (watch_interval_seconds, exclude_patterns,
    max_daily_backups).
    """
    now = _now()

    await db.execute(
        """
        INSERT INTO realtime_backup_config
        (target_id, enabled, watch_interval_seconds, exclude_patterns,
         max_daily_backups, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(target_id) DO UPDATE SET
            enabled = excluded.enabled,
            updated_at = excluded.updated_at
        """,
        (
            target_id,
            int(enabled),
            defaults["watch_interval_seconds"],
            json.dumps(defaults["exclude_patterns"]),
            defaults["max_daily_backups"],
            now,
        ),
    )
    await db.commit()

    return _expect(await get_realtime_config(db, target_id), "real-time config", target_id)


async def get_realtime_config(
    db: aiosqlite.Connection,
    target_id: str,
) -> RealTimeBackupConfig | None:
    """Get the real-time backup configuration of a target."""
    async with db.execute(
        """
        SELECT target_id, enabled, watch_interval_seconds, exclude_patterns,
               max_daily_backups, updated_at
        FROM realtime_backup_config
        WHERE target_id = ?
        """,
        (target_id,),
    ) as cursor:
        row = await cursor.fetchone()
        return _realtime_config_from_row(row) if row else None


async def list_enabled_realtime_configs(
    db: aiosqlite.Connection,
) -> List[RealTimeBackupConfig]:
    """List configurations of every target with real-time backup enabled."""
    records: List[RealTimeBackupConfig] = []

    async with db.execute(
        """
        SELECT target_id, enabled, watch_interval_seconds, exclude_patterns,
               max_daily_backups, updated_at
        FROM realtime_backup_config
        WHERE enabled = 1
        ORDER BY target_id
        """
    ) as cursor:
        async for row in cursor:
            records.append(_realtime_config_from_row(row))

    return records


# ============================================================================
# Start-up recovery
# ============================================================================

async def fail_interrupted_records(
    db: aiosqlite.Connection,
    now: datetime,
) -> Dict[str, int]:
    """
    Fail artifacts and restore jobs left non-terminal by a previous process.

    An in-flight artifact whose routine is gone would otherwise block its
    target forever. Restore jobs get completed_at set to now.

    Returns:
        Number of failed artifacts and restore jobs
    """
    message = "Interrupted by a restart before reaching a terminal status"
    stamp = format_timestamp(now)

    cursor = await db.execute(
        """
        UPDATE backup_artifacts
        SET status = ?, progress_message = ?, error_kind = ?, error_message = ?
        WHERE status IN (?, ?, ?)
        """,
        (
            BackupStatus.FAILED.value,
            message,
            "internal",
            message,
            *_IN_FLIGHT,
        ),
    )
    artifacts = cursor.rowcount

    cursor = await db.execute(
        """
        UPDATE restore_jobs
        SET status = ?, progress_message = ?, error_kind = ?, error_message = ?,
            completed_at = ?
        WHERE status IN (?, ?)
        """,
        (
            RestoreStatus.FAILED.value,
            message,
            "internal",
            message,
            stamp,
            RestoreStatus.PENDING.value,
            RestoreStatus.RUNNING.value,
        ),
    )
    jobs = cursor.rowcount
    await db.commit()

    if artifacts or jobs:
        logger.warning("interrupted_records_failed", artifacts=artifacts, restore_jobs=jobs)

    return {"artifacts": artifacts, "restore_jobs": jobs}


# ============================================================================
# Retention
# ============================================================================

async def list_completed_artifacts(
    db: aiosqlite.Connection,
    target_id: str,
) -> List[BackupArtifact]:
    """List every completed artifact of a target, oldest first."""
    records: List[BackupArtifact] = []

    async with db.execute(
        f"{_ARTIFACT_SELECT} WHERE target_id = ? AND status = ? ORDER BY completed_at",
        (target_id, BackupStatus.COMPLETED.value),
    ) as cursor:
        async for row in cursor:
            records.append(_artifact_from_row(row))

    return records


async def list_active_restore_artifact_ids(
    db: aiosqlite.Connection,
    target_id: str,
) -> set[str]:
    """Ids of artifacts in the frozen chains of pending or running restores."""
    ids: set[str] = set()

    async with db.execute(
        f"{_RESTORE_SELECT} WHERE target_id = ? AND status IN (?, ?)",
        (target_id, RestoreStatus.PENDING.value, RestoreStatus.RUNNING.value),
    ) as cursor:
        async for row in cursor:
            ids.update(_restore_job_from_row(row)["backup_chain"])

    return ids


async def delete_completed_artifact(
    db: aiosqlite.Connection,
    artifact_id: str,
) -> bool:
    """
    Delete a completed artifact and its checksum catalog.

    Artifacts in any other status are left alone.

    Returns:
        True if the artifact was deleted
    """
    cursor = await db.execute(
        "DELETE FROM backup_artifacts WHERE id = ? AND status = ?",
        (artifact_id, BackupStatus.COMPLETED.value),
    )
    deleted = cursor.rowcount > 0

    if deleted:
        await db.execute("DELETE FROM backup_checksums WHERE artifact_id = ?", (artifact_id,))

    await db.commit()

    return deleted
