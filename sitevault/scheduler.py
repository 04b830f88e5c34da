# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Real-Time Scheduler - Periodic incremental backups per target.

Each target owns one real-time configuration (watch interval, exclusion
patterns, daily cap). A recurring tick, driven by APScheduler, triggers
an incremental backup for every enabled target that is below its daily
cap, has no backup in flight and whose watch interval has elapsed.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, List

import aiosqlite
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sitevault.backup.orchestrator import create_incremental_backup
from sitevault.config import SiteVaultConfig, validate_patterns
from sitevault.core import VaultState
from sitevault.exceptions import ErrorKind, InvalidRequest, SiteVaultError, TargetNotFound
from sitevault.vault.sqlite_vault import (
    RealTimeBackupConfig,
    count_artifacts_created_since,
    format_timestamp,
    get_in_flight_artifact,
    get_last_artifact_created_at,
    get_realtime_config,
    get_target,
    list_enabled_realtime_configs,
    set_realtime_enabled,
    upsert_realtime_config,
)

logger = structlog.get_logger()

TICK_JOB_ID = "sitevault_realtime_tick"


@dataclass
class TickResult:
    """Outcome of one scheduler tick."""

    triggered: List[str] = field(default_factory=list)  # Artifact ids
    unchanged: List[str] = field(default_factory=list)  # Target ids with nothing to back up
    skipped: Dict[str, str] = field(default_factory=dict)  # Target id -> reason
    errors: Dict[str, str] = field(default_factory=dict)  # Target id -> error


def start_of_day(now: datetime) -> datetime:
    """Midnight UTC of the calendar day of now."""
    return now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)


def _realtime_defaults(config: SiteVaultConfig) -> Dict[str, Any]:
    return {
        "watch_interval_seconds": config.default_watch_interval_seconds,
        "exclude_patterns": list(config.default_exclude_patterns),
        "max_daily_backups": config.default_max_daily_backups,
    }


async def _require_target(db: aiosqlite.Connection, target_id: str) -> None:
    if await get_target(db, target_id) is None:
        raise TargetNotFound(f"Unknown target: {target_id}", details={"target_id": target_id})


async def enable_realtime_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
    watch_interval_seconds: int | None = None,
    exclude_patterns: List[str] | None = None,
    max_daily_backups: int | None = None,
) -> RealTimeBackupConfig:
    """
    Enable real-time backup for a target.

    Options that are not given keep their stored value, or the
    configured default for a target without a configuration. Calling
    this again with the same options changes nothing.

    Raises:
        TargetNotFound: If the target is unknown
        InvalidRequest: If an option is out of range
    """
    errors: List[str] = []
    if watch_interval_seconds is not None and watch_interval_seconds < 1:
        errors.append(f"watch_interval_seconds must be >= 1, got {watch_interval_seconds}")
    if max_daily_backups is not None and max_daily_backups < 1:
        errors.append(f"max_daily_backups must be >= 1, got {max_daily_backups}")
    if exclude_patterns is not None and not validate_patterns(exclude_patterns):
        errors.append("exclude_patterns must be a list of non-empty strings")
    if errors:
        raise InvalidRequest("Invalid real-time backup options", details={"errors": errors})

    async with aiosqlite.connect(state["db_path"]) as db:
        await _require_target(db, target_id)

        settings = _realtime_defaults(config)
        existing = await get_realtime_config(db, target_id)
        if existing:
            settings = {key: existing[key] for key in settings}

        if watch_interval_seconds is not None:
            settings["watch_interval_seconds"] = watch_interval_seconds
        if exclude_patterns is not None:
            settings["exclude_patterns"] = list(exclude_patterns)
        if max_daily_backups is not None:
            settings["max_daily_backups"] = max_daily_backups

        record = await upsert_realtime_config(db, target_id, True, **settings)

    logger.info(
        "realtime_backup_enabled",
        target_id=target_id,
        watch_interval_seconds=record["watch_interval_seconds"],
        max_daily_backups=record["max_daily_backups"],
        exclude_patterns=record["exclude_patterns"],
    )

    return record


async def disable_realtime_backup(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> RealTimeBackupConfig:
    """
    Disable real-time backup for a target, keeping its settings.

    Raises:
        TargetNotFound: If the target is unknown
    """
    async with aiosqlite.connect(state["db_path"]) as db:
        await _require_target(db, target_id)
        record = await set_realtime_enabled(db, target_id, False, _realtime_defaults(config))

    logger.info("realtime_backup_disabled", target_id=target_id)

    return record


async def get_realtime_status(
    config: SiteVaultConfig,
    state: VaultState,
    target_id: str,
) -> Dict[str, Any]:
    """
    Real-time configuration of a target with today's usage.

    A target that was never configured reports the defaults, disabled.

    Raises:
        TargetNotFound: If the target is unknown
    """
    now = state["clock"]()

    async with aiosqlite.connect(state["db_path"]) as db:
        await _require_target(db, target_id)

        record = await get_realtime_config(db, target_id)
        today_count = await count_artifacts_created_since(db, target_id, start_of_day(now))
        last_created = await get_last_artifact_created_at(db, target_id)
        in_flight = await get_in_flight_artifact(db, target_id)

    settings: Dict[str, Any] = dict(record) if record else {
        "target_id": target_id,
        "enabled": False,
        **_realtime_defaults(config),
        "updated_at": None,
    }

    settings["today_count"] = today_count
    settings["remaining_today"] = max(settings["max_daily_backups"] - today_count, 0)
    settings["last_backup_at"] = format_timestamp(last_created) if last_created else None
    settings["in_flight_artifact_id"] = in_flight["id"] if in_flight else None

    return settings


async def _skip_reason(
    db: aiosqlite.Connection,
    realtime: RealTimeBackupConfig,
    now: datetime,
) -> str | None:
    target_id = realtime["target_id"]

    today_count = await count_artifacts_created_since(db, target_id, start_of_day(now))
    if today_count >= realtime["max_daily_backups"]:
        return "daily_cap_reached"

    if await get_in_flight_artifact(db, target_id) is not None:
        return "backup_in_flight"

    last_created = await get_last_artifact_created_at(db, target_id)
    if last_created is not None:
        elapsed = (now - last_created).total_seconds()
        if elapsed < realtime["watch_interval_seconds"]:
            return "watch_interval_not_elapsed"

    return None


async def run_realtime_tick(config: SiteVaultConfig, state: VaultState) -> TickResult:
    """
    Trigger due incremental backups for every enabled target.

    Errors are recorded per target and never abort the tick.
    """
    now = state["clock"]()
    result = TickResult()

    async with aiosqlite.connect(state["db_path"]) as db:
        enabled = await list_enabled_realtime_configs(db)

        due: List[str] = []
        for realtime in enabled:
            reason = await _skip_reason(db, realtime, now)
            if reason:
                result.skipped[realtime["target_id"]] = reason
            else:
                due.append(realtime["target_id"])

    for target_id in due:
        try:
            artifact = await create_incremental_backup(config, state, target_id)
        except SiteVaultError as e:
            result.errors[target_id] = e.message
            logger.warning(
                "realtime_backup_not_started",
                target_id=target_id,
                error_kind=e.kind.value,
                error=e.message,
            )
            continue
        except Exception as e:
            result.errors[target_id] = str(e) or type(e).__name__
            logger.error(
                "realtime_backup_not_started",
                target_id=target_id,
                error_kind=ErrorKind.INTERNAL.value,
                error=str(e),
            )
            continue

        if artifact is None:
            result.unchanged.append(target_id)
        else:
            result.triggered.append(artifact["id"])

    logger.info(
        "realtime_tick_completed",
        enabled=len(enabled),
        triggered=len(result.triggered),
        unchanged=len(result.unchanged),
        skipped=len(result.skipped),
        errors=len(result.errors),
    )

    return result


def start_realtime_scheduler(config: SiteVaultConfig, state: VaultState) -> AsyncIOScheduler:
    """
    Run the real-time tick every scheduler_tick_seconds.

    Must be called with a running event loop. The caller owns the
    returned scheduler and shuts it down.
    """
    scheduler = AsyncIOScheduler()

    async def scheduled_tick():
        try:
            await run_realtime_tick(config, state)
        except Exception as e:
            logger.error("realtime_tick_failed", error=str(e))

    scheduler.add_job(
        scheduled_tick,
        trigger=IntervalTrigger(seconds=config.scheduler_tick_seconds),
        id=TICK_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()

    logger.info(
        "realtime_scheduler_started",
        tick_seconds=config.scheduler_tick_seconds,
        next_run=scheduler.get_job(TICK_JOB_ID).next_run_time.isoformat(),
    )

    return scheduler
