# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Notification hook fired when backups and restores finish.

Delivery (email, chat, ...) is left to the embedding application.
"""

from typing import Protocol

import structlog

from sitevault.vault.sqlite_vault import BackupArtifact, RestoreJob

logger = structlog.get_logger()


class NotificationHook(Protocol):
    async def on_backup_completed(self, artifact: BackupArtifact) -> None: ...

    async def on_backup_failed(self, artifact: BackupArtifact) -> None: ...

    async def on_restore_completed(self, job: RestoreJob) -> None: ...

    async def on_restore_failed(self, job: RestoreJob) -> None: ...


class LoggingNotifier:
    """Default hook: emit one log event per outcome."""

    async def on_backup_completed(self, artifact: BackupArtifact) -> None:
        logger.info(
            "notify_backup_completed",
            artifact_id=artifact["id"],
            target_id=artifact["target_id"],
            kind=artifact["kind"],
            size_bytes=artifact["size_bytes"],
        )

    async def on_backup_failed(self, artifact: BackupArtifact) -> None:
        logger.warning(
            "notify_backup_failed",
            artifact_id=artifact["id"],
            target_id=artifact["target_id"],
            error_kind=artifact["error_kind"],
            error=artifact["error_message"],
        )

    async def on_restore_completed(self, job: RestoreJob) -> None:
        logger.info(
            "notify_restore_completed",
            job_id=job["id"],
            target_id=job["target_id"],
            chain_length=len(job["backup_chain"]),
        )

    async def on_restore_failed(self, job: RestoreJob) -> None:
        logger.warning(
            "notify_restore_failed",
            job_id=job["id"],
            target_id=job["target_id"],
            failed_index=job["failed_index"],
            error_kind=job["error_kind"],
            error=job["error_message"],
        )


async def notify(hook: NotificationHook, event: str, record: dict) -> None:
    """
    Fire a hook method, logging and discarding its errors.

    Args:
        hook: Notification hook
        event: Hook method name (e.g. "on_backup_completed")
        record: Artifact or restore job passed to the hook
    """
    try:
        await getattr(hook, event)(record)
    except Exception as e:
        logger.error(
            "notification_hook_failed",
            hook_event=event,
            record_id=record.get("id"),
            error=str(e),
        )
