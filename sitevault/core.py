# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Core - Runtime state shared by every operation.

The state holds the paths, the object stores and the injected
capabilities. Background routines that process artifacts and restore
jobs are tracked here so they can be awaited or cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, UTC
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Coroutine, Set, TypedDict

import aiosqlite
import structlog

from sitevault.config import SiteVaultConfig
from sitevault.registry import JobRegistry
from sitevault.storage import ObjectStores

if TYPE_CHECKING:
    from sitevault.agent import ChainApplier, ChecksumReporter
    from sitevault.notifications import NotificationHook
    from sitevault.processing import ArtifactCollector

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class VaultState(TypedDict):
    """Runtime state for SiteVault operations."""

    db_path: Path
    vault_path: Path
    stores: ObjectStores  # One per configured provider
    reporter: ChecksumReporter
    collector: ArtifactCollector
    applier: ChainApplier
    notifier: NotificationHook
    jobs: JobRegistry
    tasks: Set[asyncio.Task[Any]]  # Background processing routines
    clock: Clock


async def initialize_vault_state(
    config: SiteVaultConfig,
    reporter: ChecksumReporter | None = None,
    collector: ArtifactCollector | None = None,
    applier: ChainApplier | None = None,
    notifier: NotificationHook | None = None,
    clock: Clock | None = None,
    s3_session: Any = None,
) -> VaultState:
    """
    Initialize runtime state.

    Creates the vault directories, initializes the store schema and
    opens the object stores. Capabilities that are not given default to
    the HTTP agent client, the manifest collector and the logging notifier.

    Args:
        config: SiteVault configuration
        reporter: Checksum reporting capability
        collector: Artifact collection capability
        applier: Chain application capability
        notifier: Notification hook
        clock: Source of the current time (UTC)
        s3_session: aiobotocore session shared by the S3 stores

    Returns:
        Initialized VaultState dictionary
    """
    from sitevault.agent import SiteAgentClient
    from sitevault.notifications import LoggingNotifier
    from sitevault.processing import ManifestCollector
    from sitevault.storage import build_object_stores
    from sitevault.vault import fail_interrupted_records, init_vault_db

    config.vault_path.mkdir(parents=True, exist_ok=True)
    config.objects_path.mkdir(parents=True, exist_ok=True)

    await init_vault_db(config.db_path)

    now = (clock or utc_now)()
    async with aiosqlite.connect(config.db_path) as db:
        await fail_interrupted_records(db, now)

    agent = None
    if reporter is None or applier is None:
        agent = SiteAgentClient(timeout=config.agent_timeout_seconds)

    state = VaultState(
        db_path=config.db_path,
        vault_path=config.vault_path,
        stores=build_object_stores(config, s3_session),
        reporter=reporter or agent,
        collector=collector or ManifestCollector(),
        applier=applier or agent,
        notifier=notifier or LoggingNotifier(),
        jobs=JobRegistry(),
        tasks=set(),
        clock=clock or utc_now,
    )

    logger.info(
        "vault_state_initialized",
        vault_path=str(config.vault_path),
        providers=sorted(p.value for p in state["stores"]),
        default_provider=config.default_provider.value,
    )

    return state


def spawn_background(
    state: VaultState,
    coro: Coroutine[Any, Any, Any],
    name: str,
) -> asyncio.Task[Any]:
    """Run a processing routine in the background and keep a reference to it."""
    task = asyncio.create_task(coro, name=name)
    state["tasks"].add(task)
    task.add_done_callback(state["tasks"].discard)
    return task


async def drain_background_tasks(state: VaultState) -> None:
    """Wait until every background routine has finished."""
    while state["tasks"]:
        await asyncio.gather(*list(state["tasks"]), return_exceptions=True)


async def shutdown_vault_state(state: VaultState) -> None:
    """
    Cancel and await background routines.

    Artifacts or jobs interrupted here stay non-terminal in the store
    until the next initialize_vault_state fails them.
    """
    tasks = list(state["tasks"])
    for task in tasks:
        task.cancel()

    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)

    state["tasks"].clear()

    logger.info("vault_state_shutdown", cancelled=len(tasks))
