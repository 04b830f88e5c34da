# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for SiteVault tests.

Provides a controllable clock, fake site agents, database fixtures and
test configuration helpers.
"""

import asyncio
import tempfile
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import Any, Dict, Generator, List

import aiosqlite
import pytest
import pytest_asyncio

from sitevault.exceptions import TargetUnreachable
from sitevault.processing import ManifestCollector

TARGET_ID = "site-x"
DAY0 = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = DAY0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeReporter:
    """Checksum reporter serving catalogs from a dict."""

    def __init__(self):
        self.catalogs: Dict[str, Dict[str, str]] = {}
        self.unreachable: set = set()
        self.calls: List[tuple] = []

    async def get_current_checksums(self, target, exclude_patterns):
        self.calls.append((target["id"], list(exclude_patterns)))
        if target["id"] in self.unreachable:
            raise TargetUnreachable("agent offline", details={"target_id": target["id"]})
        return dict(self.catalogs.get(target["id"], {}))


class FakeApplier:
    """Chain applier that records what it applied."""

    def __init__(self):
        self.applied: List[tuple] = []
        self.fail_on: set = set()

    async def apply_artifact(self, target, artifact, manifest):
        if artifact["id"] in self.fail_on:
            raise TargetUnreachable("agent rejected artifact", details={"artifact_id": artifact["id"]})
        self.applied.append((target["id"], artifact["id"], manifest))


class BlockingCollector(ManifestCollector):
    """Manifest collector that waits for a release event."""

    def __init__(self):
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def collect(self, artifact, changes, checksums):
        self.entered.set()
        await self.release.wait()
        return await super().collect(artifact, changes, checksums)


class RecordingNotifier:
    def __init__(self):
        self.events: List[tuple] = []

    async def on_backup_completed(self, artifact):
        self.events.append(("backup_completed", artifact["id"]))

    async def on_backup_failed(self, artifact):
        self.events.append(("backup_failed", artifact["id"]))

    async def on_restore_completed(self, job):
        self.events.append(("restore_completed", job["id"]))

    async def on_restore_failed(self, job):
        self.events.append(("restore_failed", job["id"]))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration storing artifacts locally."""
    from sitevault.config import SiteVaultConfig

    return SiteVaultConfig(
        vault_path=temp_dir / "vault",
        max_full_backup_age_days=30,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()


@pytest.fixture
def applier() -> FakeApplier:
    return FakeApplier()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


async def make_state(config, reporter, applier, clock, **kwargs):
    """Initialize state with fakes and one registered target."""
    from sitevault.core import initialize_vault_state
    from sitevault.vault import register_target

    state = await initialize_vault_state(
        config,
        reporter=reporter,
        applier=applier,
        clock=clock,
        **kwargs,
    )

    async with aiosqlite.connect(state["db_path"]) as db:
        await register_target(db, TARGET_ID, "Site X", "http://agent.test", "key-x")

    return state


@pytest_asyncio.fixture
async def vault_state(test_config, reporter, applier, clock, notifier):
    """Create initialized vault state for testing."""
    from sitevault.core import shutdown_vault_state

    state = await make_state(test_config, reporter, applier, clock, notifier=notifier)
    yield state
    await shutdown_vault_state(state)


async def completed_backup(config, state, create, target_id: str = TARGET_ID) -> Dict[str, Any]:
    """Run a create operation and wait for its artifact to finish."""
    from sitevault.core import drain_background_tasks
    from sitevault.vault import get_artifact

    artifact = await create(config, state, target_id)
    await drain_background_tasks(state)

    if artifact is None:
        return None

    async with aiosqlite.connect(state["db_path"]) as db:
        return await get_artifact(db, artifact["id"])
