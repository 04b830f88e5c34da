# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Critical Safety Tests for SiteVault.

These tests verify the core guarantees:
1. Chain integrity - Every chain starts at a full artifact and follows parent links
2. Diff correctness - Change buckets are disjoint and complete
3. No void backups - Unchanged targets produce no artifact
4. Mutual exclusion - At most one backup in flight per target
5. Restore selection - Restores never overshoot the requested time
6. Full-backup fallback - Stale or missing bases produce a full backup
7. Integrity errors surface - Broken chains are never truncated
8. Failures are recorded - Failed artifacts and jobs carry their cause
9. Retention keeps chains whole - Only complete, outdated chains are deleted

These tests MUST pass before any production deployment.
"""

import asyncio
from datetime import timedelta

import aiosqlite
import pytest

from conftest import (
    DAY0,
    TARGET_ID,
    BlockingCollector,
    completed_backup,
    make_state,
)
from sitevault import service
from sitevault.backup.chain import build_chain
from sitevault.backup.changes import diff_checksums
from sitevault.backup.manager import prune_old_backups
from sitevault.backup.orchestrator import create_full_backup, create_incremental_backup
from sitevault.backup.restore import restore_to_point_in_time, select_restore_point
from sitevault.config import StorageProvider
from sitevault.core import drain_background_tasks, shutdown_vault_state
from sitevault.exceptions import (
    BackupInProgress,
    ChainBroken,
    ErrorKind,
    NoBackupAvailable,
    StorageReadFailed,
    StorageWriteFailed,
    TargetUnreachable,
    VaultError,
)
from sitevault.vault import get_artifact, get_restore_job, get_stored_checksums, list_artifacts


async def _fetch_artifact(state, artifact_id):
    async with aiosqlite.connect(state["db_path"]) as db:
        return await get_artifact(db, artifact_id)


async def _fetch_job(state, job_id):
    async with aiosqlite.connect(state["db_path"]) as db:
        return await get_restore_job(db, job_id)


async def _three_artifact_chain(config, state, reporter, clock):
    """F1 at DAY0, I1 one day later, I2 two days later."""
    reporter.catalogs[TARGET_ID] = {"a": "1", "b": "1"}
    f1 = await completed_backup(config, state, create_full_backup)

    clock.advance(days=1)
    reporter.catalogs[TARGET_ID] = {"a": "2", "b": "1", "c": "1"}
    i1 = await completed_backup(config, state, create_incremental_backup)

    clock.advance(days=1)
    reporter.catalogs[TARGET_ID] = {"a": "2", "c": "1"}
    i2 = await completed_backup(config, state, create_incremental_backup)

    return f1, i1, i2


class UntouchedStore:
    """Object store that records and rejects every call."""

    provider = StorageProvider.AWS

    def __init__(self):
        self.calls = []

    async def put(self, key, data):
        self.calls.append(("put", key))
        raise StorageWriteFailed("unexpected write", details={"key": key})

    async def get(self, key):
        self.calls.append(("get", key))
        raise StorageReadFailed("unexpected read", details={"key": key})

    async def delete(self, key):
        self.calls.append(("delete", key))
        raise StorageWriteFailed("unexpected delete", details={"key": key})


# ============================================================================
# Test 1: THREE-DAY SCENARIO
# ============================================================================

@pytest.mark.asyncio
async def test_three_day_incremental_scenario(test_config, vault_state, reporter, applier, clock):
    """
    CRITICAL: Full F1, then I1 (a modified, c added), then I2 (b deleted).

    Restoring to the end of day 1 applies [F1, I1] in order.
    """
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)

    assert f1["status"] == "completed"
    assert f1["kind"] == "full"
    assert f1["parent_id"] is None

    assert i1["status"] == "completed"
    assert i1["kind"] == "incremental"
    assert i1["parent_id"] == f1["id"]
    assert (i1["added_count"], i1["modified_count"], i1["deleted_count"]) == (1, 1, 0)

    assert i2["status"] == "completed"
    assert i2["parent_id"] == i1["id"]
    assert (i2["added_count"], i2["modified_count"], i2["deleted_count"]) == (0, 0, 1)

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        assert await get_stored_checksums(db, f1["id"]) == {"a": "1", "b": "1"}
        assert await get_stored_checksums(db, i1["id"]) == {"a": "2", "b": "1", "c": "1"}
        assert await get_stored_checksums(db, i2["id"]) == {"a": "2", "c": "1"}

    day1_end = (DAY0 + timedelta(days=1)).replace(hour=23, minute=59, second=59)
    job = await restore_to_point_in_time(test_config, vault_state, TARGET_ID, day1_end)

    assert job["status"] == "pending"
    assert job["backup_chain"] == [f1["id"], i1["id"]]

    await drain_background_tasks(vault_state)

    job = await _fetch_job(vault_state, job["id"])
    assert job["status"] == "completed"
    assert [applied[1] for applied in applier.applied] == [f1["id"], i1["id"]]

    # The incremental payload carries only its delta
    i1_manifest = applier.applied[1][2]
    assert i1_manifest["files"] == {"a": "2", "c": "1"}
    assert i1_manifest["deleted"] == []


# ============================================================================
# Test 2: CHAIN INTEGRITY
# ============================================================================

@pytest.mark.asyncio
async def test_chain_starts_at_full_and_follows_parent_links(test_config, vault_state, reporter, clock):
    """
    CRITICAL: build_chain returns full first, the artifact last, and
    every consecutive pair is linked by parent_id.
    """
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        chain = await build_chain(db, i2)

    assert chain[0]["kind"] == "full"
    assert chain[-1]["id"] == i2["id"]
    assert [a["id"] for a in chain] == [f1["id"], i1["id"], i2["id"]]
    for parent, child in zip(chain, chain[1:]):
        assert child["parent_id"] == parent["id"]


@pytest.mark.asyncio
async def test_missing_parent_raises_chain_broken(test_config, vault_state, reporter, clock):
    """
    CRITICAL: A dangling parent link is surfaced, never truncated.
    """
    from sitevault.service import restore_to_point_in_time as restore_operation

    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        await db.execute("DELETE FROM backup_artifacts WHERE id = ?", (i1["id"],))
        await db.commit()

        with pytest.raises(ChainBroken):
            await build_chain(db, i2)

    result = await restore_operation(test_config, vault_state, TARGET_ID, clock())

    assert result.success is False
    assert result.error_kind == ErrorKind.CHAIN_BROKEN


# ============================================================================
# Test 3: DIFF CORRECTNESS
# ============================================================================

def test_diff_buckets_are_disjoint_and_complete():
    """
    CRITICAL: added and modified never overlap, and every path of the
    current catalog outside them has an unchanged checksum.
    """
    previous = {"a": "1", "b": "1", "d": "1", "e": "9"}
    current = {"a": "1", "b": "2", "c": "1", "e": "9"}

    changes = diff_checksums(previous, current)

    assert sorted(changes.added) == ["c"]
    assert sorted(changes.modified) == ["b"]
    assert sorted(changes.deleted) == ["d"]
    assert not set(changes.added) & set(changes.modified)

    for path in set(current) - set(changes.added) - set(changes.modified):
        assert previous[path] == current[path]


def test_diff_of_identical_catalogs_is_empty():
    changes = diff_checksums({"a": "1"}, {"a": "1"})

    assert changes.is_empty
    assert changes.counts().total == 0


# ============================================================================
# Test 4: NO VOID BACKUPS
# ============================================================================

@pytest.mark.asyncio
async def test_unchanged_target_creates_no_artifact(test_config, vault_state, reporter, clock):
    """
    CRITICAL: Two incremental requests without an intervening change
    produce no second artifact.
    """
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    await completed_backup(test_config, vault_state, create_full_backup)

    clock.advance(hours=1)
    reporter.catalogs[TARGET_ID] = {"a": "2"}
    first = await completed_backup(test_config, vault_state, create_incremental_backup)
    assert first["kind"] == "incremental"

    clock.advance(hours=1)
    second = await create_incremental_backup(test_config, vault_state, TARGET_ID)
    assert second is None

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        artifacts = await list_artifacts(db, TARGET_ID)
    assert len(artifacts) == 2


# ============================================================================
# Test 5: MUTUAL EXCLUSION
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_creates_leave_one_backup_in_flight(test_config, reporter, applier, clock):
    """
    CRITICAL: Two concurrent requests for one target yield exactly one
    non-terminal artifact; the other request gets BackupInProgress.
    """
    collector = BlockingCollector()
    state = await make_state(test_config, reporter, applier, clock, collector=collector)
    reporter.catalogs[TARGET_ID] = {"a": "1"}

    try:
        results = await asyncio.gather(
            create_incremental_backup(test_config, state, TARGET_ID),
            create_incremental_backup(test_config, state, TARGET_ID),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, BackupInProgress)]
        assert len(created) == 1
        assert len(rejected) == 1

        await asyncio.wait_for(collector.entered.wait(), timeout=5)

        async with aiosqlite.connect(state["db_path"]) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM backup_artifacts WHERE target_id = ? "
                "AND status IN ('creating', 'processing', 'uploading')",
                (TARGET_ID,),
            ) as cursor:
                (in_flight,) = await cursor.fetchone()
        assert in_flight == 1

        # A later request is rejected too, full or incremental
        with pytest.raises(BackupInProgress):
            await create_full_backup(test_config, state, TARGET_ID)

        collector.release.set()
        await drain_background_tasks(state)

        artifact = await _fetch_artifact(state, created[0]["id"])
        assert artifact["status"] == "completed"
    finally:
        collector.release.set()
        await shutdown_vault_state(state)


# ============================================================================
# Test 6: RESTORE SELECTION
# ============================================================================

@pytest.mark.asyncio
async def test_restore_selects_latest_artifact_not_after_timestamp(test_config, vault_state, reporter, clock):
    """
    CRITICAL: With artifacts completed at T1 < T2 < T3, any t with
    T2 <= t < T3 resolves to the artifact completed at T2.
    """
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    a1 = await completed_backup(test_config, vault_state, create_full_backup)
    t1 = clock()

    t2 = clock.advance(hours=1)
    reporter.catalogs[TARGET_ID] = {"a": "2"}
    a2 = await completed_backup(test_config, vault_state, create_incremental_backup)

    t3 = clock.advance(hours=1)
    reporter.catalogs[TARGET_ID] = {"a": "3"}
    a3 = await completed_backup(test_config, vault_state, create_incremental_backup)

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        for t in (t2, t2 + timedelta(minutes=30), t3 - timedelta(microseconds=1)):
            point = await select_restore_point(db, TARGET_ID, t)
            assert point["id"] == a2["id"]

        assert (await select_restore_point(db, TARGET_ID, t1))["id"] == a1["id"]
        assert (await select_restore_point(db, TARGET_ID, t3))["id"] == a3["id"]

        with pytest.raises(NoBackupAvailable):
            await select_restore_point(db, TARGET_ID, t1 - timedelta(seconds=1))


@pytest.mark.asyncio
async def test_restore_ignores_failed_artifacts(test_config, vault_state, reporter, clock):
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    reporter.unreachable.add(TARGET_ID)
    failed = await completed_backup(test_config, vault_state, create_full_backup)
    assert failed["status"] == "failed"

    with pytest.raises(NoBackupAvailable):
        await restore_to_point_in_time(test_config, vault_state, TARGET_ID, clock())


# ============================================================================
# Test 7: FULL-BACKUP FALLBACK
# ============================================================================

@pytest.mark.asyncio
async def test_incremental_without_full_creates_full(test_config, vault_state, reporter):
    reporter.catalogs[TARGET_ID] = {"a": "1", "b": "1"}

    artifact = await completed_backup(test_config, vault_state, create_incremental_backup)

    assert artifact["kind"] == "full"
    assert artifact["parent_id"] is None
    assert artifact["added_count"] == 2


@pytest.mark.asyncio
async def test_incremental_on_stale_full_creates_full(test_config, vault_state, reporter, clock):
    """
    CRITICAL: A full artifact older than max_full_backup_age_days is not
    extended; a new full artifact is taken instead.
    """
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    await completed_backup(test_config, vault_state, create_full_backup)

    clock.advance(days=test_config.max_full_backup_age_days + 1)
    reporter.catalogs[TARGET_ID] = {"a": "2"}

    artifact = await completed_backup(test_config, vault_state, create_incremental_backup)

    assert artifact["kind"] == "full"
    assert artifact["parent_id"] is None


@pytest.mark.asyncio
async def test_full_at_exact_age_limit_is_still_extended(test_config, vault_state, reporter, clock):
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    full = await completed_backup(test_config, vault_state, create_full_backup)

    clock.advance(days=test_config.max_full_backup_age_days)
    reporter.catalogs[TARGET_ID] = {"a": "2"}

    artifact = await completed_backup(test_config, vault_state, create_incremental_backup)

    assert artifact["kind"] == "incremental"
    assert artifact["parent_id"] == full["id"]


# ============================================================================
# Test 8: FAILURES ARE RECORDED
# ============================================================================

@pytest.mark.asyncio
async def test_unreachable_target_fails_full_backup(test_config, vault_state, reporter, notifier):
    """
    CRITICAL: A full backup of an unreachable target ends FAILED with the
    cause recorded, and the record is kept.
    """
    reporter.unreachable.add(TARGET_ID)

    artifact = await completed_backup(test_config, vault_state, create_full_backup)

    assert artifact["status"] == "failed"
    assert artifact["error_kind"] == ErrorKind.TARGET_UNREACHABLE.value
    assert artifact["error_message"]
    assert ("backup_failed", artifact["id"]) in notifier.events

    # The target is free again
    reporter.unreachable.clear()
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    retry = await completed_backup(test_config, vault_state, create_full_backup)
    assert retry["status"] == "completed"


@pytest.mark.asyncio
async def test_unreachable_target_rejects_incremental(test_config, vault_state, reporter):
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    await completed_backup(test_config, vault_state, create_full_backup)

    reporter.unreachable.add(TARGET_ID)

    with pytest.raises(TargetUnreachable):
        await create_incremental_backup(test_config, vault_state, TARGET_ID)


@pytest.mark.asyncio
async def test_upload_failure_fails_artifact(test_config, vault_state, reporter):
    class FailingStore:
        provider = StorageProvider.LOCAL

        async def put(self, key, data):
            raise StorageWriteFailed("bucket unavailable", details={"key": key})

        async def get(self, key):
            raise AssertionError("not reached")

        async def delete(self, key):
            raise AssertionError("not reached")

    vault_state["stores"][StorageProvider.LOCAL] = FailingStore()
    reporter.catalogs[TARGET_ID] = {"a": "1"}

    artifact = await completed_backup(test_config, vault_state, create_full_backup)

    assert artifact["status"] == "failed"
    assert artifact["error_kind"] == ErrorKind.STORAGE_WRITE_FAILED.value
    assert artifact["object_key"] is None


@pytest.mark.asyncio
async def test_failed_completion_removes_uploaded_payload(test_config, vault_state, reporter, monkeypatch):
    """
    CRITICAL: If the artifact cannot be completed after its upload, the
    payload is deleted so no object outlives a failed artifact.
    """
    import sitevault.backup.orchestrator as orchestrator

    async def broken_store_checksums(db, artifact_id, checksums):
        raise VaultError("disk full")

    monkeypatch.setattr(orchestrator, "store_checksums", broken_store_checksums)
    reporter.catalogs[TARGET_ID] = {"a": "1"}

    artifact = await completed_backup(test_config, vault_state, create_full_backup)

    assert artifact["status"] == "failed"
    assert artifact["error_kind"] == ErrorKind.INTERNAL.value
    assert list(test_config.objects_path.rglob("*.json.zst")) == []


@pytest.mark.asyncio
async def test_committed_completion_survives_failed_read_back(
    test_config, vault_state, reporter, notifier, monkeypatch
):
    """
    CRITICAL: Once the COMPLETED write has committed, a failing read-back
    neither deletes the payload nor reports the backup as failed.
    """
    import sitevault.backup.orchestrator as orchestrator

    read_artifact = orchestrator.get_artifact
    failed_reads = []

    async def read_back_fails_once(db, artifact_id):
        artifact = await read_artifact(db, artifact_id)
        if artifact and artifact["status"] == "completed" and not failed_reads:
            failed_reads.append(artifact_id)
            raise VaultError("connection reset")
        return artifact

    monkeypatch.setattr(orchestrator, "get_artifact", read_back_fails_once)
    reporter.catalogs[TARGET_ID] = {"a": "1"}

    artifact = await completed_backup(test_config, vault_state, create_full_backup)

    assert failed_reads == [artifact["id"]]
    assert artifact["status"] == "completed"
    assert (test_config.objects_path / artifact["object_key"]).exists()
    assert ("backup_completed", artifact["id"]) in notifier.events
    assert ("backup_failed", artifact["id"]) not in notifier.events
    assert artifact["id"] not in vault_state["jobs"]


@pytest.mark.asyncio
async def test_restore_failure_records_failing_element(test_config, vault_state, reporter, applier, clock, notifier):
    """
    CRITICAL: When chain element k fails, the job is FAILED with k and
    the artifact recorded, and later elements are not applied.
    """
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)
    applier.fail_on.add(i1["id"])

    job = await restore_to_point_in_time(test_config, vault_state, TARGET_ID, clock(), requested_by="ops")
    await drain_background_tasks(vault_state)

    job = await _fetch_job(vault_state, job["id"])
    assert job["status"] == "failed"
    assert job["failed_index"] == 1
    assert job["failed_artifact_id"] == i1["id"]
    assert job["error_kind"] == ErrorKind.TARGET_UNREACHABLE.value
    assert job["requested_by"] == "ops"
    assert [applied[1] for applied in applier.applied] == [f1["id"]]
    assert ("restore_failed", job["id"]) in notifier.events


@pytest.mark.asyncio
async def test_missing_payload_fails_restore_at_that_element(test_config, vault_state, reporter, applier, clock):
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)
    (test_config.objects_path / f1["object_key"]).unlink()

    job = await restore_to_point_in_time(test_config, vault_state, TARGET_ID, clock())
    await drain_background_tasks(vault_state)

    job = await _fetch_job(vault_state, job["id"])
    assert job["status"] == "failed"
    assert job["failed_index"] == 0
    assert job["error_kind"] == ErrorKind.STORAGE_READ_FAILED.value
    assert applier.applied == []


@pytest.mark.asyncio
async def test_restore_reads_through_the_provider_stamped_on_artifacts(
    test_config, vault_state, reporter, applier, clock
):
    """
    Artifacts written to local storage stay readable after the default
    provider changes.
    """
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    full = await completed_backup(test_config, vault_state, create_full_backup)
    assert full["provider"] == StorageProvider.LOCAL.value

    aws_config = test_config.with_updates(
        default_provider=StorageProvider.AWS,
        aws_bucket="site-backups",
    )
    aws_store = UntouchedStore()
    vault_state["stores"][StorageProvider.AWS] = aws_store

    job = await restore_to_point_in_time(aws_config, vault_state, TARGET_ID, clock())
    await drain_background_tasks(vault_state)

    job = await _fetch_job(vault_state, job["id"])
    assert job["status"] == "completed"
    assert [applied[1] for applied in applier.applied] == [full["id"]]
    assert aws_store.calls == []


# ============================================================================
# Test 9: RETENTION
# ============================================================================

@pytest.mark.asyncio
async def test_retention_deletes_whole_outdated_chains(test_config, vault_state, reporter, clock):
    """
    CRITICAL: Retention deletes a chain only when its newest artifact is
    past the cutoff, reads the provider from each artifact and keeps
    the latest chain and every failed record.
    """
    reporter.catalogs[TARGET_ID] = {"a": "1"}
    old_full = await completed_backup(test_config, vault_state, create_full_backup)
    clock.advance(days=1)
    reporter.catalogs[TARGET_ID] = {"a": "2"}
    old_incremental = await completed_backup(test_config, vault_state, create_incremental_backup)

    clock.advance(days=1)
    reporter.unreachable.add(TARGET_ID)
    failed = await completed_backup(test_config, vault_state, create_full_backup)
    reporter.unreachable.discard(TARGET_ID)
    assert failed["status"] == "failed"

    clock.advance(days=40)
    reporter.catalogs[TARGET_ID] = {"a": "3"}
    new_full = await completed_backup(test_config, vault_state, create_full_backup)
    clock.advance(hours=1)
    reporter.catalogs[TARGET_ID] = {"a": "4"}
    new_incremental = await completed_backup(test_config, vault_state, create_incremental_backup)

    # Every artifact above was written to local storage
    aws_config = test_config.with_updates(
        default_provider=StorageProvider.AWS,
        aws_bucket="site-backups",
    )
    aws_store = UntouchedStore()
    vault_state["stores"][StorageProvider.AWS] = aws_store

    preview = await service.prune_backups(aws_config, vault_state, TARGET_ID, retention_days=30, dry_run=True)
    assert preview.success is True
    assert preview.data["dry_run"] is True
    assert preview.data["deleted"] == [old_incremental["id"], old_full["id"]]
    assert (test_config.objects_path / old_full["object_key"]).exists()
    assert await _fetch_artifact(vault_state, old_full["id"]) is not None

    result = await prune_old_backups(aws_config, vault_state, TARGET_ID, retention_days=30)

    assert result.deleted == [old_incremental["id"], old_full["id"]]
    assert result.chains_deleted == 1
    assert result.bytes_freed == old_full["size_bytes"] + old_incremental["size_bytes"]
    assert result.errors == {}
    assert aws_store.calls == []

    assert not (test_config.objects_path / old_full["object_key"]).exists()
    assert not (test_config.objects_path / old_incremental["object_key"]).exists()
    assert await _fetch_artifact(vault_state, old_full["id"]) is None
    assert await _fetch_artifact(vault_state, old_incremental["id"]) is None

    assert (await _fetch_artifact(vault_state, failed["id"]))["status"] == "failed"
    for kept in (new_full, new_incremental):
        assert (test_config.objects_path / kept["object_key"]).exists()
        assert (await _fetch_artifact(vault_state, kept["id"]))["status"] == "completed"

    async with aiosqlite.connect(vault_state["db_path"]) as db:
        chain = await build_chain(db, new_incremental)
        assert [a["id"] for a in chain] == [new_full["id"], new_incremental["id"]]
        assert await get_stored_checksums(db, old_full["id"]) == {}


@pytest.mark.asyncio
async def test_retention_keeps_chain_with_recent_tail(test_config, vault_state, reporter, clock):
    """A chain whose full backup is old but whose newest incremental is recent is kept."""
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)

    clock.advance(days=20)
    reporter.catalogs[TARGET_ID] = {"a": "9"}
    newer = await completed_backup(test_config, vault_state, create_full_backup)

    result = await prune_old_backups(test_config, vault_state, TARGET_ID, retention_days=21)

    assert result.deleted == []
    assert result.chains_deleted == 0
    for artifact in (f1, i1, i2, newer):
        assert await _fetch_artifact(vault_state, artifact["id"]) is not None


@pytest.mark.asyncio
async def test_retention_never_deletes_the_latest_chain(test_config, vault_state, reporter, clock):
    f1, i1, i2 = await _three_artifact_chain(test_config, vault_state, reporter, clock)
    clock.advance(days=365)

    result = await prune_old_backups(test_config, vault_state, TARGET_ID, retention_days=0)

    assert result.deleted == []
    async with aiosqlite.connect(vault_state["db_path"]) as db:
        chain = await build_chain(db, await select_restore_point(db, TARGET_ID, clock()))
    assert [a["id"] for a in chain] == [f1["id"], i1["id"], i2["id"]]


@pytest.mark.asyncio
async def test_retention_validates_requests(test_config, vault_state):
    result = await service.prune_backups(test_config, vault_state, TARGET_ID, retention_days=-1)
    assert result.error_kind == ErrorKind.INVALID_REQUEST

    result = await service.prune_backups(test_config, vault_state, "unknown-site")
    assert result.error_kind == ErrorKind.TARGET_NOT_FOUND
