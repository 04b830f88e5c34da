# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Vault - Relational store, checksum catalog and payload compression.
"""

from sitevault.vault.sqlite_vault import (
    init_vault_db,
    register_target,
    get_target,
    insert_artifact,
    get_artifact,
    get_latest_completed_artifact,
    get_in_flight_artifact,
    transition_artifact,
    list_artifacts,
    count_artifacts_created_since,
    get_last_artifact_created_at,
    insert_restore_job,
    get_restore_job,
    transition_restore_job,
    update_restore_progress,
    upsert_realtime_config,
    set_realtime_enabled,
    get_realtime_config,
    list_enabled_realtime_configs,
    fail_interrupted_records,
    list_completed_artifacts,
    list_active_restore_artifact_ids,
    delete_completed_artifact,
    format_timestamp,
    parse_timestamp,
    BackupArtifact,
    RestoreJob,
    RealTimeBackupConfig,
    TargetRecord,
)

from sitevault.vault.catalog import (
    Catalog,
    store_checksums,
    get_stored_checksums,
)

from sitevault.vault.compressor import (
    compress_payload,
    decompress_payload,
)

__all__ = [
    # Store functions
    "init_vault_db",
    "register_target",
    "get_target",
    "insert_artifact",
    "get_artifact",
    "get_latest_completed_artifact",
    "get_in_flight_artifact",
    "transition_artifact",
    "list_artifacts",
    "count_artifacts_created_since",
    "get_last_artifact_created_at",
    "insert_restore_job",
    "get_restore_job",
    "transition_restore_job",
    "update_restore_progress",
    "upsert_realtime_config",
    "set_realtime_enabled",
    "get_realtime_config",
    "list_enabled_realtime_configs",
    "fail_interrupted_records",
    "list_completed_artifacts",
    "list_active_restore_artifact_ids",
    "delete_completed_artifact",
    "format_timestamp",
    "parse_timestamp",
    # Types
    "BackupArtifact",
    "RestoreJob",
    "RealTimeBackupConfig",
    "TargetRecord",
    # Catalog
    "Catalog",
    "store_checksums",
    "get_stored_checksums",
    # Compressor
    "compress_payload",
    "decompress_payload",
]
