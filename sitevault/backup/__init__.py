# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Change detection, chains, backup lifecycle and restore.
"""

from sitevault.backup.changes import (
    ChangeCounts,
    ChangeSet,
    diff_checksums,
    full_snapshot,
)

from sitevault.backup.chain import (
    build_chain,
    load_chain,
)

from sitevault.backup.manager import (
    BackupHistory,
    PruneResult,
    format_bytes,
    get_backup_history,
    group_chains,
    prune_old_backups,
    read_artifact_payload,
    write_artifact_payload,
)

from sitevault.backup.orchestrator import (
    create_full_backup,
    create_incremental_backup,
    process_artifact,
)

from sitevault.backup.restore import (
    process_restore_job,
    restore_to_point_in_time,
    select_restore_point,
)

__all__ = [
    # Change detection
    "ChangeCounts",
    "ChangeSet",
    "diff_checksums",
    "full_snapshot",
    # Chains
    "build_chain",
    "load_chain",
    # Manager
    "BackupHistory",
    "PruneResult",
    "format_bytes",
    "get_backup_history",
    "group_chains",
    "prune_old_backups",
    "read_artifact_payload",
    "write_artifact_payload",
    # Orchestrator
    "create_full_backup",
    "create_incremental_backup",
    "process_artifact",
    # Restore
    "process_restore_job",
    "restore_to_point_in_time",
    "select_restore_point",
]
