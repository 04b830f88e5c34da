# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault - Incremental backups and point-in-time restore for managed sites.

Takes full snapshots and incremental deltas of the file trees of managed
targets (e.g. WordPress sites), chains each delta to its parent, stores
payloads in S3-compatible object storage and restores a target to any
completed point in time. Package name: sitevault.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from sitevault.builder import create_config

# Runtime state
from sitevault.core import (
    initialize_vault_state,
    drain_background_tasks,
    shutdown_vault_state,
)

# Environment-based configuration and profiles (additional helpers)
from sitevault.env import (
    create_config_from_env,
    short_chains,
    storage_saver,
)

# Scheduler driver
from sitevault.scheduler import (
    run_realtime_tick,
    start_realtime_scheduler,
)

# Operation facade
from sitevault.service import (
    OperationResult,
    register_target,
    create_full_backup,
    create_incremental_backup,
    get_backup_history,
    prune_backups,
    enable_realtime_backup,
    disable_realtime_backup,
    get_realtime_status,
    restore_to_point_in_time,
    get_job_status,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_env",
    "short_chains",
    "storage_saver",
    # Runtime state
    "initialize_vault_state",
    "drain_background_tasks",
    "shutdown_vault_state",
    # Scheduler
    "run_realtime_tick",
    "start_realtime_scheduler",
    # Operations
    "OperationResult",
    "register_target",
    "create_full_backup",
    "create_incremental_backup",
    "get_backup_history",
    "prune_backups",
    "enable_realtime_backup",
    "disable_realtime_backup",
    "get_realtime_status",
    "restore_to_point_in_time",
    "get_job_status",
]
