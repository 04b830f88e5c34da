# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Configuration - Immutable configuration and shared enums.

All configuration is frozen (immutable) after creation to prevent
accidental modification while backups are being processed.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re


class BackupKind(str, Enum):
    """Kind of backup artifact."""

    FULL = "full"
    INCREMENTAL = "incremental"


class BackupStatus(str, Enum):
    """Backup artifact processing status."""

    CREATING = "creating"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"  # Terminal, carries an error message

    @property
    def is_terminal(self) -> bool:
        return self in (BackupStatus.COMPLETED, BackupStatus.FAILED)


class RestoreStatus(str, Enum):
    """Restore job processing status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RestoreStatus.COMPLETED, RestoreStatus.FAILED)


class StorageProvider(str, Enum):
    """Object storage provider an artifact is written to."""

    AWS = "aws"
    IDRIVE_E2 = "idrive_e2"
    LOCAL = "local"


# Allowed forward transitions of the backup state machine
BACKUP_TRANSITIONS = {
    BackupStatus.CREATING: {BackupStatus.PROCESSING, BackupStatus.FAILED},
    BackupStatus.PROCESSING: {BackupStatus.UPLOADING, BackupStatus.FAILED},
    BackupStatus.UPLOADING: {BackupStatus.COMPLETED, BackupStatus.FAILED},
}

RESTORE_TRANSITIONS = {
    RestoreStatus.PENDING: {RestoreStatus.RUNNING, RestoreStatus.FAILED},
    RestoreStatus.RUNNING: {RestoreStatus.COMPLETED, RestoreStatus.FAILED},
}

DEFAULT_EXCLUDE_PATTERNS = ["wp-content/cache/*", "wp-content/uploads/cache/*"]


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    if ".." in bucket:
        return False

    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


def validate_patterns(patterns: List[str]) -> bool:
    """Validate exclusion glob patterns."""
    if not isinstance(patterns, list):
        return False
    return all(isinstance(p, str) and p for p in patterns)


@dataclass(frozen=True)
class SiteVaultConfig:
    """
    Immutable configuration for SiteVault.

    This configuration is frozen after creation so that a backup being
    processed in the background never observes a changed policy.
    """

    # Directory holding the SQLite store and the local object store
    vault_path: Path = field(default_factory=lambda: Path("./sitevault_data"))

    # Age in days after which an incremental request is redirected to a full backup
    max_full_backup_age_days: int = 30

    # Provider stamped on newly created artifacts
    default_provider: StorageProvider = StorageProvider.LOCAL

    # AWS S3
    aws_bucket: str | None = None
    aws_region: str = "eu-central-1"

    # IDrive e2 (S3-compatible, path-style addressing)
    idrive_e2_bucket: str | None = None
    idrive_e2_endpoint: str = "e2.idrivee2.com"
    idrive_e2_region: str = "e2"
    idrive_e2_access_key: str | None = None
    idrive_e2_secret_key: str | None = None

    # Prefix for every object key written by SiteVault
    object_key_prefix: str = "backups"

    # Timeout for requests to the agent on a managed target
    agent_timeout_seconds: float = 10.0

    # How often the real-time scheduler looks at enabled targets
    scheduler_tick_seconds: int = 60

    # Defaults applied when real-time backup is enabled without options
    default_watch_interval_seconds: int = 300
    default_exclude_patterns: List[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    default_max_daily_backups: int = 48

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if self.max_full_backup_age_days < 0:
            errors.append(
                f"max_full_backup_age_days must be >= 0, got {self.max_full_backup_age_days}"
            )

        if self.aws_bucket and not _validate_bucket_name(self.aws_bucket):
            errors.append(f"Invalid AWS bucket name: {self.aws_bucket}")

        if self.idrive_e2_bucket and not _validate_bucket_name(self.idrive_e2_bucket):
            errors.append(f"Invalid IDrive e2 bucket name: {self.idrive_e2_bucket}")

        # Validate provider configuration consistency
        if self.default_provider == StorageProvider.AWS and not self.aws_bucket:
            from sitevault.errors import explain_missing_aws_bucket

            errors.append(explain_missing_aws_bucket())

        if self.default_provider == StorageProvider.IDRIVE_E2 and not (
            self.idrive_e2_bucket
            and self.idrive_e2_access_key
            and self.idrive_e2_secret_key
        ):
            from sitevault.errors import explain_missing_idrive_e2_settings

            errors.append(explain_missing_idrive_e2_settings())

        if not self.object_key_prefix or ".." in self.object_key_prefix:
            errors.append(f"Invalid object_key_prefix: {self.object_key_prefix!r}")

        if self.agent_timeout_seconds <= 0:
            errors.append(
                f"agent_timeout_seconds must be > 0, got {self.agent_timeout_seconds}"
            )

        if self.scheduler_tick_seconds < 1:
            errors.append(
                f"scheduler_tick_seconds must be >= 1, got {self.scheduler_tick_seconds}"
            )

        if self.default_watch_interval_seconds < 1:
            errors.append(
                "default_watch_interval_seconds must be >= 1, "
                f"got {self.default_watch_interval_seconds}"
            )

        if self.default_max_daily_backups < 1:
            errors.append(
                f"default_max_daily_backups must be >= 1, got {self.default_max_daily_backups}"
            )

        if not validate_patterns(self.default_exclude_patterns):
            errors.append("Invalid default_exclude_patterns")

        if errors:
            from sitevault.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def db_path(self) -> Path:
        """Path of the SQLite store."""
        return self.vault_path / "sitevault.db"

    @property
    def objects_path(self) -> Path:
        """Root directory of the local object store."""
        return self.vault_path / "objects"

    def configured_providers(self) -> List[StorageProvider]:
        """Providers that have enough settings to open a store."""
        providers = [StorageProvider.LOCAL]
        if self.aws_bucket:
            providers.append(StorageProvider.AWS)
        if self.idrive_e2_bucket and self.idrive_e2_access_key and self.idrive_e2_secret_key:
            providers.append(StorageProvider.IDRIVE_E2)
        return providers

    def with_updates(self, **kwargs) -> "SiteVaultConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return SiteVaultConfig(**current)
