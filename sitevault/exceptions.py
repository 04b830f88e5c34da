# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Exceptions - Custom exceptions for the sitevault package.

Every exception carries an ErrorKind so that the operation facade can
report a structured failure instead of an opaque error.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Structured error kinds reported across the operation boundary."""

    TARGET_NOT_FOUND = "target_not_found"
    BACKUP_IN_PROGRESS = "backup_in_progress"
    TARGET_UNREACHABLE = "target_unreachable"
    CHAIN_BROKEN = "chain_broken"
    NO_BACKUP_AVAILABLE = "no_backup_available"
    JOB_NOT_FOUND = "job_not_found"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    STORAGE_READ_FAILED = "storage_read_failed"
    INVALID_REQUEST = "invalid_request"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class SiteVaultError(Exception):
    """Base exception for all SiteVault errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SiteVaultError):
    """Raised when configuration is invalid."""

    kind = ErrorKind.CONFIGURATION


class InvalidRequest(SiteVaultError):
    """Raised when operation arguments are invalid."""

    kind = ErrorKind.INVALID_REQUEST


class VaultError(SiteVaultError):
    """Raised when the relational store cannot be read or written."""

    pass


class TargetNotFound(SiteVaultError):
    """Raised when a target id is unknown."""

    kind = ErrorKind.TARGET_NOT_FOUND


class BackupInProgress(SiteVaultError):
    """Raised when a target already has a non-terminal backup."""

    kind = ErrorKind.BACKUP_IN_PROGRESS


class TargetUnreachable(SiteVaultError):
    """Raised when the agent on a managed target cannot be reached."""

    kind = ErrorKind.TARGET_UNREACHABLE


class ChainBroken(SiteVaultError):
    """Raised when parent links between artifacts do not form a valid chain."""

    kind = ErrorKind.CHAIN_BROKEN


class NoBackupAvailable(SiteVaultError):
    """Raised when no completed artifact covers a restore timestamp."""

    kind = ErrorKind.NO_BACKUP_AVAILABLE


class JobNotFound(SiteVaultError):
    """Raised when a backup or restore job id is unknown."""

    kind = ErrorKind.JOB_NOT_FOUND


class StorageWriteFailed(SiteVaultError):
    """Raised when an object store write fails."""

    kind = ErrorKind.STORAGE_WRITE_FAILED


class StorageReadFailed(SiteVaultError):
    """Raised when an object store read fails."""

    kind = ErrorKind.STORAGE_READ_FAILED
