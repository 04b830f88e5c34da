# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and chain profiles.

These helpers are small, convenient wrappers around create_config() and
SiteVaultConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made chain length profiles
"""

from __future__ import annotations

import os
from pathlib import Path

from sitevault.builder import create_config
from sitevault.config import SiteVaultConfig, StorageProvider
from sitevault.errors import (
    explain_invalid_max_full_age_env,
    explain_invalid_provider_env,
    explain_invalid_tick_env,
)
from sitevault.exceptions import ConfigurationError


def _parse_provider(value: str | None) -> StorageProvider | None:
    if not value:
        return None
    try:
        return StorageProvider(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_provider_env(value)) from exc


def _parse_max_full_age(value: str | None) -> int:
    if not value:
        return 30
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_max_full_age_env(value)) from exc
    if days < 0:
        raise ConfigurationError(explain_invalid_max_full_age_env(value))
    return days


def _parse_tick(value: str | None) -> int:
    if not value:
        return 60
    try:
        seconds = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_tick_env(value)) from exc
    if seconds < 1:
        raise ConfigurationError(explain_invalid_tick_env(value))
    return seconds


def create_config_from_env() -> SiteVaultConfig:
    """
    Create a SiteVaultConfig from environment variables.

    Without SITEVAULT_PROVIDER, the provider for new artifacts is IDrive e2
    when IDRIVE_E2_ACCESS_KEY is set, else AWS when AWS_S3_BUCKET is set,
    else local storage under the vault directory.

    Optional environment variables:
        - SITEVAULT_PATH: Vault directory (default: ./sitevault_data)
        - SITEVAULT_MAX_FULL_AGE_DAYS: Non-negative integer (default: 30)
        - SITEVAULT_PROVIDER: 'aws' | 'idrive_e2' | 'local'
        - SITEVAULT_SCHEDULER_TICK: Positive integer seconds (default: 60)
        - AWS_S3_BUCKET, AWS_REGION
        - IDRIVE_E2_BUCKET, IDRIVE_E2_ACCESS_KEY, IDRIVE_E2_SECRET_KEY,
          IDRIVE_E2_ENDPOINT, IDRIVE_E2_REGION
    """

    vault_path_env = os.getenv("SITEVAULT_PATH")

    return create_config(
        vault_path=Path(vault_path_env) if vault_path_env else None,
        max_full_backup_age_days=_parse_max_full_age(
            os.getenv("SITEVAULT_MAX_FULL_AGE_DAYS")
        ),
        provider=_parse_provider(os.getenv("SITEVAULT_PROVIDER")),
        aws_bucket=os.getenv("AWS_S3_BUCKET"),
        aws_region=os.getenv("AWS_REGION"),
        idrive_e2_bucket=os.getenv("IDRIVE_E2_BUCKET"),
        idrive_e2_access_key=os.getenv("IDRIVE_E2_ACCESS_KEY"),
        idrive_e2_secret_key=os.getenv("IDRIVE_E2_SECRET_KEY"),
        idrive_e2_endpoint=os.getenv("IDRIVE_E2_ENDPOINT"),
        idrive_e2_region=os.getenv("IDRIVE_E2_REGION"),
        scheduler_tick_seconds=_parse_tick(os.getenv("SITEVAULT_SCHEDULER_TICK")),
    )


# ============================================================================
# Profiles
# ============================================================================

def short_chains(config: SiteVaultConfig) -> SiteVaultConfig:
    """
    Keep chains short for fast restores.

    - Force a full backup at least weekly
    """

    return config.with_updates(
        max_full_backup_age_days=min(config.max_full_backup_age_days, 7),
    )


def storage_saver(config: SiteVaultConfig) -> SiteVaultConfig:
    """
    Favour incremental backups to save storage.

    - Full backups at most monthly (at least 30 days)
    - Fewer real-time backups per day
    """

    return config.with_updates(
        max_full_backup_age_days=max(config.max_full_backup_age_days, 30),
        default_max_daily_backups=min(config.default_max_daily_backups, 24),
    )
