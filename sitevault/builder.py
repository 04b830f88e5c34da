# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Builder - Functional builder pattern for configuration.

This module provides pure functions for building SiteVaultConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, List

from sitevault.config import DEFAULT_EXCLUDE_PATTERNS, SiteVaultConfig, StorageProvider


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "vault_path": Path("./sitevault_data"),
        "max_full_backup_age_days": 30,
        "default_provider": StorageProvider.LOCAL,
        "aws_bucket": None,
        "aws_region": "eu-central-1",
        "idrive_e2_bucket": None,
        "idrive_e2_endpoint": "e2.idrivee2.com",
        "idrive_e2_region": "e2",
        "idrive_e2_access_key": None,
        "idrive_e2_secret_key": None,
        "object_key_prefix": "backups",
        "agent_timeout_seconds": 10.0,
        "scheduler_tick_seconds": 60,
        "default_watch_interval_seconds": 300,
        "default_exclude_patterns": list(DEFAULT_EXCLUDE_PATTERNS),
        "default_max_daily_backups": 48,
    }


def with_vault(config: ConfigDict, vault_path: Path | str) -> ConfigDict:
    """
    Set the directory holding the store and local objects.

    Args:
        config: Current configuration dictionary
        vault_path: Path to the vault directory

    Returns:
        New configuration dictionary with vault path set
    """
    return {**config, "vault_path": Path(vault_path)}


def force_full_backup_after(config: ConfigDict, days: int) -> ConfigDict:
    """
    Set the maximum age of the base full backup.

    Incremental requests made when the latest full backup is older than
    this are redirected to a new full backup, which bounds chain length.

    Args:
        config: Current configuration dictionary
        days: Maximum age in days

    Returns:
        New configuration dictionary with the age threshold set
    """
    if days < 0:
        raise ValueError(f"full backup age must be >= 0, got {days}")
    return {**config, "max_full_backup_age_days": days}


def use_aws_storage(
    config: ConfigDict,
    bucket: str,
    region: str | None = None,
) -> ConfigDict:
    """
    Store new artifacts in AWS S3.

    Credentials come from the standard AWS credential chain.

    Args:
        config: Current configuration dictionary
        bucket: S3 bucket name
        region: AWS region (keeps the current one if omitted)

    Returns:
        New configuration dictionary with AWS as default provider
    """
    return {
        **config,
        "default_provider": StorageProvider.AWS,
        "aws_bucket": bucket,
        "aws_region": region or config["aws_region"],
    }


def use_idrive_e2_storage(
    config: ConfigDict,
    bucket: str,
    access_key: str,
    secret_key: str,
    endpoint: str | None = None,
    region: str | None = None,
) -> ConfigDict:
    """
    Store new artifacts in IDrive e2.

    Args:
        config: Current configuration dictionary
        bucket: e2 bucket name
        access_key: e2 access key
        secret_key: e2 secret key
        endpoint: e2 endpoint host or URL (keeps the current one if omitted)
        region: e2 region (keeps the current one if omitted)

    Returns:
        New configuration dictionary with IDrive e2 as default provider
    """
    return {
        **config,
        "default_provider": StorageProvider.IDRIVE_E2,
        "idrive_e2_bucket": bucket,
        "idrive_e2_access_key": access_key,
        "idrive_e2_secret_key": secret_key,
        "idrive_e2_endpoint": endpoint or config["idrive_e2_endpoint"],
        "idrive_e2_region": region or config["idrive_e2_region"],
    }


def use_local_storage(config: ConfigDict) -> ConfigDict:
    """
    Store new artifacts under the vault directory.

    Provider settings for S3 backends are kept so existing artifacts
    written there remain readable.
    """
    return {**config, "default_provider": StorageProvider.LOCAL}


def tick_every(config: ConfigDict, seconds: int) -> ConfigDict:
    """
    Set how often the real-time scheduler checks enabled targets.

    Args:
        config: Current configuration dictionary
        seconds: Tick interval in seconds

    Returns:
        New configuration dictionary with tick interval set
    """
    if seconds < 1:
        raise ValueError(f"tick interval must be >= 1, got {seconds}")
    return {**config, "scheduler_tick_seconds": seconds}


def realtime_defaults(
    config: ConfigDict,
    watch_interval_seconds: int | None = None,
    exclude_patterns: List[str] | None = None,
    max_daily_backups: int | None = None,
) -> ConfigDict:
    """
    Set the defaults used when real-time backup is enabled without options.
    """
    updated = dict(config)
    if watch_interval_seconds is not None:
        updated["default_watch_interval_seconds"] = watch_interval_seconds
    if exclude_patterns is not None:
        updated["default_exclude_patterns"] = list(exclude_patterns)
    if max_daily_backups is not None:
        updated["default_max_daily_backups"] = max_daily_backups
    return updated


def build_config(config_dict: ConfigDict) -> SiteVaultConfig:
    """
    Validate and build an immutable SiteVaultConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable SiteVaultConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    return SiteVaultConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:

        config = pipe(
            lambda c: with_vault(c, "/var/lib/sitevault"),
            lambda c: use_aws_storage(c, "site-backups"),
        )(create_empty_config())

    Args:
        *funcs: Builder functions to compose

    Returns:
        A single function that applies all functions in sequence
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> SiteVaultConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    *,
    vault_path: str | Path | None = None,
    max_full_backup_age_days: int | None = None,
    provider: str | StorageProvider | None = None,
    aws_bucket: str | None = None,
    aws_region: str | None = None,
    idrive_e2_bucket: str | None = None,
    idrive_e2_access_key: str | None = None,
    idrive_e2_secret_key: str | None = None,
    idrive_e2_endpoint: str | None = None,
    idrive_e2_region: str | None = None,
    **kwargs: Any,
) -> SiteVaultConfig:
    """
    Create SiteVault configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        vault_path: Path to vault directory (default: "./sitevault_data")
        max_full_backup_age_days: Force a full backup after this many days (default: 30)
        provider: Provider for new artifacts: "aws", "idrive_e2" or "local".
                  Defaults to IDrive e2 when its keys are given, else AWS when a
                  bucket is given, else local.
        aws_bucket: AWS S3 bucket name
        aws_region: AWS region
        idrive_e2_*: IDrive e2 bucket, credentials, endpoint and region
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable SiteVaultConfig instance

    Example:
        config = create_config(
            vault_path="/var/lib/sitevault",
            aws_bucket="site-backups",
            max_full_backup_age_days=14,
        )
    """
    config_dict = create_empty_config()

    if vault_path:
        config_dict = with_vault(config_dict, vault_path)

    if max_full_backup_age_days is not None:
        config_dict = force_full_backup_after(config_dict, max_full_backup_age_days)

    if aws_bucket:
        config_dict = use_aws_storage(config_dict, aws_bucket, aws_region)

    # Applied after AWS so that e2 wins as default when both are configured
    if idrive_e2_bucket and idrive_e2_access_key and idrive_e2_secret_key:
        config_dict = use_idrive_e2_storage(
            config_dict,
            idrive_e2_bucket,
            idrive_e2_access_key,
            idrive_e2_secret_key,
            endpoint=idrive_e2_endpoint,
            region=idrive_e2_region,
        )

    if provider is not None:
        config_dict["default_provider"] = (
            StorageProvider(provider.lower()) if isinstance(provider, str) else provider
        )

    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
