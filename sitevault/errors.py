# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for SiteVault.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_aws_bucket() -> str:
    """
    Explain that the AWS provider was selected without a bucket.
    """

    return (
        "AWS storage is selected but no bucket is configured. "
        "Set the AWS_S3_BUCKET environment variable or pass aws_bucket=... to create_config()."
    )


def explain_missing_idrive_e2_settings() -> str:
    """
    Explain that the IDrive e2 provider lacks its bucket or credentials.
    """

    return (
        "IDrive e2 storage is selected but it is not fully configured. "
        "Set IDRIVE_E2_BUCKET, IDRIVE_E2_ACCESS_KEY and IDRIVE_E2_SECRET_KEY "
        "or pass the matching idrive_e2_* arguments to create_config()."
    )


def explain_invalid_max_full_age_env(value: str | None) -> str:
    """
    Explain that SITEVAULT_MAX_FULL_AGE_DAYS is invalid.
    """

    return (
        f"Invalid SITEVAULT_MAX_FULL_AGE_DAYS value: {value!r}. "
        "It must be a non-negative integer number of days."
    )


def explain_invalid_provider_env(value: str | None) -> str:
    """
    Explain that SITEVAULT_PROVIDER is invalid.
    """

    return (
        f"Invalid SITEVAULT_PROVIDER value: {value!r}. "
        "Expected one of: 'aws', 'idrive_e2', or 'local'."
    )


def explain_invalid_tick_env(value: str | None) -> str:
    """
    Explain that SITEVAULT_SCHEDULER_TICK is invalid.
    """

    return (
        f"Invalid SITEVAULT_SCHEDULER_TICK value: {value!r}. "
        "It must be a positive integer number of seconds."
    )


def explain_unconfigured_provider(provider: str) -> str:
    """
    Explain that an artifact references a provider with no configured store.
    """

    return (
        f"Object storage provider {provider!r} is not configured. "
        "Artifacts keep the provider they were written with, so its settings "
        "must stay available for downloads and deletes."
    )
