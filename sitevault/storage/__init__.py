# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object Storage - Provider-agnostic stores for artifact payloads.

The provider is chosen once, when an artifact is created, and persisted
on the artifact. Later reads and deletes look the store up by that
persisted provider rather than by the current default.
"""

from typing import Any, Dict

from sitevault.config import SiteVaultConfig, StorageProvider
from sitevault.errors import explain_unconfigured_provider
from sitevault.exceptions import ConfigurationError
from sitevault.storage.base import ObjectStore, build_object_key
from sitevault.storage.local import LocalObjectStore
from sitevault.storage.s3 import S3ObjectStore, create_aws_store, create_idrive_e2_store

ObjectStores = Dict[StorageProvider, ObjectStore]


def build_object_stores(config: SiteVaultConfig, session: Any = None) -> ObjectStores:
    """
    Open a store for every provider the configuration has settings for.

    Args:
        config: SiteVault configuration
        session: Optional aiobotocore session shared by the S3 stores

    Returns:
        Mapping of provider to store
    """
    stores: ObjectStores = {
        StorageProvider.LOCAL: LocalObjectStore(config.objects_path),
    }

    configured = config.configured_providers()
    if StorageProvider.AWS in configured:
        stores[StorageProvider.AWS] = create_aws_store(config, session)
    if StorageProvider.IDRIVE_E2 in configured:
        stores[StorageProvider.IDRIVE_E2] = create_idrive_e2_store(config, session)

    return stores


def resolve_store(stores: ObjectStores, provider: str | StorageProvider) -> ObjectStore:
    """
    Get the store of a provider.

    Raises:
        ConfigurationError: If the provider has no configured store
    """
    key = StorageProvider(provider)
    store = stores.get(key)
    if store is None:
        raise ConfigurationError(
            explain_unconfigured_provider(key.value),
            details={"provider": key.value},
        )
    return store


__all__ = [
    "ObjectStore",
    "ObjectStores",
    "LocalObjectStore",
    "S3ObjectStore",
    "build_object_key",
    "build_object_stores",
    "resolve_store",
]
