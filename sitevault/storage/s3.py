# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3-compatible object store.

One implementation serves every S3-compatible provider. AWS uses the
standard credential chain and virtual-hosted URLs; IDrive e2 uses an
explicit endpoint, explicit keys and path-style addressing.
"""

from typing import Any

import structlog
from aiobotocore.config import AioConfig
from aiobotocore.session import get_session

from sitevault.config import SiteVaultConfig, StorageProvider
from sitevault.exceptions import StorageReadFailed, StorageWriteFailed

logger = structlog.get_logger()


def _normalize_endpoint(endpoint: str) -> str:
    """Ensure an endpoint carries a scheme."""
    if not endpoint.startswith(("http://", "https://")):
        return "https://" + endpoint
    return endpoint.rstrip("/")


class S3ObjectStore:
    """Object store backed by an S3-compatible bucket."""

    def __init__(
        self,
        provider: StorageProvider,
        bucket: str,
        region: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        path_style: bool = False,
        session: Any = None,
    ):
        self.provider = provider
        self.bucket = bucket
        self.region = region
        self.endpoint_url = _normalize_endpoint(endpoint_url) if endpoint_url else None
        self._access_key = access_key
        self._secret_key = secret_key
        self._path_style = path_style
        self._session = session or get_session()

    def _client(self) -> Any:
        """Create a client context manager (one per operation)."""
        kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self._access_key and self._secret_key:
            kwargs["aws_access_key_id"] = self._access_key
            kwargs["aws_secret_access_key"] = self._secret_key
        if self._path_style:
            kwargs["config"] = AioConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            )
        return self._session.create_client("s3", **kwargs)

    def url_for(self, key: str) -> str:
        """Public URL of an object."""
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes) -> str:
        try:
            async with self._client() as s3_client:
                await s3_client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except Exception as e:
            raise StorageWriteFailed(
                f"Failed to upload object: {e}",
                details={"key": key, "bucket": self.bucket, "provider": self.provider.value},
            ) from e

        logger.debug(
            "object_uploaded",
            key=key,
            bucket=self.bucket,
            size=len(data),
            provider=self.provider.value,
        )

        return self.url_for(key)

    async def get(self, key: str) -> bytes:
        try:
            async with self._client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=key)
                async with response["Body"] as stream:
                    return await stream.read()
        except Exception as e:
            raise StorageReadFailed(
                f"Failed to download object: {e}",
                details={"key": key, "bucket": self.bucket, "provider": self.provider.value},
            ) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise StorageWriteFailed(
                f"Failed to delete object: {e}",
                details={"key": key, "bucket": self.bucket, "provider": self.provider.value},
            ) from e

        logger.debug("object_deleted", key=key, bucket=self.bucket, provider=self.provider.value)


def create_aws_store(config: SiteVaultConfig, session: Any = None) -> S3ObjectStore:
    """AWS S3 store from configuration."""
    return S3ObjectStore(
        provider=StorageProvider.AWS,
        bucket=config.aws_bucket or "",
        region=config.aws_region,
        session=session,
    )


def create_idrive_e2_store(config: SiteVaultConfig, session: Any = None) -> S3ObjectStore:
    """IDrive e2 store from configuration."""
    return S3ObjectStore(
        provider=StorageProvider.IDRIVE_E2,
        bucket=config.idrive_e2_bucket or "",
        region=config.idrive_e2_region,
        endpoint_url=config.idrive_e2_endpoint,
        access_key=config.idrive_e2_access_key,
        secret_key=config.idrive_e2_secret_key,
        path_style=True,
        session=session,
    )
