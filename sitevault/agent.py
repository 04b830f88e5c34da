# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Agent Client - Talk to the agent running on a managed target.

The agent computes the checksum catalog of the site (after applying the
exclusion patterns) and applies artifacts during a restore. SiteVault
never reads site files itself.
"""

from typing import Any, Dict, List, Protocol

import httpx
import structlog

from sitevault.exceptions import TargetUnreachable
from sitevault.vault.catalog import Catalog
from sitevault.vault.sqlite_vault import BackupArtifact, TargetRecord

logger = structlog.get_logger()

API_KEY_HEADER = "X-Agent-Key"


class ChecksumReporter(Protocol):
    """Reports the current checksum catalog of a target."""

    async def get_current_checksums(
        self,
        target: TargetRecord,
        exclude_patterns: List[str],
    ) -> Catalog:
        """
        Raises:
            TargetUnreachable: If the catalog cannot be obtained
        """
        ...


class ChainApplier(Protocol):
    """Applies one decoded artifact to a target."""

    async def apply_artifact(
        self,
        target: TargetRecord,
        artifact: BackupArtifact,
        manifest: Dict[str, Any],
    ) -> None:
        """
        Raises:
            TargetUnreachable: If the target cannot be reached
        """
        ...


class SiteAgentClient:
    """
    HTTP client of the site agent.

    Implements both ChecksumReporter and ChainApplier.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def _post(
        self,
        target: TargetRecord,
        path: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        url = target["agent_url"].rstrip("/") + path
        headers = {}
        if target["api_key"]:
            headers[API_KEY_HEADER] = target["api_key"]

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise TargetUnreachable(
                f"Agent request failed: {e}",
                details={"target_id": target["id"], "url": url},
            ) from e
        except ValueError as e:
            raise TargetUnreachable(
                "Agent returned a response that is not JSON",
                details={"target_id": target["id"], "url": url},
            ) from e

        if not isinstance(body, dict):
            raise TargetUnreachable(
                "Agent returned an unexpected response",
                details={"target_id": target["id"], "url": url},
            )

        return body

    async def get_current_checksums(
        self,
        target: TargetRecord,
        exclude_patterns: List[str],
    ) -> Catalog:
        body = await self._post(
            target,
            "/checksums",
            {"exclude_patterns": list(exclude_patterns)},
        )

        checksums = body.get("checksums")
        if not isinstance(checksums, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in checksums.items()
        ):
            raise TargetUnreachable(
                "Agent returned a malformed checksum catalog",
                details={"target_id": target["id"]},
            )

        logger.debug("checksums_fetched", target_id=target["id"], paths=len(checksums))

        return checksums

    async def apply_artifact(
        self,
        target: TargetRecord,
        artifact: BackupArtifact,
        manifest: Dict[str, Any],
    ) -> None:
        await self._post(
            target,
            "/restore/apply",
            {
                "artifact_id": artifact["id"],
                "kind": artifact["kind"],
                "manifest": manifest,
            },
        )

        logger.debug("artifact_applied", target_id=target["id"], artifact_id=artifact["id"])
