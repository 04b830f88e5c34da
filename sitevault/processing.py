# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact collection - the work done while an artifact is processing.

The collector turns a change set into the payload that is uploaded for
the artifact. The default collector only records which paths changed and
their checksums; a collector that transfers real file content can be
injected without touching the orchestration.
"""

from typing import Any, Dict, Protocol

from sitevault.backup.changes import ChangeSet
from sitevault.vault.catalog import Catalog
from sitevault.vault.sqlite_vault import BackupArtifact

Manifest = Dict[str, Any]


class ArtifactCollector(Protocol):
    """Builds the payload of an artifact."""

    async def collect(
        self,
        artifact: BackupArtifact,
        changes: ChangeSet,
        checksums: Catalog,
    ) -> Manifest:
        """
        Args:
            artifact: Artifact being processed
            changes: Paths changed relative to the parent (all paths for a full)
            checksums: Resulting catalog of the target

        Returns:
            JSON-serializable payload
        """
        ...


class ManifestCollector:
    """Collects a manifest of changed paths with their checksums."""

    async def collect(
        self,
        artifact: BackupArtifact,
        changes: ChangeSet,
        checksums: Catalog,
    ) -> Manifest:
        changed = sorted(changes.added + changes.modified)
        return {
            "artifact_id": artifact["id"],
            "target_id": artifact["target_id"],
            "kind": artifact["kind"],
            "parent_id": artifact["parent_id"],
            "files": {path: checksums[path] for path in changed},
            "deleted": sorted(changes.deleted),
        }
