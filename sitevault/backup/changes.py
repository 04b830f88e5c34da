# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Change Detector - Diff two checksum catalogs.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class ChangeCounts:
    """Number of paths per change bucket."""

    added: int = 0
    modified: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.added + self.modified + self.deleted


@dataclass
class ChangeSet:
    """Paths added, modified and deleted between two catalogs.

    The lists carry no ordering guarantee.
    """

    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def counts(self) -> ChangeCounts:
        return ChangeCounts(
            added=len(self.added),
            modified=len(self.modified),
            deleted=len(self.deleted),
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "added": list(self.added),
            "modified": list(self.modified),
            "deleted": list(self.deleted),
        }


def diff_checksums(previous: Dict[str, str], current: Dict[str, str]) -> ChangeSet:
    """
    Diff two catalogs.

    A path only in current is added, a path in both with a different
    checksum is modified, a path only in previous is deleted. Paths with
    equal checksums are not reported.

    Args:
        previous: Catalog of the parent artifact
        current: Catalog reported by the target now

    Returns:
        ChangeSet with the three buckets
    """
    changes = ChangeSet()

    for path, checksum in current.items():
        if path not in previous:
            changes.added.append(path)
        elif previous[path] != checksum:
            changes.modified.append(path)

    for path in previous:
        if path not in current:
            changes.deleted.append(path)

    return changes


def full_snapshot(current: Dict[str, str]) -> ChangeSet:
    """Change set of a full backup: every tracked path is added."""
    return ChangeSet(added=list(current))
