# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SiteVault Job Registry - In-memory view of active jobs.

Backup artifacts and restore jobs are tracked here from creation until
they reach a terminal status, so that status lookups of active jobs do
not need a store round-trip. The SQLite store stays authoritative: the
registry is only a cache and is empty after a restart.
"""

from typing import Dict, Literal, Union

import structlog

from sitevault.config import BackupStatus, RestoreStatus
from sitevault.vault.sqlite_vault import BackupArtifact, RestoreJob

logger = structlog.get_logger()

JobType = Literal["backup", "restore"]
JobRecord = Union[BackupArtifact, RestoreJob]


def _is_terminal(job_type: JobType, status: str) -> bool:
    if job_type == "backup":
        return BackupStatus(status).is_terminal
    return RestoreStatus(status).is_terminal


class JobRegistry:
    """Map of job id to the latest known record of an active job."""

    def __init__(self) -> None:
        self._jobs: Dict[str, tuple[JobType, JobRecord]] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def track(self, job_type: JobType, record: JobRecord) -> None:
        """
        Record the latest state of a job.

        A record in a terminal status evicts the job instead.
        """
        if _is_terminal(job_type, record["status"]):
            self.evict(record["id"])
            return
        self._jobs[record["id"]] = (job_type, record)

    def evict(self, job_id: str) -> None:
        if self._jobs.pop(job_id, None) is not None:
            logger.debug("job_evicted", job_id=job_id)

    def get(self, job_id: str) -> tuple[JobType, JobRecord] | None:
        return self._jobs.get(job_id)
