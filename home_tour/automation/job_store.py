"""In-memory job status store"""

import logging
from typing import Any, Dict, List, Optional

from .automation_models import JobState, JobStatus


class JobStatusStore:
    """
    Keeps one JobStatus per job id.

    Each job has a single writer (its runner task); updates are whole-field
    assignments so readers never see a half-applied change. Readers get copies.
    """

    def __init__(self):
        self._jobs: Dict[str, JobStatus] = {}
        self.logger = logging.getLogger(__name__)

    def get(self, job_id: str) -> Optional[JobStatus]:
        job = self._jobs.get(job_id)
        return job.model_copy() if job else None

    def set(self, status: JobStatus) -> None:
        self._jobs[status.id] = status

    def list(self, state: Optional[JobState] = None) -> List[JobStatus]:
        """All jobs in creation order, optionally filtered by state"""
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
        if state is not None:
            jobs = [job for job in jobs if job.status == state]
        return [job.model_copy() for job in jobs]

    def update(self, job_id: str, **fields: Any) -> JobStatus:
        """Replace the named fields of a stored job"""
        current = self._jobs.get(job_id)
        if current is None:
            raise KeyError(f"Unknown job: {job_id}")
        updated = current.model_copy(update=fields)
        self._jobs[job_id] = updated
        return updated

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
