"""In-memory tracking of render jobs."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from reelforge.models import JobStatus
from reelforge.playback.renderer import ArtifactFailed, ArtifactReady, ArtifactResult, ArtifactUnavailable

logger = logging.getLogger(__name__)


class RenderJob:
    """Represents one request for a downloadable video."""

    def __init__(self, job_id: str, unique_id: Optional[str], image_count: int):
        self.job_id = job_id
        self.unique_id = unique_id
        self.image_count = image_count
        self.status = JobStatus.QUEUED
        self.progress = 0
        self.result: Optional[ArtifactResult] = None
        self.error: Optional[str] = None
        self.created_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.ERROR, JobStatus.SUPERSEDED)

    def update_progress(self, progress: int, status: Optional[JobStatus] = None):
        """Update job progress and optionally status."""
        self.progress = min(100, max(0, progress))
        if status:
            self.status = status
        self.updated_at = datetime.utcnow()

    def mark_complete(self, result: ArtifactResult):
        """Record the artifact outcome; a failed render marks the job as errored."""
        self.result = result
        self.progress = 100
        if isinstance(result, ArtifactFailed):
            self.status = JobStatus.ERROR
            self.error = result.reason
        else:
            self.status = JobStatus.COMPLETE
        self.updated_at = datetime.utcnow()

    def mark_superseded(self):
        self.status = JobStatus.SUPERSEDED
        self.updated_at = datetime.utcnow()

    def to_response(self) -> dict:
        body = {
            "jobId": self.job_id,
            "status": self.status,
            "progress": self.progress,
        }
        if isinstance(self.result, ArtifactReady):
            body.update(kind=self.result.kind, url=self.result.url)
        elif isinstance(self.result, ArtifactUnavailable):
            body.update(kind=self.result.kind, guidance=list(self.result.guidance))
        elif isinstance(self.result, ArtifactFailed):
            body.update(kind=self.result.kind, reason=self.result.reason, retryable=self.result.retryable)
        return body


class RenderJobManager:
    """
    Manages render jobs in memory.

    Jobs sharing a ``unique_id`` supersede each other: creating a new one
    marks the previous unfinished job as superseded, and a late result for a
    superseded job is dropped.
    """

    def __init__(self):
        self._jobs: Dict[str, RenderJob] = {}
        self._latest: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create_job(self, unique_id: Optional[str], image_count: int) -> str:
        """Create a new job and return its ID."""
        job_id = str(uuid4())
        async with self._lock:
            if unique_id:
                previous_id = self._latest.get(unique_id)
                previous = self._jobs.get(previous_id) if previous_id else None
                if previous is not None and not previous.finished:
                    previous.mark_superseded()
                    logger.info("Render job %s superseded by %s", previous_id, job_id)
                self._latest[unique_id] = job_id
            self._jobs[job_id] = RenderJob(job_id, unique_id, image_count)
        return job_id

    async def get_job(self, job_id: str) -> Optional[RenderJob]:
        """Get a job by ID."""
        async with self._lock:
            return self._jobs.get(job_id)

    async def update_job_progress(self, job_id: str, progress: int, status: Optional[JobStatus] = None):
        """Update job progress unless the job was superseded."""
        async with self._lock:
            job = self._jobs.get(job_id)
            if job and job.status is not JobStatus.SUPERSEDED:
                job.update_progress(progress, status)

    async def complete_job(self, job_id: str, result: ArtifactResult) -> bool:
        """Apply a render outcome. Returns False if the job is gone or superseded."""
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if job.status is JobStatus.SUPERSEDED:
                logger.info("Dropping late %s result for superseded job %s", result.kind, job_id)
                return False
            job.mark_complete(result)
            return True

    async def mark_job_error(self, job_id: str, error: str):
        """Mark job as failed."""
        async with self._lock:
            job = self._jobs.get(job_id)
            if job and job.status is not JobStatus.SUPERSEDED:
                job.mark_complete(ArtifactFailed(error))

    async def cleanup_old_jobs(self, max_age_hours: int = 24) -> List[str]:
        """Remove jobs older than max_age_hours and return their IDs."""
        cutoff = datetime.utcnow() - timedelta(hours=max_age_hours)
        async with self._lock:
            old_job_ids = [
                job_id for job_id, job in self._jobs.items()
                if job.updated_at < cutoff
            ]
            for job_id in old_job_ids:
                job = self._jobs.pop(job_id)
                if job.unique_id and self._latest.get(job.unique_id) == job_id:
                    del self._latest[job.unique_id]
        return old_job_ids
