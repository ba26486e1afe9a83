"""
Tour Job Runner

Queues tour generations as background asyncio tasks and tracks their
status in a JobStatusStore.
"""

import asyncio
import time
import uuid
from typing import Callable, Dict, List, Optional

from ..utils.logger import LoggerMixin
from .automation_models import JobState, JobStatus
from .job_store import JobStatusStore

# Progress below this is too noisy to extrapolate from
ETA_MIN_PROGRESS = 5.0

CANCELLED_MESSAGE = "Cancelled by user"


class TourJobRunner(LoggerMixin):
    """
    Background execution of HomeTourPipeline runs.

    `pipeline_factory` receives the job's progress callback and returns an
    object with an async `run(request)` method.
    """

    def __init__(self, pipeline_factory: Callable[[Callable], object],
                 store: Optional[JobStatusStore] = None):
        self.pipeline_factory = pipeline_factory
        self.store = store or JobStatusStore()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._started: Dict[str, float] = {}

    def queue(self, request, job_id: Optional[str] = None) -> str:
        """Register a pending job and start it on the running event loop"""
        job_id = job_id or f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        self.store.set(JobStatus(id=job_id))

        self._tasks[job_id] = asyncio.create_task(self._process(job_id, request), name=job_id)
        self.logger.info(f"Queued tour job {job_id} ({len(request.images)} images)")
        return job_id

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        return self.store.get(job_id)

    def list_jobs(self, state: Optional[JobState] = None) -> List[JobStatus]:
        return self.store.list(state)

    def cancel(self, job_id: str) -> bool:
        """Only jobs that have not started processing can be cancelled"""
        job = self.store.get(job_id)
        if job is None or job.status != JobState.PENDING:
            return False

        self.store.update(job_id, status=JobState.FAILED, error=CANCELLED_MESSAGE)
        task = self._tasks.get(job_id)
        if task and not task.done():
            task.cancel()
        self.logger.info(f"Cancelled tour job {job_id}")
        return True

    async def wait(self, job_id: str) -> JobStatus:
        """Block until the job's task has finished and return its final status"""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.store.get(job_id)

    def _progress_handler(self, job_id: str) -> Callable[[str, float, Optional[str]], None]:
        def handle(phase: str, progress: float, message: Optional[str] = None) -> None:
            progress = max(0.0, min(100.0, progress))
            fields = {'phase': phase, 'progress': progress, 'message': message}

            if progress > ETA_MIN_PROGRESS:
                elapsed = time.monotonic() - self._started[job_id]
                fields['estimated_time_remaining'] = round(elapsed / progress * (100 - progress))

            self.store.update(job_id, **fields)

        return handle

    async def _process(self, job_id: str, request) -> None:
        # Let queue() return before any work starts; a cancelled job is already finished
        await asyncio.sleep(0)
        if self.store.get(job_id).finished:
            return

        self._started[job_id] = time.monotonic()
        self.store.update(job_id, status=JobState.PROCESSING, phase='starting')

        try:
            pipeline = self.pipeline_factory(self._progress_handler(job_id))
            result = await pipeline.run(request)
        except asyncio.CancelledError:
            self.store.update(job_id, status=JobState.FAILED, error=CANCELLED_MESSAGE)
            raise
        except Exception as e:
            self.logger.error(f"Tour job {job_id} failed: {e}")
            self.store.update(job_id, status=JobState.FAILED, error=str(e) or type(e).__name__)
            return
        finally:
            self._started.pop(job_id, None)

        self.store.update(
            job_id,
            status=JobState.COMPLETED,
            progress=100.0,
            phase='completed',
            result=result.model_dump(mode='json'),
            estimated_time_remaining=0,
        )
        self.logger.info(f"Tour job {job_id} completed")
