"""
Render Job Controller

Drives one AI-synthesis operation per scene:
Submitted -> Polling -> Done | Failed | TimedOut

Submission is retried with exponential backoff (tenacity) unless the error is
permanent. Polling backs off as min(1.5^attempt, 30s) plus up to 1s of jitter.
The controller itself enforces no rate limit.
"""

import asyncio
import logging
import random
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..errors import (
    ExternalServiceError, OperationFailed, OperationTimedOut,
    TransientServiceError, is_non_retryable_message
)
from ..video_assembly.ffmpeg_runner import FFmpegRunner
from .media_models import (
    OperationStatus, RenderJob, RenderJobState, SynthesisRequest, SynthesisResult,
    parse_operation_response
)
from .synthesis_client import SynthesisService

POLL_BASE_SECONDS = 1.0
POLL_GROWTH = 1.5
POLL_CAP_SECONDS = 30.0
POLL_JITTER_SECONDS = 1.0
LAST_FRAME_OFFSET = 0.04  # 40 ms before the end

ProgressCallback = Callable[[str, float, Optional[str]], None]
Sleep = Callable[[float], Awaitable[None]]


def _is_retryable_submission_error(error: BaseException) -> bool:
    if isinstance(error, ExternalServiceError):
        return False
    if is_non_retryable_message(str(error)):
        return False
    return isinstance(error, (TransientServiceError, ConnectionError, asyncio.TimeoutError))


class RenderJobController:
    """Submit, poll and download one synthesized clip at a time"""

    def __init__(self,
                 service: SynthesisService,
                 runner: Optional[FFmpegRunner] = None,
                 max_poll_attempts: int = 60,
                 submit_attempts: int = 3,
                 submit_base_delay: float = 1.0,
                 sleep: Sleep = asyncio.sleep,
                 rng: Optional[random.Random] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.service = service
        self.runner = runner or FFmpegRunner()
        self.max_poll_attempts = max_poll_attempts
        self.submit_attempts = submit_attempts
        self.submit_base_delay = submit_base_delay
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.progress_callback = progress_callback
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config, service: SynthesisService, runner: Optional[FFmpegRunner] = None,
                    **kwargs) -> "RenderJobController":
        return cls(
            service,
            runner=runner,
            max_poll_attempts=config.synthesis.max_poll_attempts,
            submit_attempts=config.synthesis.submit_attempts,
            **kwargs,
        )

    def _report(self, percent: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback('synthesis', percent, message)

    @staticmethod
    def poll_delay(attempt: int, jitter: float = 0.0) -> float:
        """Seconds to wait after the given (1-based) not-done poll attempt"""
        return min(POLL_BASE_SECONDS * POLL_GROWTH ** attempt, POLL_CAP_SECONDS) + jitter

    async def render(self, request: SynthesisRequest, scene_id: str, output_dir: Path) -> SynthesisResult:
        """Run a fresh job for one scene and return the downloaded clip"""
        job = RenderJob(scene_id=scene_id)
        return await self.execute(job, request, output_dir)

    async def execute(self, job: RenderJob, request: SynthesisRequest, output_dir: Path) -> SynthesisResult:
        self._report(0, f"Generating clip for scene {job.scene_id}")

        job.state = RenderJobState.SUBMITTED
        job.operation_handle = await self.submit(request)

        self._report(20, 'Polling for completion')
        status = await self.poll_until_done(job)

        try:
            result = parse_operation_response(status.response)

            self._report(85, 'Downloading generated video')
            video_path = output_dir / f"synth_{job.scene_id}_{uuid.uuid4().hex[:8]}.mp4"
            await self.service.fetch(result.video_uri, video_path)

            self._report(95, 'Extracting last frame')
            last_frame_path = await self.runner.extract_frame(
                video_path,
                max(0.0, request.duration_seconds - LAST_FRAME_OFFSET),
                video_path.with_name(f"{video_path.stem}_last_frame.png"),
            )
        except Exception:
            job.state = RenderJobState.FAILED
            raise

        self._report(100, 'Clip generation complete')
        return SynthesisResult(
            video_path=video_path,
            last_frame_path=last_frame_path,
            duration=float(request.duration_seconds),
            source_uri=result.video_uri,
        )

    async def submit(self, request: SynthesisRequest) -> str:
        """Submit with bounded retry; permanent errors surface after one attempt"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.submit_attempts),
            wait=wait_exponential(multiplier=self.submit_base_delay, min=self.submit_base_delay,
                                  max=POLL_CAP_SECONDS) + wait_random(0, POLL_JITTER_SECONDS),
            retry=retry_if_exception(_is_retryable_submission_error),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self.service.submit(request)
        except ExternalServiceError:
            raise
        except Exception as e:
            if is_non_retryable_message(str(e)):
                raise ExternalServiceError(str(e), status_code=getattr(e, 'status_code', None)) from e
            raise

    async def poll_until_done(self, job: RenderJob) -> OperationStatus:
        job.state = RenderJobState.POLLING

        for attempt in range(1, self.max_poll_attempts + 1):
            job.attempt_count = attempt
            self._report(20 + (attempt / self.max_poll_attempts) * 60,
                         f"Polling operation ({attempt}/{self.max_poll_attempts})")

            try:
                status = await self.service.poll(job.operation_handle)
            except Exception:
                job.state = RenderJobState.FAILED
                raise
            job.last_response = status.model_dump()

            if status.done:
                if status.error:
                    job.state = RenderJobState.FAILED
                    code = status.error.get('code') if isinstance(status.error, dict) else None
                    raise OperationFailed(
                        f"Synthesis failed: {status.error_message}",
                        operation_handle=job.operation_handle,
                        code=code,
                    )
                job.state = RenderJobState.DONE
                return status

            if attempt < self.max_poll_attempts:
                delay = self.poll_delay(attempt, self._rng.uniform(0, POLL_JITTER_SECONDS))
                job.poll_delays.append(delay)
                await self._sleep(delay)

        job.state = RenderJobState.TIMED_OUT
        raise OperationTimedOut(
            f"Synthesis operation timed out after {self.max_poll_attempts} polls",
            operation_handle=job.operation_handle,
            attempts=self.max_poll_attempts,
        )
