import asyncio
from pathlib import Path

import pytest

from home_tour.automation.automation_models import JobState, JobStatus
from home_tour.automation.job_store import JobStatusStore
from home_tour.automation.tour_jobs import CANCELLED_MESSAGE, TourJobRunner
from home_tour.planning.planning_models import RoomType
from home_tour.tour_pipeline import TourRequest, TourResult

from .conftest import images_for


def tour_result():
    return TourResult(
        output_path=Path('/out/tour.mp4'),
        duration=88.5,
        ai_synthesis_segments=7,
        pan_zoom_segments=3,
        estimated_cost=3.5,
        total_images=14,
        room_distribution={'kitchen': 2},
        processing_time=12.0,
    )


class FakePipeline:
    def __init__(self, progress, error=None, gate=None):
        self.progress = progress
        self.error = error
        self.gate = gate

    async def run(self, request):
        self.progress('segments', 42.0, 'Rendering scene 2/5')
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return tour_result()


def make_runner(**kwargs):
    return TourJobRunner(lambda progress: FakePipeline(progress, **kwargs))


def request():
    return TourRequest(images=images_for([RoomType.KITCHEN, RoomType.LIVING]), target_seconds=30)


async def until(predicate, rounds=100):
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def test_job_runs_to_completion():
    runner = make_runner()
    job_id = runner.queue(request())

    assert job_id.startswith('job_')
    assert runner.get_status(job_id).status == JobState.PENDING

    status = await runner.wait(job_id)

    assert status.status == JobState.COMPLETED
    assert status.progress == 100.0
    assert status.phase == 'completed'
    assert status.estimated_time_remaining == 0
    assert status.result['ai_synthesis_segments'] == 7
    assert status.result['output_path'] == str(Path('/out/tour.mp4'))
    assert status.finished


async def test_failed_pipeline_marks_job_failed():
    runner = make_runner(error=RuntimeError('ffmpeg exploded'))

    status = await runner.wait(runner.queue(request()))

    assert status.status == JobState.FAILED
    assert status.error == 'ffmpeg exploded'
    assert status.result is None


async def test_error_without_message_uses_type_name():
    runner = make_runner(error=TimeoutError())
    status = await runner.wait(runner.queue(request()))
    assert status.error == 'TimeoutError'


async def test_pending_job_can_be_cancelled():
    runner = make_runner()
    job_id = runner.queue(request())

    assert runner.cancel(job_id) is True
    status = await runner.wait(job_id)

    assert status.status == JobState.FAILED
    assert status.error == CANCELLED_MESSAGE


async def test_processing_job_cannot_be_cancelled():
    gate = asyncio.Event()
    runner = make_runner(gate=gate)
    job_id = runner.queue(request())

    await until(lambda: runner.get_status(job_id).status == JobState.PROCESSING)
    assert runner.cancel(job_id) is False

    status = runner.get_status(job_id)
    assert status.phase == 'segments'
    assert status.progress == 42.0
    assert status.message == 'Rendering scene 2/5'
    assert status.estimated_time_remaining is not None

    gate.set()
    assert (await runner.wait(job_id)).status == JobState.COMPLETED


async def test_unknown_job_cannot_be_cancelled():
    assert make_runner().cancel('job_missing') is False


async def test_progress_is_clamped_and_eta_waits_for_signal():
    runner = make_runner()
    runner.store.set(JobStatus(id='manual'))
    runner._started['manual'] = 0.0
    handle = runner._progress_handler('manual')

    handle('planning', 3.0, 'Grouping images')
    assert runner.get_status('manual').estimated_time_remaining is None

    handle('assembly', 150.0, 'Combining video and audio')
    status = runner.get_status('manual')
    assert status.progress == 100.0
    assert status.estimated_time_remaining == 0


async def test_list_jobs_filters_by_state():
    runner = make_runner(error=RuntimeError('boom'))
    first = runner.queue(request(), job_id='job_a')
    second = runner.queue(request(), job_id='job_b')
    await runner.wait(first)
    await runner.wait(second)

    assert [job.id for job in runner.list_jobs()] == ['job_a', 'job_b']
    assert [job.id for job in runner.list_jobs(JobState.FAILED)] == ['job_a', 'job_b']
    assert runner.list_jobs(JobState.COMPLETED) == []


def test_store_returns_copies():
    store = JobStatusStore()
    store.set(JobStatus(id='a'))

    copy = store.get('a')
    copy.progress = 50.0

    assert store.get('a').progress == 0.0
    assert 'a' in store
    assert len(store) == 1
    assert store.get('missing') is None


def test_store_update():
    store = JobStatusStore()
    store.set(JobStatus(id='a'))

    updated = store.update('a', status=JobState.PROCESSING, phase='planning')

    assert updated.status == JobState.PROCESSING
    assert store.get('a').phase == 'planning'
    with pytest.raises(KeyError):
        store.update('missing', progress=1.0)
