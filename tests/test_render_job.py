import random

import pytest

from home_tour.errors import (
    ExternalServiceError, OperationFailed, OperationTimedOut, ResponseParseError, TransientServiceError
)
from home_tour.media_generation.media_models import (
    OperationStatus, PredictionsResult, RenderJob, RenderJobState, SynthesisRequest, VideosResult,
    operation_status_from_payload, parse_operation_response
)
from home_tour.media_generation.render_job import RenderJobController

from .conftest import FakeRunner, FakeSynthesisService, RecordingSleep, pending


def make_request(**overrides):
    values = dict(
        project_id='test-project',
        image_uri='gs://test-bucket/inputs/kitchen.jpg',
        prompt='Slow push-in across the kitchen island',
        duration_seconds=8,
    )
    values.update(overrides)
    return SynthesisRequest(**values)


def make_controller(service, sleep=None, **kwargs):
    return RenderJobController(
        service,
        runner=FakeRunner(),
        sleep=sleep or RecordingSleep(),
        rng=random.Random(7),
        **kwargs,
    )


async def test_render_downloads_clip_and_extracts_last_frame(tmp_path):
    service = FakeSynthesisService(poll_responses=[pending(), pending()])
    sleep = RecordingSleep()
    controller = make_controller(service, sleep)
    job = RenderJob(scene_id='kitchen')

    result = await controller.execute(job, make_request(), tmp_path)

    assert job.state == RenderJobState.DONE
    assert job.attempt_count == 3
    assert len(sleep.delays) == 2
    assert result.video_path.exists()
    assert result.video_path.name.startswith('synth_kitchen_')
    assert result.last_frame_path.exists()
    assert result.duration == 8.0
    assert service.fetched == ['gs://test-bucket/output/clip.mp4']

    frame_args = controller.runner.call_for('frame extraction')
    assert frame_args[frame_args.index('-ss') + 1] == '7.96'


async def test_done_with_error_raises_operation_failed(tmp_path):
    failure = OperationStatus(name='op', done=True, error={'code': 3, 'message': 'Image violates usage policy'})
    service = FakeSynthesisService(poll_responses=[pending(), failure])
    controller = make_controller(service)
    job = RenderJob(scene_id='exterior')

    with pytest.raises(OperationFailed) as excinfo:
        await controller.execute(job, make_request(), tmp_path)

    assert 'usage policy' in str(excinfo.value)
    assert excinfo.value.code == 3
    assert job.state == RenderJobState.FAILED
    assert service.fetched == []


async def test_poll_loop_times_out_after_max_attempts(tmp_path):
    service = FakeSynthesisService(poll_responses=[pending() for _ in range(10)])
    sleep = RecordingSleep()
    controller = make_controller(service, sleep, max_poll_attempts=5)
    job = RenderJob(scene_id='living')

    with pytest.raises(OperationTimedOut) as excinfo:
        await controller.execute(job, make_request(), tmp_path)

    assert service.polls == 5
    assert excinfo.value.attempts == 5
    assert job.state == RenderJobState.TIMED_OUT
    # no wait after the final attempt
    assert len(sleep.delays) == 4


def test_poll_backoff_is_non_decreasing_and_capped():
    delays = [RenderJobController.poll_delay(attempt) for attempt in range(1, 30)]

    assert delays[0] == pytest.approx(1.5)
    assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
    assert max(delays) == 30.0


async def test_jittered_poll_delays_stay_within_bounds(tmp_path):
    service = FakeSynthesisService(poll_responses=[pending() for _ in range(12)])
    controller = make_controller(service)
    job = RenderJob(scene_id='bedroom')

    await controller.execute(job, make_request(), tmp_path)

    for attempt, delay in enumerate(job.poll_delays, start=1):
        base = RenderJobController.poll_delay(attempt)
        assert base <= delay <= base + 1.0


async def test_poll_transport_error_aborts_job(tmp_path):
    service = FakeSynthesisService(poll_error=TransientServiceError('Synthesis poll failed: 503'))
    controller = make_controller(service)
    job = RenderJob(scene_id='entry')

    with pytest.raises(TransientServiceError):
        await controller.execute(job, make_request(), tmp_path)

    assert service.polls == 1
    assert job.state == RenderJobState.FAILED


async def test_unrecognized_response_shape_fails_job(tmp_path):
    service = FakeSynthesisService(poll_responses=[OperationStatus(name='op', done=True, response={'foo': []})])
    controller = make_controller(service)
    job = RenderJob(scene_id='backyard')

    with pytest.raises(ResponseParseError):
        await controller.execute(job, make_request(), tmp_path)

    assert job.state == RenderJobState.FAILED


async def test_quota_error_is_not_retried():
    service = FakeSynthesisService(submit_errors=[ExternalServiceError('Quota exceeded for aiplatform', 429)])
    sleep = RecordingSleep()
    controller = make_controller(service, sleep)

    with pytest.raises(ExternalServiceError):
        await controller.submit(make_request())

    assert len(service.submitted) == 1
    assert sleep.delays == []


async def test_permanent_message_on_transient_error_is_not_retried():
    service = FakeSynthesisService(submit_errors=[TransientServiceError('429 RESOURCE_EXHAUSTED', 429)])
    controller = make_controller(service)

    with pytest.raises(ExternalServiceError) as excinfo:
        await controller.submit(make_request())

    assert excinfo.value.status_code == 429
    assert len(service.submitted) == 1


async def test_transient_submit_error_is_retried():
    service = FakeSynthesisService(submit_errors=[TransientServiceError('503 backend unavailable', 503)])
    sleep = RecordingSleep()
    controller = make_controller(service, sleep)

    handle = await controller.submit(make_request())

    assert handle.endswith('op-2')
    assert len(service.submitted) == 2
    assert len(sleep.delays) == 1


async def test_transient_submit_errors_surface_when_exhausted():
    errors = [TransientServiceError('503 backend unavailable', 503) for _ in range(3)]
    service = FakeSynthesisService(submit_errors=errors)
    controller = make_controller(service, submit_attempts=3)

    with pytest.raises(TransientServiceError):
        await controller.submit(make_request())

    assert len(service.submitted) == 3


def test_videos_shape_wins_over_predictions():
    result = parse_operation_response({
        'videos': [{'gcsUri': 'gs://b/new.mp4', 'mimeType': 'video/mp4'}],
        'predictions': [{'videoUri': 'gs://b/old.mp4'}],
    })
    assert isinstance(result, VideosResult)
    assert result.shape == 'videos'
    assert result.video_uri == 'gs://b/new.mp4'


def test_legacy_predictions_shapes():
    direct = parse_operation_response({'predictions': [{'videoUri': 'gs://b/a.mp4'}]})
    nested = parse_operation_response({'predictions': [{'video': {'gcsUri': 'gs://b/c.mp4'}}]})

    assert isinstance(direct, PredictionsResult) and direct.video_uri == 'gs://b/a.mp4'
    assert isinstance(nested, PredictionsResult) and nested.video_uri == 'gs://b/c.mp4'


@pytest.mark.parametrize("response", [
    None,
    'gs://b/a.mp4',
    {},
    {'videos': []},
    {'videos': [{}]},
    {'videos': ['gs://b/a.mp4']},
    {'videos': [{'gcsUri': 42}]},
    {'predictions': [{}]},
    {'predictions': [{'video': 'gs://b/a.mp4'}]},
])
def test_unusable_responses_raise(response):
    with pytest.raises(ResponseParseError):
        parse_operation_response(response)


def test_from_config_uses_synthesis_section(config):
    config.synthesis.max_poll_attempts = 12
    controller = RenderJobController.from_config(config, FakeSynthesisService(), runner=FakeRunner())
    assert controller.max_poll_attempts == 12
    assert controller.submit_attempts == 3


class BrokenFetchService(FakeSynthesisService):
    async def fetch(self, uri, destination):
        self.fetched.append(uri)
        raise OSError('connection reset while downloading')


async def test_unexpected_poll_error_marks_job_failed(tmp_path):
    service = FakeSynthesisService(poll_error=RuntimeError('event loop hiccup'))
    controller = make_controller(service)
    job = RenderJob(scene_id='office')

    with pytest.raises(RuntimeError):
        await controller.execute(job, make_request(), tmp_path)

    assert job.state == RenderJobState.FAILED


async def test_string_error_raises_operation_failed(tmp_path):
    service = FakeSynthesisService(poll_responses=[OperationStatus(name='op', done=True, error='quota blew up')])
    controller = make_controller(service)
    job = RenderJob(scene_id='dining')

    with pytest.raises(OperationFailed) as excinfo:
        await controller.execute(job, make_request(), tmp_path)

    assert 'quota blew up' in str(excinfo.value)
    assert excinfo.value.code is None
    assert job.state == RenderJobState.FAILED


async def test_download_failure_marks_job_failed(tmp_path):
    service = BrokenFetchService()
    controller = make_controller(service)
    job = RenderJob(scene_id='kitchen')

    with pytest.raises(OSError):
        await controller.execute(job, make_request(), tmp_path)

    assert service.fetched == ['gs://test-bucket/output/clip.mp4']
    assert job.state == RenderJobState.FAILED
    assert controller.runner.calls == []


def test_poll_payload_with_bare_error_string():
    status = operation_status_from_payload({'done': True, 'error': 'quota blew up'}, 'operations/op-1')

    assert status.name == 'operations/op-1'
    assert status.done is True
    assert status.error == {'message': 'quota blew up'}
    assert status.error_message == 'quota blew up'


@pytest.mark.parametrize("payload", [
    None,
    ['operations/op-1'],
    {'done': True, 'response': 'gs://b/a.mp4'},
])
def test_malformed_poll_payloads_raise(payload):
    with pytest.raises(ResponseParseError):
        operation_status_from_payload(payload, 'operations/op-1')
