import asyncio

import pytest

from home_tour.media_generation.media_pipeline import SegmentRenderer, snap_clip_duration
from home_tour.media_generation.pan_zoom import PanZoomCalculator
from home_tour.media_generation.render_job import RenderJobController
from home_tour.media_generation.render_limiter import RenderSlotLimiter
from home_tour.planning.planning_models import RoomType, Scene, ScenePlan, Technique

from .conftest import FakeRunner, FakeSynthesisService, RecordingSleep


@pytest.mark.parametrize("duration,expected", [
    (3.0, 4), (5.0, 4), (6.4, 6), (7.0, 6), (7.1, 8), (12.0, 8),
])
def test_snap_clip_duration(duration, expected):
    assert snap_clip_duration(duration) == expected


def build_renderer(config, service=None, limiter=None):
    runner = FakeRunner()
    service = service or FakeSynthesisService()
    controller = RenderJobController.from_config(config, service, runner=runner, sleep=RecordingSleep())
    return SegmentRenderer(config, service, controller, PanZoomCalculator(config, runner=runner), limiter=limiter)


def scene(images, scene_id, room, technique, duration=6.0):
    return Scene(id=scene_id, room=room, images=images, duration=duration, technique=technique,
                 focus_points=['natural light'])


async def test_plan_renders_one_segment_per_scene_in_order(config, make_photos, tmp_path):
    exterior, kitchen, bedroom = make_photos([RoomType.EXTERIOR, RoomType.KITCHEN, RoomType.BEDROOM])
    plan = ScenePlan.from_scenes([
        scene([exterior], 'exterior', RoomType.EXTERIOR, Technique.AI_SYNTHESIS, 7.5),
        scene([kitchen], 'kitchen', RoomType.KITCHEN, Technique.PAN_ZOOM, 5.5),
        scene([bedroom], 'bedroom', RoomType.BEDROOM, Technique.AI_SYNTHESIS, 4.2),
    ])
    limiter = RenderSlotLimiter(1)
    renderer = build_renderer(config, limiter=limiter)

    segments = await renderer.render_plan(plan, tmp_path / 'segments')

    assert [s.scene_id for s in segments] == ['exterior', 'kitchen', 'bedroom']
    assert [s.technique for s in segments] == [Technique.AI_SYNTHESIS, Technique.PAN_ZOOM, Technique.AI_SYNTHESIS]
    assert [s.duration for s in segments] == [8.0, 5.5, 4.0]
    assert all(s.path.exists() for s in segments)
    assert limiter.peak_in_flight == 1
    assert limiter.completed == 3


async def test_synthesis_request_carries_prompt_and_storage(config, make_photos, tmp_path):
    exterior, kitchen = make_photos([RoomType.EXTERIOR, RoomType.KITCHEN])
    service = FakeSynthesisService()
    plan = ScenePlan.from_scenes([
        scene([exterior], 'exterior', RoomType.EXTERIOR, Technique.AI_SYNTHESIS),
        scene([kitchen], 'kitchen', RoomType.KITCHEN, Technique.AI_SYNTHESIS),
    ])

    await build_renderer(config, service).render_plan(plan, tmp_path / 'segments')

    first, second = service.submitted
    assert first.image_uri.startswith('gs://test-bucket/inputs/')
    assert first.image_uri.endswith('exterior_0.jpg')
    assert first.storage_uri == 'gs://test-bucket/output/'
    assert first.duration_seconds == 6
    assert 'natural light' in first.prompt
    assert first.last_frame_uri is None
    assert second.last_frame_uri is None


async def test_continuation_frames_chain_consecutive_ai_scenes(config, make_photos, tmp_path):
    config.synthesis.use_continuation_frames = True
    exterior, living = make_photos([RoomType.EXTERIOR, RoomType.LIVING])
    service = FakeSynthesisService()
    plan = ScenePlan.from_scenes([
        scene([exterior], 'exterior', RoomType.EXTERIOR, Technique.AI_SYNTHESIS),
        scene([living], 'living', RoomType.LIVING, Technique.AI_SYNTHESIS),
    ])

    await build_renderer(config, service).render_plan(plan, tmp_path / 'segments')

    assert service.submitted[0].last_frame_uri is None
    assert service.submitted[1].last_frame_uri.endswith('_last_frame.png')


async def test_pan_zoom_scenes_do_not_touch_the_service(config, make_photos, tmp_path):
    (kitchen,) = make_photos([RoomType.KITCHEN])
    service = FakeSynthesisService()
    plan = ScenePlan.from_scenes([scene([kitchen], 'kitchen', RoomType.KITCHEN, Technique.PAN_ZOOM)])

    segments = await build_renderer(config, service).render_plan(plan, tmp_path / 'segments')

    assert service.submitted == []
    assert service.uploads == []
    assert segments[0].has_audio is False


async def test_limiter_bounds_concurrent_work():
    limiter = RenderSlotLimiter(2)

    async def work(label):
        async with limiter.slot(label):
            await asyncio.sleep(0)
            await asyncio.sleep(0)

    await asyncio.gather(*(work(f"scene-{i}") for i in range(5)))

    assert limiter.peak_in_flight == 2
    assert limiter.completed == 5
    assert limiter.available == 2


def test_limiter_requires_a_slot():
    with pytest.raises(ValueError):
        RenderSlotLimiter(0)
