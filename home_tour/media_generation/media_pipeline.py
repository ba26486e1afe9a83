"""Renders every scene of a plan into a video segment, in planner order"""

import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from ..planning.planning_models import Scene, ScenePlan, Technique
from ..planning.prompt_templates import build_segment_prompt
from ..planning.scene_planner import snap_clip_duration
from ..video_assembly.video_models import VideoSegment, resolve_resolution
from .media_models import SynthesisRequest
from .pan_zoom import PanZoomCalculator
from .render_job import RenderJobController
from .render_limiter import RenderSlotLimiter
from .synthesis_client import SynthesisService

ProgressCallback = Callable[[str, float, Optional[str]], None]


class SegmentRenderer:
    """Turns a ScenePlan into VideoSegments, one scene at a time"""

    def __init__(self, config,
                 service: SynthesisService,
                 controller: RenderJobController,
                 pan_zoom: PanZoomCalculator,
                 limiter: Optional[RenderSlotLimiter] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.config = config
        self.service = service
        self.controller = controller
        self.pan_zoom = pan_zoom
        self.limiter = limiter or RenderSlotLimiter(config.synthesis.max_concurrent_renders)
        self.progress_callback = progress_callback
        self.logger = logging.getLogger(__name__)

        self.width, self.height = resolve_resolution(config.output.aspect, config.output.resolution)

    def _report(self, percent: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback('segments', percent, message)

    async def render_plan(self, plan: ScenePlan, work_dir: Path) -> List[VideoSegment]:
        """Render sequentially; the first failing scene aborts the whole plan"""
        work_dir.mkdir(parents=True, exist_ok=True)
        segments: List[VideoSegment] = []
        previous_frame_uri: Optional[str] = None
        total = len(plan.scenes)

        for index, scene in enumerate(plan.scenes):
            self._report(index / total * 100, f"Rendering scene {index + 1}/{total}: {scene.id} ({scene.technique.value})")
            previous_room = plan.scenes[index - 1].room if index > 0 else None
            next_room = plan.scenes[index + 1].room if index < total - 1 else None

            async with self.limiter.slot(scene.id):
                if scene.technique == Technique.AI_SYNTHESIS:
                    segment, previous_frame_uri = await self._render_synthesis(
                        scene, work_dir, previous_room, next_room, previous_frame_uri
                    )
                else:
                    segment = await self._render_pan_zoom(scene, work_dir)
                    previous_frame_uri = None

            self.logger.info(f"✓ Segment {index + 1}/{total} ready: {segment.path.name} ({segment.duration:.1f}s)")
            segments.append(segment)

        self._report(100, f"Rendered {total} segments")
        return segments

    async def _upload(self, local_path: Path) -> str:
        return await self.service.upload(local_path, f"inputs/{uuid.uuid4().hex[:12]}_{local_path.name}")

    async def _render_synthesis(self, scene: Scene, work_dir: Path, previous_room, next_room,
                                previous_frame_uri: Optional[str]):
        synth = self.config.synthesis
        image_uri = await self._upload(Path(scene.primary_image.path))

        request = SynthesisRequest(
            project_id=synth.project_id,
            location=synth.location,
            model=synth.model,
            aspect=self.config.output.aspect,
            resolution=self.config.output.resolution,
            duration_seconds=snap_clip_duration(scene.duration),
            generate_audio=synth.generate_audio,
            image_uri=image_uri,
            last_frame_uri=previous_frame_uri if synth.use_continuation_frames else None,
            storage_uri=f"gs://{synth.bucket_name}/output/" if synth.bucket_name else None,
            prompt=build_segment_prompt(scene, previous_room, next_room),
        )

        result = await self.controller.render(request, scene.id, work_dir)

        next_frame_uri = None
        if synth.use_continuation_frames and result.last_frame_path is not None:
            next_frame_uri = await self._upload(result.last_frame_path)

        segment = VideoSegment(
            path=result.video_path,
            duration=result.duration,
            technique=Technique.AI_SYNTHESIS,
            room=scene.room,
            has_audio=synth.generate_audio,
            scene_id=scene.id,
        )
        return segment, next_frame_uri

    async def _render_pan_zoom(self, scene: Scene, work_dir: Path) -> VideoSegment:
        output_path = work_dir / f"panzoom_{scene.id}_{uuid.uuid4().hex[:8]}.mp4"
        await self.pan_zoom.render_for_room(
            Path(scene.primary_image.path),
            output_path,
            scene.duration,
            self.width,
            self.height,
            scene.room,
        )
        return VideoSegment(
            path=output_path,
            duration=scene.duration,
            technique=Technique.PAN_ZOOM,
            room=scene.room,
            has_audio=False,
            scene_id=scene.id,
        )
