"""
Home Tour Pipeline

Runs one tour generation end to end:
plan -> render segments -> audio tracks -> assemble -> branding
"""

import asyncio
import shutil
import time
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from .errors import InvalidParametersError
from .media_generation.media_pipeline import SegmentRenderer
from .media_generation.pan_zoom import PanZoomCalculator
from .media_generation.render_job import RenderJobController
from .media_generation.render_limiter import RenderSlotLimiter
from .media_generation.synthesis_client import SynthesisService
from .planning.plan_validator import room_distribution, validate_tour_inputs
from .planning.planning_models import ImageDescriptor, InputValidationReport, ScenePlan
from .planning.scene_planner import ScenePlanner
from .utils.logger import LoggerMixin
from .video_assembly.ffmpeg_runner import FFmpegRunner
from .video_assembly.timeline_builder import build_timeline, duck_music_tracks
from .video_assembly.video_assembler import VideoAssembler
from .video_assembly.video_models import (
    AssemblyRequest, AudioKind, AudioTrack, MediaInfo, TransitionStrategy, VideoSegment, resolve_resolution
)

ProgressCallback = Callable[[str, float, Optional[str]], None]
Sleep = Callable[[float], Awaitable[None]]

# Overall progress window owned by each sub-phase
PHASE_WINDOWS = {
    'planning': (5.0, 15.0),
    'segments': (25.0, 60.0),
    'assembly': (80.0, 90.0),
}


class TourRequest(BaseModel):
    """One generation request"""
    images: List[ImageDescriptor]
    target_seconds: Optional[float] = None
    output_path: Optional[Path] = None
    voiceover_path: Optional[Path] = None  # prepared narration, synthesized elsewhere
    music_path: Optional[Path] = None
    music_volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class TourResult(BaseModel):
    output_path: Path
    duration: float
    ai_synthesis_segments: int
    pan_zoom_segments: int
    estimated_cost: float
    total_images: int
    room_distribution: Dict[str, int]
    processing_time: float
    assembled_duration: float = 0.0
    has_audio: bool = False
    # Per-segment start/end on the assembled timeline
    timeline: List[Dict[str, Any]] = Field(default_factory=list)
    output_info: Optional[MediaInfo] = None


class BrandingCompositor(Protocol):
    """Overlays logos, lower thirds and end slates onto an assembled tour"""

    async def apply(self, video_path: Path, plan: ScenePlan, output_path: Path) -> Path:
        ...


class HomeTourPipeline(LoggerMixin):
    """Coordinates planner, segment renderer and assembler for one tour"""

    def __init__(self, config,
                 service: SynthesisService,
                 runner: Optional[FFmpegRunner] = None,
                 branding: Optional[BrandingCompositor] = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 sleep: Sleep = asyncio.sleep):
        self.config = config
        self.service = service
        self.runner = runner or FFmpegRunner()
        self.branding = branding
        self.progress_callback = progress_callback

        self.planner = ScenePlanner.from_config(config, self._phase_reporter('planning'))
        self.limiter = RenderSlotLimiter(config.synthesis.max_concurrent_renders)
        self.controller = RenderJobController.from_config(config, service, runner=self.runner, sleep=sleep)
        self.pan_zoom = PanZoomCalculator(config, runner=self.runner)
        self.renderer = SegmentRenderer(
            config, service, self.controller, self.pan_zoom,
            limiter=self.limiter,
            progress_callback=self._phase_reporter('segments'),
        )
        self.assembler = VideoAssembler(config, runner=self.runner,
                                        progress_callback=self._phase_reporter('assembly'))

    def _report(self, percent: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback('pipeline', percent, message)

    def _phase_reporter(self, phase: str) -> ProgressCallback:
        """Map a component's 0-100 progress into its window of the overall run"""
        start, end = PHASE_WINDOWS[phase]

        def report(_phase: str, percent: float, message: Optional[str] = None) -> None:
            if self.progress_callback:
                self.progress_callback(phase, start + (end - start) * percent / 100, message)

        return report

    def validate(self, images: List[ImageDescriptor], target_seconds: Optional[float] = None) -> InputValidationReport:
        return validate_tour_inputs(
            images,
            target_seconds or self.config.output.target_seconds,
            cost_per_segment=self.config.synthesis.cost_per_segment,
            max_ai_segments=self.config.planner.max_ai_segments,
        )

    def plan(self, images: List[ImageDescriptor], target_seconds: Optional[float] = None) -> ScenePlan:
        return self.planner.plan_scenes(images, target_seconds or self.config.output.target_seconds)

    async def run(self, request: TourRequest) -> TourResult:
        """
        Generate a tour for the request.

        Any failure aborts the run; the run's working directory is removed on
        the way out unless `paths.keep_temp` is set and the run succeeded.
        """
        start_time = time.time()
        target = request.target_seconds or self.config.output.target_seconds
        output_path = Path(request.output_path or self.config.output.path)
        self._check_audio_inputs(request)

        work_dir = Path(self.config.paths.temp) / f"run_{uuid.uuid4().hex[:8]}"
        work_dir.mkdir(parents=True, exist_ok=True)
        succeeded = False

        try:
            self._report(0, 'Starting home tour generation')

            self._report(5, 'Phase 1: Scene planning')
            plan = self.plan(request.images, target)
            self.logger.info("\n" + ScenePlanner.summarize(plan))

            self._report(25, 'Phase 2: Video generation')
            segments = await self.renderer.render_plan(plan, work_dir / 'segments')

            self._report(60, 'Phase 3: Audio tracks')
            audio_tracks = self.build_audio_tracks(request, target)

            self._report(80, 'Phase 4: Video assembly')
            assembled = await self._assemble(segments, audio_tracks, work_dir / 'assembled.mp4')

            self._report(90, 'Phase 5: Branding')
            final_path = await self._apply_branding(assembled.output_path, plan, output_path)
            output_info = await self.assembler.get_video_info(final_path)

            result = TourResult(
                output_path=final_path,
                duration=plan.total_duration,
                ai_synthesis_segments=plan.ai_synthesis_segments,
                pan_zoom_segments=plan.pan_zoom_segments,
                estimated_cost=plan.ai_synthesis_segments * self.config.synthesis.cost_per_segment,
                total_images=len(request.images),
                room_distribution=room_distribution(request.images),
                processing_time=time.time() - start_time,
                assembled_duration=assembled.duration,
                has_audio=assembled.has_audio,
                timeline=build_timeline(segments, self.config.assembly.crossfade_duration, self._transition),
                output_info=output_info,
            )
            succeeded = True
            self._report(100, 'Home tour generation complete')
            self.logger.info(
                f"Tour ready: {result.output_path} ({output_info.duration:.1f}s, "
                f"{output_info.width}x{output_info.height}) in {result.processing_time:.1f}s"
            )
            return result

        except Exception as e:
            self.logger.error(f"Home tour generation failed: {e}")
            raise

        finally:
            if not (succeeded and self.config.paths.keep_temp):
                self._cleanup_work_dir(work_dir)

    @property
    def _transition(self) -> TransitionStrategy:
        return TransitionStrategy(self.config.assembly.transition)

    def _check_audio_inputs(self, request: TourRequest) -> None:
        for label, path in (('Voiceover', request.voiceover_path), ('Music', request.music_path)):
            if path is not None and not Path(path).exists():
                raise InvalidParametersError(f"{label} file not found: {path}")

    def build_audio_tracks(self, request: TourRequest, target_seconds: float) -> List[AudioTrack]:
        """Voice at full gain; music at its volume, ducked while voice plays"""
        audio_cfg = self.config.audio
        tracks: List[AudioTrack] = []

        if request.voiceover_path:
            tracks.append(AudioTrack(
                path=request.voiceover_path,
                kind=AudioKind.VOICEOVER,
                volume=audio_cfg.voiceover_volume,
                start_time=0.0,
                duration=target_seconds,
            ))

        if request.music_path:
            volume = request.music_volume if request.music_volume is not None else audio_cfg.music_volume
            tracks.append(AudioTrack(
                path=request.music_path,
                kind=AudioKind.MUSIC,
                volume=volume,
                start_time=0.0,
                duration=target_seconds,
            ))

        return duck_music_tracks(tracks, audio_cfg.duck_factor)

    async def _assemble(self, segments: List[VideoSegment], audio_tracks: List[AudioTrack], output_path: Path):
        width, height = resolve_resolution(self.config.output.aspect, self.config.output.resolution)
        request = AssemblyRequest(
            segments=segments,
            audio_tracks=audio_tracks,
            output_path=output_path,
            width=width,
            height=height,
            fps=self.config.output.fps,
            transition=self._transition,
            crossfade_duration=self.config.assembly.crossfade_duration,
        )
        return await self.assembler.assemble(request)

    async def _apply_branding(self, video_path: Path, plan: ScenePlan, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if self.branding is None:
            await asyncio.to_thread(shutil.copyfile, video_path, output_path)
            return output_path

        return await self.branding.apply(video_path, plan, output_path)

    def _cleanup_work_dir(self, work_dir: Path) -> None:
        try:
            if work_dir.exists():
                shutil.rmtree(work_dir)
        except OSError as e:
            self.logger.warning(f"Failed to cleanup temporary directory {work_dir}: {e}")
