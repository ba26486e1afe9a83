"""
Pan/zoom effect parameters and local rendering.

Motion is derived from the room type unless the caller overrides it. The
calculator produces structured parameters and a FilterGraph; ffmpeg does
the frame work.
"""

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import ffmpeg

from ..errors import InvalidParametersError
from ..planning.planning_models import RoomType
from ..video_assembly.ffmpeg_runner import FFmpegRunner
from ..video_assembly.filter_graph import FilterGraph, node
from .media_models import PanDirection, PanZoomMotion, PanZoomParams, ZoomDirection

MIN_SCALE = 1.0
MAX_SCALE = 1.15  # subtle; larger values show visible softening
PAN_AMOUNT = 0.15

ROOM_MOTION_DEFAULTS: Dict[RoomType, Tuple[ZoomDirection, PanDirection]] = {
    RoomType.EXTERIOR: (ZoomDirection.IN, PanDirection.NONE),
    RoomType.ENTRY: (ZoomDirection.IN, PanDirection.UP),
    RoomType.LIVING: (ZoomDirection.OUT, PanDirection.RIGHT),
    RoomType.KITCHEN: (ZoomDirection.IN, PanDirection.LEFT),
    RoomType.BEDROOM: (ZoomDirection.OUT, PanDirection.NONE),
    RoomType.BATHROOM: (ZoomDirection.IN, PanDirection.RIGHT),
    RoomType.BACKYARD: (ZoomDirection.OUT, PanDirection.LEFT),
}
DEFAULT_MOTION = (ZoomDirection.IN, PanDirection.NONE)

VARIED_MOTIONS: List[Tuple[ZoomDirection, PanDirection]] = [
    (ZoomDirection.IN, PanDirection.RIGHT),
    (ZoomDirection.OUT, PanDirection.LEFT),
    (ZoomDirection.IN, PanDirection.UP),
    (ZoomDirection.OUT, PanDirection.DOWN),
    (ZoomDirection.IN, PanDirection.NONE),
    (ZoomDirection.OUT, PanDirection.NONE),
]


def varied_motions(count: int) -> List[Tuple[ZoomDirection, PanDirection]]:
    """Cycle the preset motions so neighbouring clips move differently"""
    return [VARIED_MOTIONS[i % len(VARIED_MOTIONS)] for i in range(max(0, count))]


def _require_positive(name: str, value) -> None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParametersError(f"Invalid {name}: {value!r}. Must be a positive finite number.")
    if not math.isfinite(number) or number <= 0:
        raise InvalidParametersError(f"Invalid {name}: {value}. Must be a positive finite number.")


class PanZoomCalculator:
    """Derives pan/zoom motion and renders clips for pan-zoom scenes"""

    def __init__(self, config, runner: Optional[FFmpegRunner] = None):
        self.config = config
        self.options = config.pan_zoom
        self.runner = runner or FFmpegRunner()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def motion_for_room(room: Optional[RoomType],
                        zoom: Optional[ZoomDirection] = None,
                        pan: Optional[PanDirection] = None) -> PanZoomMotion:
        default_zoom, default_pan = ROOM_MOTION_DEFAULTS.get(room, DEFAULT_MOTION)
        return PanZoomCalculator.calculate_motion(zoom or default_zoom, pan or default_pan)

    @staticmethod
    def calculate_motion(zoom: ZoomDirection, pan: PanDirection) -> PanZoomMotion:
        if zoom == ZoomDirection.IN:
            start_scale, end_scale = MIN_SCALE, MAX_SCALE
        else:
            start_scale, end_scale = MAX_SCALE, MIN_SCALE

        near, far = PAN_AMOUNT, 1 - PAN_AMOUNT
        start_x = end_x = start_y = end_y = 0.5
        if pan == PanDirection.LEFT:
            start_x, end_x = near, far
        elif pan == PanDirection.RIGHT:
            start_x, end_x = far, near
        elif pan == PanDirection.UP:
            start_y, end_y = near, far
        elif pan == PanDirection.DOWN:
            start_y, end_y = far, near

        return PanZoomMotion(
            zoom=zoom, pan=pan,
            start_scale=start_scale, end_scale=end_scale,
            start_x=start_x, end_x=end_x,
            start_y=start_y, end_y=end_y,
        )

    @staticmethod
    def validate(params: PanZoomParams) -> None:
        """Reject non-finite or non-positive timing and frame parameters"""
        _require_positive('duration', params.duration)
        _require_positive('width', params.width)
        _require_positive('height', params.height)
        _require_positive('fps', params.fps)

    def build_filter(self, params: PanZoomParams, motion: PanZoomMotion) -> FilterGraph:
        self.validate(params)

        width, height = int(params.width), int(params.height)
        frames = max(1, int(round(params.duration * params.fps)))
        span = max(1, frames - 1)

        def lerp(start: float, end: float) -> str:
            if start == end:
                return f"{start}"
            return f"{start}+({end - start:.4f})*on/{span}"

        zoom_expr = lerp(motion.start_scale, motion.end_scale)
        x_expr = f"(iw-iw/zoom)*({lerp(motion.start_x, motion.end_x)})"
        y_expr = f"(ih-ih/zoom)*({lerp(motion.start_y, motion.end_y)})"

        return FilterGraph().add([
            node('scale', width, height, force_original_aspect_ratio='decrease'),
            node('pad', width, height, '(ow-iw)/2', '(oh-ih)/2'),
            node('zoompan', z=zoom_expr, x=x_expr, y=y_expr, d=frames,
                 s=f"{width}x{height}", fps=params.fps),
            node('format', 'yuv420p'),
        ])

    async def render(self, params: PanZoomParams) -> Path:
        """Render one pan/zoom clip to params.output_path"""
        self.validate(params)
        if not Path(params.image_path).exists():
            raise InvalidParametersError(f"Input image not found: {params.image_path}")

        motion = self.calculate_motion(params.zoom or DEFAULT_MOTION[0], params.pan or DEFAULT_MOTION[1])
        graph = self.build_filter(params, motion)
        params.output_path.parent.mkdir(parents=True, exist_ok=True)

        opts = self.options
        args = (
            ffmpeg
            .input(str(params.image_path))
            .output(
                str(params.output_path),
                vf=graph.serialize(),
                t=params.duration,
                r=params.fps,
                vcodec=opts.codec,
                crf=opts.crf,
                preset=opts.preset,
                pix_fmt='yuv420p',
                movflags='+faststart',
            )
            .overwrite_output()
            .get_args()
        )

        self.logger.info(
            f"Pan/zoom {params.image_path.name}: zoom {motion.zoom.value}, pan {motion.pan.value}, "
            f"{params.duration:.1f}s"
        )
        await self.runner.run(args, description=f"pan/zoom render for {params.image_path.name}")
        return params.output_path

    async def render_for_room(self, image_path: Path, output_path: Path, duration: float,
                              width: int, height: int, room: Optional[RoomType]) -> Path:
        zoom, pan = ROOM_MOTION_DEFAULTS.get(room, DEFAULT_MOTION)
        params = PanZoomParams(
            image_path=image_path, output_path=output_path, duration=duration,
            width=width, height=height, fps=self.options.fps, zoom=zoom, pan=pan,
        )
        return await self.render(params)

    async def render_batch(self, params_list: List[PanZoomParams]) -> List[Path]:
        """Render sequentially; the first failure aborts the batch"""
        results = []
        for params in params_list:
            results.append(await self.render(params))
        return results

    def create_varied_params(self, images: List[Path], output_dir: Path, duration: float,
                             width: int, height: int) -> List[PanZoomParams]:
        params = []
        for index, (image, (zoom, pan)) in enumerate(zip(images, varied_motions(len(images)))):
            params.append(PanZoomParams(
                image_path=image,
                output_path=output_dir / f"panzoom_{index:03d}.mp4",
                duration=duration, width=width, height=height,
                fps=self.options.fps, zoom=zoom, pan=pan,
            ))
        return params
