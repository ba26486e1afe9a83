"""
Video Assembler

Combines the rendered segments and audio tracks into the final tour:
- Fail-fast validation of every input before ffmpeg starts
- Single segment re-encode, or a crossfade / hard-cut timeline
- Audio leveling, delay and mixing
- Final mux with the video stream copied
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

import ffmpeg

from ..errors import AssemblyError
from ..utils.temp_files import TempArtifacts
from .ffmpeg_runner import FFmpegRunner
from .filter_graph import FilterGraph, node
from .timeline_builder import (
    AUDIO_OUT, VIDEO_OUT, build_audio_mix_graph, build_crossfade_graph,
    concat_manifest, timeline_duration
)
from .video_models import (
    AssemblyRequest, AssemblyResult, AudioTrack, MediaInfo, TransitionStrategy, VideoSegment
)

ProgressCallback = Callable[[str, float, Optional[str]], None]


class VideoAssembler:
    """Timeline assembler built on ffmpeg filter graphs"""

    def __init__(self, config, runner: Optional[FFmpegRunner] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.options = config.assembly
        self.runner = runner or FFmpegRunner()
        self.progress_callback = progress_callback

        self.temp_dir = Path(config.paths.temp) / 'video_assembly'

    def _report(self, percent: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback('assembly', percent, message)

    async def assemble(self, request: AssemblyRequest) -> AssemblyResult:
        """
        Assemble segments and audio into `request.output_path`.

        Raises:
            AssemblyError: missing inputs (before any process runs) or an ffmpeg failure
        """
        start_time = time.time()
        self._report(0, 'Preparing video assembly')
        self._validate_inputs(request)
        request.output_path.parent.mkdir(parents=True, exist_ok=True)

        with TempArtifacts.private(self.temp_dir, prefix='assembly') as temp:
            self._report(10, 'Creating video timeline')
            video_path = temp.new_path('.mp4')
            await self._create_video_timeline(request, video_path, temp)

            self._report(60, 'Processing audio tracks')
            audio_path = await self._create_audio_mix(request.audio_tracks, temp)

            self._report(85, 'Combining video and audio')
            await self._combine_video_and_audio(video_path, audio_path, request.output_path)

        durations = [seg.duration for seg in request.segments]
        result = AssemblyResult(
            output_path=request.output_path,
            duration=timeline_duration(durations, request.crossfade_duration, request.transition),
            segment_count=len(request.segments),
            audio_tracks_mixed=len(request.audio_tracks),
            has_audio=bool(request.audio_tracks),
            transition=request.transition,
            render_time_seconds=time.time() - start_time,
        )
        self._report(100, 'Video assembly complete')
        self.logger.info(
            f"Assembled {result.segment_count} segments into {result.output_path} "
            f"({result.duration:.1f}s) in {result.render_time_seconds:.1f}s"
        )
        return result

    def _validate_inputs(self, request: AssemblyRequest) -> None:
        if not request.segments:
            raise AssemblyError("No video segments to assemble")

        for segment in request.segments:
            if not Path(segment.path).exists():
                raise AssemblyError(f"Video segment not found: {segment.path}")

        for track in request.audio_tracks:
            if not Path(track.path).exists():
                raise AssemblyError(f"Audio track not found: {track.path}")

    async def _create_video_timeline(self, request: AssemblyRequest, output_path: Path,
                                     temp: TempArtifacts) -> None:
        segments = request.segments
        if len(segments) == 1:
            await self._process_single_segment(segments[0], output_path, request)
        elif request.transition == TransitionStrategy.HARD_CUT:
            await self._create_hard_cut_timeline(segments, output_path, request, temp)
        else:
            await self._create_crossfade_timeline(segments, output_path, request)

    def _encode_args(self, fps: int) -> List[str]:
        opts = self.options
        return [
            '-c:v', opts.codec,
            '-crf', str(opts.crf),
            '-preset', opts.preset,
            '-pix_fmt', opts.pixel_format,
            '-r', str(fps),
            '-movflags', '+faststart',
        ]

    async def _process_single_segment(self, segment: VideoSegment, output_path: Path,
                                      request: AssemblyRequest) -> None:
        opts = self.options
        args = (
            ffmpeg
            .input(str(segment.path))
            .output(
                str(output_path),
                vcodec=opts.codec,
                crf=opts.crf,
                preset=opts.preset,
                pix_fmt=opts.pixel_format,
                r=request.fps,
                s=f"{request.width}x{request.height}",
                an=None,
                movflags='+faststart',
            )
            .overwrite_output()
            .get_args()
        )
        await self.runner.run(args, description='single segment encode')

    async def _create_crossfade_timeline(self, segments: List[VideoSegment], output_path: Path,
                                         request: AssemblyRequest) -> None:
        graph = build_crossfade_graph(
            [seg.duration for seg in segments],
            request.width,
            request.height,
            request.fps,
            request.crossfade_duration,
            self.options.pixel_format,
        )

        args = ['-y']
        for segment in segments:
            args += ['-i', str(segment.path)]
        args += ['-filter_complex', graph.serialize(), '-map', f'[{VIDEO_OUT}]']
        args += self._encode_args(request.fps)
        args.append(str(output_path))

        self.logger.info(f"Crossfading {len(segments)} segments ({request.crossfade_duration}s fades)")
        await self.runner.run(args, description='crossfade timeline')

    async def _create_hard_cut_timeline(self, segments: List[VideoSegment], output_path: Path,
                                        request: AssemblyRequest, temp: TempArtifacts) -> None:
        manifest = temp.new_path('.txt')
        manifest.write_text(concat_manifest([seg.path for seg in segments]), encoding='utf-8')

        normalize = FilterGraph().add([
            node('scale', request.width, request.height, force_original_aspect_ratio='decrease'),
            node('pad', request.width, request.height, '(ow-iw)/2', '(oh-ih)/2'),
            node('setsar', 1),
        ])

        opts = self.options
        args = (
            ffmpeg
            .input(str(manifest), format='concat', safe=0)
            .output(
                str(output_path),
                vf=normalize.serialize(),
                vcodec=opts.codec,
                crf=opts.crf,
                preset=opts.preset,
                pix_fmt=opts.pixel_format,
                r=request.fps,
                an=None,
                movflags='+faststart',
            )
            .overwrite_output()
            .get_args()
        )
        self.logger.info(f"Concatenating {len(segments)} segments with hard cuts")
        await self.runner.run(args, description='hard-cut concatenation')

    async def _create_audio_mix(self, tracks: List[AudioTrack], temp: TempArtifacts) -> Optional[Path]:
        if not tracks:
            return None

        if len(tracks) == 1:
            return Path(tracks[0].path)

        graph = build_audio_mix_graph(tracks)
        mixed_path = temp.new_path('.m4a')

        args = ['-y']
        for track in tracks:
            args += ['-i', str(track.path)]
        args += [
            '-filter_complex', graph.serialize(),
            '-map', f'[{AUDIO_OUT}]',
            '-c:a', self.options.audio_codec,
            '-b:a', self.options.audio_bitrate,
            '-ac', '2',
            str(mixed_path),
        ]

        self.logger.info(f"Mixing {len(tracks)} audio tracks")
        await self.runner.run(args, description='audio mix')
        return mixed_path

    async def _combine_video_and_audio(self, video_path: Path, audio_path: Optional[Path],
                                       output_path: Path) -> None:
        video = ffmpeg.input(str(video_path)).video

        if audio_path is not None:
            audio = ffmpeg.input(str(audio_path)).audio
            stream = ffmpeg.output(
                video, audio, str(output_path),
                vcodec='copy',
                acodec=self.options.audio_codec,
                audio_bitrate=self.options.audio_bitrate,
                movflags='+faststart',
            )
        else:
            # No tracks means no audio stream at all, not a silent one
            stream = ffmpeg.output(video, str(output_path), vcodec='copy', an=None, movflags='+faststart')

        await self.runner.run(stream.overwrite_output().get_args(), description='final mux')

        if not output_path.exists():
            raise AssemblyError("ffmpeg did not create output file", str(output_path))

    async def get_video_info(self, video_path: Path) -> MediaInfo:
        """Probe an assembled file"""
        if not Path(video_path).exists():
            raise AssemblyError(f"Video not found: {video_path}")
        return await self.runner.probe(Path(video_path))
