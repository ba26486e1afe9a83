"""Timeline Builder

Pure timing and filter-graph construction for the assembler: where each
segment lands on the output timeline, where every crossfade starts, and how
the audio tracks are leveled, delayed and mixed.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .filter_graph import FilterGraph, node
from .video_models import AudioKind, AudioTrack, TransitionStrategy, VideoSegment

VIDEO_OUT = "vout"
AUDIO_OUT = "aout"


def local_offsets(durations: Sequence[float], crossfade: float) -> List[float]:
    """Per-pair fade start relative to the earlier segment: max(0, duration - crossfade)"""
    return [max(0.0, d - crossfade) for d in durations[:-1]]


def crossfade_offsets(durations: Sequence[float], crossfade: float) -> List[float]:
    """Absolute xfade offsets for a chained graph (running sum of local offsets)"""
    offsets = []
    position = 0.0
    for local in local_offsets(durations, crossfade):
        position += local
        offsets.append(position)
    return offsets


def timeline_duration(durations: Sequence[float], crossfade: float,
                      strategy: TransitionStrategy = TransitionStrategy.CROSSFADE) -> float:
    if not durations:
        return 0.0
    if strategy == TransitionStrategy.HARD_CUT or len(durations) == 1:
        return float(sum(durations))
    return crossfade_offsets(durations, crossfade)[-1] + durations[-1]


def build_timeline(segments: Sequence[VideoSegment], crossfade: float,
                   strategy: TransitionStrategy = TransitionStrategy.CROSSFADE) -> List[Dict[str, Any]]:
    """Return one entry per segment with its start/end on the output timeline.

    The pipeline reports these as `TourResult.timeline`, so overlays and
    chapter markers need not recompute transition math.
    """
    durations = [seg.duration for seg in segments]
    if strategy == TransitionStrategy.HARD_CUT:
        starts = [sum(durations[:i]) for i in range(len(durations))]
    else:
        starts = [0.0] + crossfade_offsets(durations, crossfade)

    timeline = []
    for seg, start in zip(segments, starts):
        timeline.append({
            "scene_id": seg.scene_id,
            "room": seg.room.value,
            "technique": seg.technique.value,
            "start_s": start,
            "end_s": start + seg.duration,
            "transition": {"type": strategy.value, "duration": crossfade if strategy == TransitionStrategy.CROSSFADE else 0.0},
        })
    return timeline


def build_crossfade_graph(durations: Sequence[float], width: int, height: int, fps: int,
                          crossfade: float, pixel_format: str = "yuv420p") -> FilterGraph:
    """Normalize every input to one frame size/rate, then chain xfade between neighbours"""
    graph = FilterGraph()
    count = len(durations)

    for index in range(count):
        graph.add(
            [
                node('scale', width, height, force_original_aspect_ratio='decrease'),
                node('pad', width, height, '(ow-iw)/2', '(oh-ih)/2'),
                node('setsar', 1),
                node('fps', fps),
                node('format', pixel_format),
            ],
            inputs=[f"{index}:v"],
            outputs=[f"v{index}"],
        )

    if count == 1:
        graph.add([node('null')], inputs=["v0"], outputs=[VIDEO_OUT])
        return graph

    previous = "v0"
    for index, offset in enumerate(crossfade_offsets(durations, crossfade)):
        label = VIDEO_OUT if index == count - 2 else f"x{index}"
        graph.add(
            [node('xfade', transition='fade', duration=float(crossfade), offset=float(offset))],
            inputs=[previous, f"v{index + 1}"],
            outputs=[label],
        )
        previous = label

    return graph


def _interval(track: AudioTrack) -> Tuple[float, float]:
    end = track.start_time + track.duration if track.duration else math.inf
    return track.start_time, end


def _overlaps(a: AudioTrack, b: AudioTrack) -> bool:
    a_start, a_end = _interval(a)
    b_start, b_end = _interval(b)
    return a_start < b_end and b_start < a_end


def duck_music_tracks(tracks: Sequence[AudioTrack], duck_factor: float = 0.4) -> List[AudioTrack]:
    """Scale music that plays under any voiceover to `duck_factor` of its volume.

    Ducking is static for the whole music track.
    """
    voices = [t for t in tracks if t.kind == AudioKind.VOICEOVER]
    leveled = []
    for track in tracks:
        if track.kind == AudioKind.MUSIC and any(_overlaps(track, voice) for voice in voices):
            track = track.model_copy(update={"volume": track.volume * duck_factor})
        leveled.append(track)
    return leveled


def build_audio_mix_graph(tracks: Sequence[AudioTrack]) -> FilterGraph:
    """Level and delay each track, then amix with the longest input setting the length"""
    graph = FilterGraph()

    for index, track in enumerate(tracks):
        chain = []
        if track.volume != 1.0:
            chain.append(node('volume', float(track.volume)))
        if track.start_time > 0:
            delay_ms = int(round(track.start_time * 1000))
            chain.append(node('adelay', f"{delay_ms}|{delay_ms}"))
        if not chain:
            chain.append(node('anull'))
        graph.add(chain, inputs=[f"{index}:a"], outputs=[f"a{index}"])

    graph.add(
        [node('amix', inputs=len(tracks), duration='longest')],
        inputs=[f"a{index}" for index in range(len(tracks))],
        outputs=[AUDIO_OUT],
    )
    return graph


def concat_manifest(paths: Sequence[Path]) -> str:
    """Concat-demuxer list for hard-cut joins"""
    lines = []
    for path in paths:
        escaped = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"
