"""
Video Assembly Data Models

Pydantic models for the timeline assembler.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from ..planning.planning_models import RoomType, Technique


class TransitionStrategy(str, Enum):
    """Boundary treatment applied uniformly to every segment pair in one run"""
    CROSSFADE = "crossfade"
    HARD_CUT = "hard_cut"


class AudioKind(str, Enum):
    VOICEOVER = "voiceover"
    MUSIC = "music"


class VideoSegment(BaseModel):
    """A rendered clip for one planned scene"""
    path: Path
    duration: float = Field(gt=0)
    technique: Technique
    room: RoomType
    has_audio: bool = False
    scene_id: Optional[str] = None


class AudioTrack(BaseModel):
    """Audio track placed on the tour timeline"""
    path: Path
    kind: AudioKind
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    start_time: float = Field(default=0.0, ge=0.0)
    duration: Optional[float] = None


# (width, height) per aspect and resolution
RESOLUTION_PRESETS: Dict[str, Dict[str, Tuple[int, int]]] = {
    "16:9": {"720p": (1280, 720), "1080p": (1920, 1080)},
    "9:16": {"720p": (720, 1280), "1080p": (1080, 1920)},
}


def resolve_resolution(aspect: str, resolution: str) -> Tuple[int, int]:
    return RESOLUTION_PRESETS.get(aspect, RESOLUTION_PRESETS["16:9"]).get(resolution, (1920, 1080))


class AssemblyRequest(BaseModel):
    """Request for timeline assembly"""
    segments: List[VideoSegment]
    audio_tracks: List[AudioTrack] = Field(default_factory=list)
    output_path: Path
    width: int = 1920
    height: int = 1080
    fps: int = 24
    transition: TransitionStrategy = TransitionStrategy.CROSSFADE
    crossfade_duration: float = Field(default=0.75, ge=0.0)


class AssemblyResult(BaseModel):
    """Result of timeline assembly"""
    output_path: Path
    duration: float = 0.0
    segment_count: int = 0
    audio_tracks_mixed: int = 0
    has_audio: bool = False
    transition: TransitionStrategy = TransitionStrategy.CROSSFADE
    render_time_seconds: float = 0.0
    created_at: datetime = Field(default_factory=datetime.now)


class MediaInfo(BaseModel):
    """Probe result for a media file"""
    duration: float = 0.0
    width: int = 0
    height: int = 0
    fps: float = 0.0
    bitrate: int = 0
    has_audio: bool = False
    has_video: bool = False
