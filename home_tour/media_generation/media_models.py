"""Data models for segment rendering (AI synthesis and pan/zoom)"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from ..errors import ResponseParseError


class RenderJobState(str, Enum):
    """Lifecycle of one remote synthesis operation"""
    SUBMITTED = "submitted"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed-out"


class ZoomDirection(str, Enum):
    IN = "in"
    OUT = "out"


class PanDirection(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    NONE = "none"


class SynthesisRequest(BaseModel):
    """Everything the synthesis service needs for one clip"""
    project_id: str
    location: str = "us-central1"
    model: str = "veo-3.0-fast-generate-001"
    aspect: Literal["16:9", "9:16"] = "16:9"
    resolution: Optional[Literal["720p", "1080p"]] = None
    duration_seconds: Literal[4, 6, 8] = 8
    generate_audio: bool = False
    seed: Optional[int] = None
    image_uri: str
    last_frame_uri: Optional[str] = None
    storage_uri: Optional[str] = None
    prompt: str


class OperationStatus(BaseModel):
    """One poll response from the synthesis service"""
    name: str = ""
    done: bool = False
    response: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    @field_validator('error', mode='before')
    @classmethod
    def _wrap_error(cls, value):
        # Some backends report a bare message string
        if value is None or isinstance(value, dict):
            return value
        return {'message': str(value)}

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return str(self.error.get('message') or self.error)


def operation_status_from_payload(payload: Any, operation_handle: str) -> OperationStatus:
    """Build an OperationStatus from a raw poll payload, rejecting malformed ones"""
    if not isinstance(payload, dict):
        raise ResponseParseError(f"Poll for {operation_handle} returned a non-object payload")
    try:
        return OperationStatus(
            name=payload.get('name') or operation_handle,
            done=bool(payload.get('done', False)),
            response=payload.get('response'),
            error=payload.get('error'),
        )
    except ValidationError as e:
        raise ResponseParseError(f"Malformed poll payload for {operation_handle}: {e}") from e


class VideosResult(BaseModel):
    """Current response shape: response.videos[0].gcsUri"""
    shape: Literal["videos"] = "videos"
    video_uri: str
    mime_type: Optional[str] = None


class PredictionsResult(BaseModel):
    """Legacy response shape: response.predictions[0].videoUri or .video.gcsUri"""
    shape: Literal["predictions"] = "predictions"
    video_uri: str


OperationResult = Annotated[Union[VideosResult, PredictionsResult], Field(discriminator="shape")]

_OPERATION_RESULT = TypeAdapter(OperationResult)


def _first_entry(items: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(items, list) or not items:
        return None
    entry = items[0]
    return entry if isinstance(entry, dict) else {}


def parse_operation_response(response: Optional[Dict[str, Any]]) -> Union[VideosResult, PredictionsResult]:
    """
    Resolve a finished operation's payload into a tagged result.

    The videos shape wins whenever it is present. Anything else raises
    ResponseParseError instead of guessing.
    """
    if not isinstance(response, dict):
        raise ResponseParseError("Operation finished without a response payload")

    video = _first_entry(response.get('videos'))
    if video is not None:
        candidate = {'shape': 'videos', 'video_uri': video.get('gcsUri'), 'mime_type': video.get('mimeType')}
    else:
        prediction = _first_entry(response.get('predictions'))
        if prediction is None:
            raise ResponseParseError(f"Unrecognized operation response keys: {sorted(response.keys())}")
        nested = prediction.get('video')
        uri = prediction.get('videoUri') or (nested.get('gcsUri') if isinstance(nested, dict) else None)
        candidate = {'shape': 'predictions', 'video_uri': uri}

    if not candidate['video_uri']:
        raise ResponseParseError(f"No video URI in {candidate['shape']} response")

    try:
        return _OPERATION_RESULT.validate_python(candidate)
    except ValidationError as e:
        raise ResponseParseError(f"Malformed {candidate['shape']} response: {e}") from e


class RenderJob(BaseModel):
    """Tracks one outstanding synthesis operation for a single scene"""
    scene_id: str
    operation_handle: Optional[str] = None
    attempt_count: int = 0
    state: RenderJobState = RenderJobState.SUBMITTED
    last_response: Optional[Dict[str, Any]] = None
    poll_delays: List[float] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


class SynthesisResult(BaseModel):
    """A downloaded synthesized clip"""
    video_path: Path
    last_frame_path: Optional[Path] = None
    duration: float
    source_uri: Optional[str] = None


class PanZoomParams(BaseModel):
    """Inputs for one locally rendered pan/zoom clip"""
    image_path: Path
    output_path: Path
    duration: float
    width: int = 1920
    height: int = 1080
    fps: float = 24
    zoom: Optional[ZoomDirection] = None
    pan: Optional[PanDirection] = None


class PanZoomMotion(BaseModel):
    """Resolved start/end scale and offsets (fractions of available travel)"""
    zoom: ZoomDirection
    pan: PanDirection
    start_scale: float
    end_scale: float
    start_x: float
    end_x: float
    start_y: float
    end_y: float
