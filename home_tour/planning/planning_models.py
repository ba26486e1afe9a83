"""
Scene Planning Data Models

Pydantic models describing the ingested images and the plan built from them.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class RoomType(str, Enum):
    """Fixed room taxonomy for property tours"""
    EXTERIOR = "exterior"
    ENTRY = "entry"
    LIVING = "living"
    KITCHEN = "kitchen"
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    BACKYARD = "backyard"
    UNKNOWN = "unknown"


class Technique(str, Enum):
    """How a scene is turned into a video segment"""
    AI_SYNTHESIS = "ai-synthesis"
    PAN_ZOOM = "pan-zoom"


# Logical walk-through order for grouping
CANONICAL_ROOM_ORDER: List[RoomType] = [
    RoomType.EXTERIOR,
    RoomType.ENTRY,
    RoomType.LIVING,
    RoomType.KITCHEN,
    RoomType.BEDROOM,
    RoomType.BATHROOM,
    RoomType.BACKYARD,
]

# Most important rooms first when handing out AI synthesis slots
AI_SYNTHESIS_PRIORITY: List[RoomType] = [
    RoomType.EXTERIOR,
    RoomType.LIVING,
    RoomType.KITCHEN,
    RoomType.BEDROOM,
    RoomType.ENTRY,
    RoomType.BATHROOM,
    RoomType.BACKYARD,
]


class ImageDescriptor(BaseModel):
    """A single ingested still image"""
    model_config = ConfigDict(frozen=True)

    path: Path
    room: Optional[RoomType] = None
    capture_time: Optional[datetime] = None

    @field_validator('room', mode='before')
    @classmethod
    def _coerce_room(cls, value):
        if value is None or isinstance(value, RoomType):
            return value
        try:
            return RoomType(str(value).strip().lower())
        except ValueError:
            return RoomType.UNKNOWN

    @property
    def known_room(self) -> Optional[RoomType]:
        """Room label if it belongs to the canonical taxonomy"""
        if self.room is None or self.room == RoomType.UNKNOWN:
            return None
        return self.room


class Scene(BaseModel):
    """A planned tour segment covering one or more images of a room"""
    id: str
    room: RoomType
    images: List[ImageDescriptor] = Field(min_length=1)
    duration: float
    technique: Technique = Technique.AI_SYNTHESIS
    description: str = ""
    focus_points: List[str] = Field(default_factory=list)

    @property
    def primary_image(self) -> ImageDescriptor:
        return self.images[0]


class ScenePlan(BaseModel):
    """Ordered scenes plus aggregate counts. Frozen once planning completes."""
    model_config = ConfigDict(frozen=True)

    scenes: List[Scene]
    total_duration: float
    ai_synthesis_segments: int
    pan_zoom_segments: int

    @classmethod
    def from_scenes(cls, scenes: List[Scene]) -> "ScenePlan":
        return cls(
            scenes=[scene.model_copy(deep=True) for scene in scenes],
            total_duration=sum(scene.duration for scene in scenes),
            ai_synthesis_segments=sum(1 for s in scenes if s.technique == Technique.AI_SYNTHESIS),
            pan_zoom_segments=sum(1 for s in scenes if s.technique == Technique.PAN_ZOOM),
        )


class PlannerOptions(BaseModel):
    """Knobs for the scene planner"""
    prefer_ai_synthesis: bool = True
    max_ai_segments: int = Field(default=15, ge=0)
    min_segment_duration: float = Field(default=4.0, gt=0)
    max_segment_duration: float = Field(default=8.0, gt=0)
    crossfade_duration: float = Field(default=0.75, ge=0)


class TimingBudget(BaseModel):
    """Time allocation derived from the target duration"""
    target_duration: float
    available_content_time: float
    ideal_segment_duration: float
    max_ai_segments: int
    crossfade_time: float
    room_count: int


class InputValidationReport(BaseModel):
    """Pre-flight summary of an image set"""
    valid: bool = True
    image_count: int
    target_seconds: float
    room_distribution: Dict[str, int]
    estimated_cost: float
    estimated_ai_segments: int
    estimated_pan_zoom_segments: int
    warnings: List[str] = Field(default_factory=list)
