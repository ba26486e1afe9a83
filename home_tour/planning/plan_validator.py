"""Pre-flight checks for an image set before any rendering is paid for"""

import logging
import math
from typing import Dict, Sequence

from ..errors import InvalidParametersError
from .planning_models import ImageDescriptor, InputValidationReport, RoomType

logger = logging.getLogger(__name__)

MIN_RECOMMENDED_IMAGES = 6
MAX_RECOMMENDED_IMAGES = 40
SECONDS_PER_AI_SEGMENT = 6
AI_SEGMENT_CEILING = 15


def room_distribution(images: Sequence[ImageDescriptor]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for image in images:
        room = image.room.value if image.room else RoomType.UNKNOWN.value
        counts[room] = counts.get(room, 0) + 1
    return counts


def validate_tour_inputs(images: Sequence[ImageDescriptor],
                         target_seconds: float = 90.0,
                         cost_per_segment: float = 0.50,
                         max_ai_segments: int = AI_SEGMENT_CEILING) -> InputValidationReport:
    """
    Summarize an image set and flag common quality problems.

    Warnings never make the report invalid; only an unusable target does,
    and that raises instead.
    """
    if not math.isfinite(target_seconds) or target_seconds <= 0:
        raise InvalidParametersError(f"Invalid target duration: {target_seconds}")

    distribution = room_distribution(images)
    ai_segments = min(max_ai_segments, AI_SEGMENT_CEILING, math.floor(target_seconds / SECONDS_PER_AI_SEGMENT))
    pan_zoom_segments = max(0, len(images) - ai_segments)

    warnings = []
    if len(images) < MIN_RECOMMENDED_IMAGES:
        warnings.append(
            f"Less than {MIN_RECOMMENDED_IMAGES} images provided. "
            f"Minimum {MIN_RECOMMENDED_IMAGES} recommended for quality tours."
        )
    if len(images) > MAX_RECOMMENDED_IMAGES:
        warnings.append(
            f"More than {MAX_RECOMMENDED_IMAGES} images provided. "
            "Consider reducing for optimal processing time."
        )
    if not distribution.get(RoomType.EXTERIOR.value):
        warnings.append("No exterior images detected. Consider adding exterior shots.")
    if not distribution.get(RoomType.KITCHEN.value):
        warnings.append("No kitchen images detected. Kitchen photos are important for home tours.")

    for warning in warnings:
        logger.warning(warning)

    return InputValidationReport(
        valid=True,
        image_count=len(images),
        target_seconds=target_seconds,
        room_distribution=distribution,
        estimated_cost=ai_segments * cost_per_segment,
        estimated_ai_segments=ai_segments,
        estimated_pan_zoom_segments=pan_zoom_segments,
        warnings=warnings,
    )
