"""
Scene Planner

Turns an ingested image set and a target duration into a ScenePlan:
- Groups images by room in walk-through order
- Splits large rooms into sub-scenes
- Allocates a duration budget that leaves room for crossfades
- Hands out AI synthesis slots by room priority, pan/zoom for the rest
- Reconciles durations, snaps AI clips to lengths the service accepts
  and tops up short plans with pan/zoom filler

Planning is a pure function of its inputs; nothing here touches the network or clock.
"""

import math
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import InsufficientInputError, InvalidParametersError
from ..utils.logger import LoggerMixin
from .planning_models import (
    AI_SYNTHESIS_PRIORITY, CANONICAL_ROOM_ORDER, ImageDescriptor, PlannerOptions,
    RoomType, Scene, ScenePlan, Technique, TimingBudget
)
from .prompt_templates import FILLER_FOCUS_POINTS, describe_scene, focus_points_for

ProgressCallback = Callable[[str, float, Optional[str]], None]

# Rooms above this size get split into sub-scenes
SPLIT_THRESHOLD = 4
IMAGES_PER_SUB_SCENE = 3

PAN_ZOOM_CAP_SECONDS = 6.0
AI_DURATION_BOUNDS = (4.0, 8.0)
PAN_ZOOM_DURATION_BOUNDS = (3.0, 10.0)

FILLER_TRIGGER_RATIO = 0.95
FILLER_MIN_SHORTFALL = 3.0
FILLER_MAX_SECONDS = 6.0

# Clip lengths the synthesis service accepts
AI_CLIP_DURATIONS = (4, 6, 8)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def snap_clip_duration(duration: float) -> int:
    """Nearest clip length the synthesis service accepts (shorter wins ties)"""
    return min(AI_CLIP_DURATIONS, key=lambda allowed: (abs(allowed - duration), allowed))


class ScenePlanner(LoggerMixin):
    """Builds technique-balanced scene plans for property tours"""

    def __init__(self, options: Optional[PlannerOptions] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.options = options or PlannerOptions()
        self.progress_callback = progress_callback

    @classmethod
    def from_config(cls, config, progress_callback: Optional[ProgressCallback] = None) -> "ScenePlanner":
        planner_cfg = config.planner
        return cls(
            PlannerOptions(
                prefer_ai_synthesis=planner_cfg.prefer_ai_synthesis,
                max_ai_segments=planner_cfg.max_ai_segments,
                min_segment_duration=planner_cfg.min_segment_duration,
                max_segment_duration=planner_cfg.max_segment_duration,
                crossfade_duration=planner_cfg.crossfade_duration,
            ),
            progress_callback=progress_callback,
        )

    def _report(self, percent: float, message: str) -> None:
        if self.progress_callback:
            self.progress_callback('planning', percent, message)

    def plan_scenes(self, images: Sequence[ImageDescriptor], target_seconds: float) -> ScenePlan:
        """
        Build a ScenePlan for the given images.

        Args:
            images: Ingested image descriptors, in collection order
            target_seconds: Requested total tour length

        Returns:
            Frozen ScenePlan whose scene durations sum to roughly the target

        Raises:
            InsufficientInputError: no images supplied
            InvalidParametersError: target is not a positive finite number
        """
        if not images:
            raise InsufficientInputError("Cannot plan a tour without images")
        if not math.isfinite(target_seconds) or target_seconds <= 0:
            raise InvalidParametersError(f"Invalid target duration: {target_seconds}")

        self._report(0, 'Analyzing images and grouping by room')
        room_groups = self.group_images_by_room(images)

        self._report(25, 'Calculating segment timing')
        timing = self.calculate_timing(target_seconds, len(room_groups))

        self._report(50, 'Creating scene segments')
        scenes = self._create_scenes(room_groups, timing)

        self._report(75, 'Optimizing scene distribution')
        scenes = self._optimize_scenes(scenes, timing)

        plan = ScenePlan.from_scenes(scenes)
        self.logger.info(
            f"Planned {len(plan.scenes)} scenes ({plan.ai_synthesis_segments} AI, "
            f"{plan.pan_zoom_segments} pan/zoom), {plan.total_duration:.1f}s of {target_seconds:.1f}s target"
        )
        self._report(100, 'Scene planning complete')
        return plan

    def group_images_by_room(self, images: Sequence[ImageDescriptor]) -> Dict[RoomType, List[ImageDescriptor]]:
        """Bucket images by room in canonical order; unlabeled images fill the smallest buckets"""
        buckets: Dict[RoomType, List[ImageDescriptor]] = {room: [] for room in CANONICAL_ROOM_ORDER}
        unplaced: List[ImageDescriptor] = []

        for image in images:
            room = image.known_room
            if room is None:
                unplaced.append(image)
            else:
                buckets[room].append(image)

        groups = {room: group for room, group in buckets.items() if group}

        for image in unplaced:
            if groups:
                # min() keeps the first bucket on ties, which is canonical order
                target_room = min(groups, key=lambda room: len(groups[room]))
                groups[target_room].append(image)
            else:
                groups[RoomType.LIVING] = [image]

        return groups

    def calculate_timing(self, target_seconds: float, room_count: int) -> TimingBudget:
        opts = self.options
        room_count = max(1, room_count)

        estimated_segments = min(room_count + 2, opts.max_ai_segments * 1.5)
        crossfade_time = max(0.0, estimated_segments - 1) * opts.crossfade_duration
        available = target_seconds - crossfade_time
        ideal = _clamp(available / room_count, opts.min_segment_duration, opts.max_segment_duration)

        return TimingBudget(
            target_duration=target_seconds,
            available_content_time=available,
            ideal_segment_duration=ideal,
            max_ai_segments=opts.max_ai_segments,
            crossfade_time=crossfade_time,
            room_count=room_count,
        )

    def _create_scenes(self, room_groups: Dict[RoomType, List[ImageDescriptor]],
                       timing: TimingBudget) -> List[Scene]:
        scenes: List[Scene] = []
        for room, images in room_groups.items():
            scenes.extend(self._create_room_scenes(room, images, timing))
        return scenes

    def _create_room_scenes(self, room: RoomType, images: List[ImageDescriptor],
                            timing: TimingBudget) -> List[Scene]:
        duration = timing.ideal_segment_duration

        if len(images) > SPLIT_THRESHOLD and room != RoomType.EXTERIOR:
            scenes_needed = math.ceil(len(images) / IMAGES_PER_SUB_SCENE)
            per_scene = math.ceil(len(images) / scenes_needed)
            scenes = []
            for index in range(scenes_needed):
                chunk = images[index * per_scene:(index + 1) * per_scene]
                if not chunk:
                    continue
                scenes.append(Scene(
                    id=f"{room.value}_{index + 1}",
                    room=room,
                    images=chunk,
                    duration=duration,
                    description=describe_scene(room, index, scenes_needed),
                    focus_points=focus_points_for(room, index),
                ))
            return scenes

        return [Scene(
            id=room.value,
            room=room,
            images=list(images),
            duration=duration,
            description=describe_scene(room, 0, 1),
            focus_points=focus_points_for(room, 0),
        )]

    @staticmethod
    def _priority(scene: Scene) -> int:
        try:
            return AI_SYNTHESIS_PRIORITY.index(scene.room)
        except ValueError:
            return len(AI_SYNTHESIS_PRIORITY)

    def _optimize_scenes(self, scenes: List[Scene], timing: TimingBudget) -> List[Scene]:
        ordered = sorted(scenes, key=self._priority)

        ai_used = 0
        for scene in ordered:
            if self.options.prefer_ai_synthesis and ai_used < timing.max_ai_segments:
                scene.technique = Technique.AI_SYNTHESIS
                ai_used += 1
            else:
                scene.technique = Technique.PAN_ZOOM
                scene.duration = min(scene.duration, PAN_ZOOM_CAP_SECONDS)

        available = timing.available_content_time
        if not math.isclose(sum(s.duration for s in ordered), available, abs_tol=1e-9):
            self._reconcile_durations(ordered, available)

        for scene in ordered:
            if scene.technique == Technique.AI_SYNTHESIS:
                scene.duration = float(snap_clip_duration(scene.duration))

        self._add_filler_scenes(ordered, available)
        return ordered

    def _reconcile_durations(self, scenes: List[Scene], target_available: float) -> None:
        current = sum(scene.duration for scene in scenes)
        factor = target_available / current

        for scene in scenes:
            lower, upper = (AI_DURATION_BOUNDS if scene.technique == Technique.AI_SYNTHESIS
                            else PAN_ZOOM_DURATION_BOUNDS)
            scene.duration = _clamp(scene.duration * factor, lower, upper)

    def _add_filler_scenes(self, scenes: List[Scene], available: float) -> None:
        """Append pan/zoom filler while the plan falls short of the content budget"""
        total = sum(scene.duration for scene in scenes)
        if total >= available * FILLER_TRIGGER_RATIO:
            return

        # Prefer rooms with spare shots so the filler shows something new
        sources = [s for s in scenes if len(s.images) > 1] + [s for s in scenes if len(s.images) == 1]
        shortfall = available - total
        if shortfall <= FILLER_MIN_SHORTFALL:
            return

        # Split evenly so no remainder is left; each filler stays within 3-6s
        count = math.ceil(shortfall / FILLER_MAX_SECONDS)
        duration = shortfall / count

        for filler_index in range(count):
            source = sources[filler_index % len(sources)]
            image = source.images[-(1 + (filler_index // len(sources)) % len(source.images))]
            suffix = "_filler" if filler_index == 0 else f"_filler_{filler_index + 1}"

            scenes.append(Scene(
                id=f"{source.id}{suffix}",
                room=source.room,
                images=[image],
                duration=duration,
                technique=Technique.PAN_ZOOM,
                description=f"Additional view of {source.room.value}",
                focus_points=list(FILLER_FOCUS_POINTS),
            ))

        self.logger.debug(f"Added {count} filler scene(s) of {duration:.2f}s")

    @staticmethod
    def summarize(plan: ScenePlan) -> str:
        """Human-readable overview of a plan"""
        lines = [
            "Scene Plan Summary:",
            f"- Total Duration: {plan.total_duration:.1f}s",
            f"- AI Synthesis Segments: {plan.ai_synthesis_segments}",
            f"- Pan/Zoom Segments: {plan.pan_zoom_segments}",
            f"- Total Scenes: {len(plan.scenes)}",
            "",
            "Scene Breakdown:",
        ]
        for scene in plan.scenes:
            lines.append(
                f"  {scene.id}: {scene.duration:.1f}s ({scene.technique.value}) - {len(scene.images)} images"
            )
            if scene.description:
                lines.append(f"    {scene.description}")
        return "\n".join(lines)
