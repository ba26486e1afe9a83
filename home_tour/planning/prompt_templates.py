"""Static per-room tables and motion prompt templates for tour segments"""

from typing import Dict, List, Optional

from .planning_models import RoomType, Scene

SCENE_DESCRIPTIONS: Dict[RoomType, List[str]] = {
    RoomType.EXTERIOR: ["Stunning curb appeal and architectural details"],
    RoomType.ENTRY: ["Welcoming entrance with elegant details"],
    RoomType.LIVING: [
        "Spacious living area with natural light",
        "Comfortable living space with great flow",
    ],
    RoomType.KITCHEN: [
        "Chef's kitchen with premium finishes",
        "Kitchen island and cooking area",
    ],
    RoomType.BEDROOM: [
        "Peaceful bedroom retreat",
        "Master suite with ample space",
    ],
    RoomType.BATHROOM: ["Spa-like bathroom with luxury finishes"],
    RoomType.BACKYARD: ["Private outdoor entertainment space"],
}
DEFAULT_DESCRIPTIONS = ["Beautiful space with attention to detail"]

FOCUS_POINTS: Dict[RoomType, List[List[str]]] = {
    RoomType.EXTERIOR: [["architectural facade", "landscaping", "entrance appeal"]],
    RoomType.ENTRY: [["entryway details", "lighting fixtures", "flooring transition"]],
    RoomType.LIVING: [
        ["seating arrangement", "natural light", "room flow"],
        ["fireplace area", "built-ins", "ceiling details"],
    ],
    RoomType.KITCHEN: [
        ["island centerpiece", "appliance suite", "countertop materials"],
        ["cabinet details", "backsplash design", "lighting features"],
    ],
    RoomType.BEDROOM: [
        ["bed placement", "window views", "closet access"],
        ["sitting area", "built-in features", "natural light"],
    ],
    RoomType.BATHROOM: [["vanity details", "shower/tub area", "fixture quality"]],
    RoomType.BACKYARD: [["outdoor living space", "landscaping features", "privacy elements"]],
}
DEFAULT_FOCUS_POINTS = [["key features", "design details", "spatial flow"]]
FILLER_FOCUS_POINTS = ["architectural details", "ambiance"]

STYLE_BASE = (
    "Cinematic real-estate walkthrough shot on a stabilized gimbal at 24fps with natural lighting, "
    "accurate white balance, neutral color grade, no people, no lens distortion, no text overlays."
)

ROOM_MOTION: Dict[RoomType, str] = {
    RoomType.EXTERIOR: "gentle approach revealing the facade and entrance",
    RoomType.ENTRY: "welcoming entrance movement with gentle height reveal",
    RoomType.LIVING: "arc around seating revealing windows and flow",
    RoomType.KITCHEN: "island approach then arc to reveal appliances and details",
    RoomType.BEDROOM: "gentle reveal from doorway with arc toward windows",
    RoomType.BATHROOM: "careful reveal of fixtures with emphasis on finishes",
    RoomType.BACKYARD: "establishing wide view then closer reveals of features",
}
DEFAULT_MOTION = "slow, realistic camera movement with subtle push-in and gentle arc"

TRANSITION_GUIDANCE: Dict[RoomType, Dict[RoomType, str]] = {
    RoomType.EXTERIOR: {
        RoomType.ENTRY: "Camera should suggest movement toward and through the entrance",
        RoomType.LIVING: "End with view that implies interior spaces beyond",
    },
    RoomType.ENTRY: {
        RoomType.LIVING: "Camera movement should flow naturally into main living areas",
        RoomType.KITCHEN: "Suggest connection to cooking/gathering spaces",
    },
    RoomType.LIVING: {
        RoomType.KITCHEN: "Pan toward kitchen area or cooking space connection",
        RoomType.BEDROOM: "Gentle movement suggesting private areas beyond",
        RoomType.BACKYARD: "Orient toward outdoor connections or views",
    },
    RoomType.KITCHEN: {
        RoomType.LIVING: "Show connection back to main entertaining space",
        RoomType.BEDROOM: "Transition toward more private areas of the home",
        RoomType.BACKYARD: "Emphasize any outdoor dining or entertaining connections",
    },
    RoomType.BEDROOM: {
        RoomType.BATHROOM: "Show ensuite connection or private bathroom access",
        RoomType.BACKYARD: "If master, show outdoor views or private yard access",
    },
}
DEFAULT_TRANSITION = "Smooth camera movement for natural scene flow"

LAYOUT_GUARD = (
    "Maintain the exact room layout, wall positions, dimensions, and architectural elements. "
    "Furniture may be rearranged only if it fits the existing space with realistic proportions."
)


def describe_scene(room: RoomType, scene_index: int, total_scenes: int) -> str:
    descriptions = SCENE_DESCRIPTIONS.get(room, DEFAULT_DESCRIPTIONS)
    if total_scenes == 1:
        return descriptions[0]
    return descriptions[scene_index % len(descriptions)]


def focus_points_for(room: RoomType, scene_index: int) -> List[str]:
    options = FOCUS_POINTS.get(room, DEFAULT_FOCUS_POINTS)
    return list(options[scene_index % len(options)])


def transition_guidance(from_room: Optional[RoomType], to_room: Optional[RoomType]) -> str:
    if from_room is None or to_room is None:
        return DEFAULT_TRANSITION
    return TRANSITION_GUIDANCE.get(from_room, {}).get(to_room, DEFAULT_TRANSITION)


def build_segment_prompt(scene: Scene,
                         previous_room: Optional[RoomType] = None,
                         next_room: Optional[RoomType] = None) -> str:
    """Natural-language camera motion prompt for one AI-synthesis segment"""
    motion = ROOM_MOTION.get(scene.room, DEFAULT_MOTION)
    parts = [
        STYLE_BASE,
        f"Create video movement through this space: {motion}.",
        LAYOUT_GUARD,
    ]
    if scene.focus_points:
        parts.append(f"Feature the {', '.join(scene.focus_points)}.")
    if next_room is not None and next_room != scene.room:
        parts.append(transition_guidance(scene.room, next_room) + ".")
    elif previous_room is None:
        parts.append("Open with a stable establishing frame.")
    parts.append("End on a stable frame suitable for a crossfade.")
    return " ".join(parts)
