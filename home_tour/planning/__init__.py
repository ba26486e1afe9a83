"""
Scene Planning

Groups images by room, budgets the tour duration and picks a rendering
technique for every scene.
"""

from .scene_planner import ScenePlanner
from .plan_validator import validate_tour_inputs
from .planning_models import ImageDescriptor, RoomType, Scene, ScenePlan, Technique

__all__ = [
    'ScenePlanner',
    'validate_tour_inputs',
    'ImageDescriptor',
    'RoomType',
    'Scene',
    'ScenePlan',
    'Technique'
]
