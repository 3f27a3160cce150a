from .planning_service import IPlanningService, MotionOptions
from .scene import ISceneQuery

__all__ = [
    "IPlanningService",
    "MotionOptions",
    "ISceneQuery"
]
