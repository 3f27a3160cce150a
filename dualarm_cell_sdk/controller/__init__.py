# controller/__init__.py

"""
Motion coordination: component registry, motion engine, pick/place and the
operator service surface
"""

from .component_registry import ComponentRegistry, PlanningComponent
from .motion_engine import MotionExecutionEngine, MotionGoal, GoalKind, RetryAttempt
from .pick_place import PickPlaceWorkflow, PickPoses, apply_gripper_transform
from .robot_manager import CellManager
from .event_workers import JointStateMonitor, SceneChangeWatcher
from .cell_session import CellSession
from .session_factory import get_default_cell

__all__ = [
    "ComponentRegistry",
    "PlanningComponent",
    "MotionExecutionEngine",
    "MotionGoal",
    "GoalKind",
    "RetryAttempt",
    "PickPlaceWorkflow",
    "PickPoses",
    "apply_gripper_transform",
    "CellManager",
    "JointStateMonitor",
    "SceneChangeWatcher",
    "CellSession",
    "get_default_cell"
]
