"""
Dual-Arm Cell SDK
=================

Coordinates a dual-arm manipulator cell: drives the robot controller into
streaming mode, executes motion goals with retry and replanning, and runs
pick/place workflows with the smart grippers.

Start with :func:`get_default_cell`.
"""

__version__ = "0.1.0"

from .controller import (get_default_cell, CellSession, CellManager, MotionExecutionEngine,
                         MotionGoal, ComponentRegistry, PickPlaceWorkflow)
from .driver import SessionDriver, IControlChannel, TaskState
from .planning import IPlanningService, ISceneQuery, MotionOptions
from .gripper import GripActionServer, GripClient, GripHardware
from .errors import (CellError, ControllerConnectionError, PreconditionError, ModeError,
                     ActuationError, StartError, NotReadyError, MotionError,
                     RetryBudgetExhausted, UnknownComponentError)

__all__ = [
    "get_default_cell",
    "CellSession",
    "CellManager",
    "MotionExecutionEngine",
    "MotionGoal",
    "ComponentRegistry",
    "PickPlaceWorkflow",
    "SessionDriver",
    "IControlChannel",
    "TaskState",
    "IPlanningService",
    "ISceneQuery",
    "MotionOptions",
    "GripActionServer",
    "GripClient",
    "GripHardware",
    "CellError",
    "ControllerConnectionError",
    "PreconditionError",
    "ModeError",
    "ActuationError",
    "StartError",
    "NotReadyError",
    "MotionError",
    "RetryBudgetExhausted",
    "UnknownComponentError"
]
