from .control_channel import IControlChannel, TaskState
from .session_driver import SessionDriver, ControllerSession, ControllerMode, SessionPhase

__all__ = [
    "IControlChannel",
    "TaskState",
    "SessionDriver",
    "ControllerSession",
    "ControllerMode",
    "SessionPhase"
]
