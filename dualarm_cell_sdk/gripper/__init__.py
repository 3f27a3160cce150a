from .grip_action import (GripHardware, GripActionServer, GripClient, GripTask,
                          TaskStatus, SUPPORTED_PERCENTAGES)

__all__ = [
    "GripHardware",
    "GripActionServer",
    "GripClient",
    "GripTask",
    "TaskStatus",
    "SUPPORTED_PERCENTAGES"
]
