"""Motion planning / kinematics service interface.

The planner owns trajectory generation, collision checking and inverse
kinematics. The motion engine only sends goals and reads back state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..utils.coord import validate_scale


@dataclass(frozen=True)
class MotionOptions:
    """Per-call options forwarded to the planner.

    ``retries`` counts extra planning attempts the planner may make on its
    own before it reports failure. ``timeout`` bounds the whole call (s):
    an implementation gives up and returns False once it expires. None
    leaves the bound to the planner.
    """
    retries: int = 0
    collision_checking: bool = True
    speed_scale: float = 1.0
    accel_scale: float = 1.0
    blocking: bool = True
    cartesian: bool = False
    path_fraction: float = 1.0
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        validate_scale("speed_scale", self.speed_scale)
        validate_scale("accel_scale", self.accel_scale)
        validate_scale("path_fraction", self.path_fraction)


class IPlanningService(ABC):
    """Goal-level access to the motion planner for named planning components."""

    @abstractmethod
    def move_to_pose(self, component_id: str, pose: Sequence[float], options: MotionOptions) -> bool:
        """
        :param component_id, str: planning component
        :param pose, Sequence[float]: end-effector target [x, y, z, qx, qy, qz, qw]
        :param options, MotionOptions: planning and execution options
        :return: bool, True if the plan was found and (for blocking calls) executed
        """

    @abstractmethod
    def move_to_state(self, component_id: str, joint_state: Sequence[float], options: MotionOptions) -> bool:
        """
        :param component_id, str: planning component
        :param joint_state, Sequence[float]: target joint values (rad)
        :param options, MotionOptions: planning and execution options
        :return: bool
        """

    @abstractmethod
    def pose_reached(self, component_id: str, pose: Sequence[float]) -> bool:
        """
        :return: bool, True when the end effector is within the planner's tolerance of ``pose``
        """

    @abstractmethod
    def state_reached(self, component_id: str, joint_state: Sequence[float]) -> bool:
        """
        :return: bool, True when the joints are within the planner's tolerance of ``joint_state``
        """

    @abstractmethod
    def current_state(self, component_id: str) -> List[float]:
        """
        :return: List[float], current joint values (rad)
        """

    @abstractmethod
    def current_pose(self, component_id: str) -> List[float]:
        """
        :return: List[float], current end-effector pose [x, y, z, qx, qy, qz, qw]
        """

    @abstractmethod
    def inverse_kinematics(self, component_id: str, pose: Sequence[float],
                           seed: Sequence[float]) -> Optional[List[float]]:
        """
        :param pose, Sequence[float]: end-effector pose
        :param seed, Sequence[float]: initial joint guess
        :return: List[float]|None, None when no solution was found
        """

    @abstractmethod
    def set_stop_signal(self, component_id: str, stop: bool) -> None:
        """
        Raise (``stop=True``) or clear the stop signal of a single-arm component.
        Motion is refused while the signal is raised.
        """

    @abstractmethod
    def gripper_closed(self, component_id: str) -> bool:
        """
        :return: bool, gripper sensor of the component reports closed
        """

    @abstractmethod
    def gripper_open(self, component_id: str) -> bool:
        """
        :return: bool, gripper sensor of the component reports open
        """
