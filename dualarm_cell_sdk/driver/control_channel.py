"""Robot controller command/response channel interface.

The wire protocol to the controller lives outside this package. Anything that
can answer these requests (a web-service client, a simulator, a test fake)
can drive the session.
"""

from abc import ABC, abstractmethod
from enum import Enum


class TaskState(Enum):
    """Execution sub-state reported by one motion-group task of the controller program."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"      # streaming routine active
    UNDEFINED = "undefined"  # known first-run anomaly, requires a program restart


class IControlChannel(ABC):
    """Request/response transport to the robot controller.

    Each call is one request/response cycle. Implementations are expected to
    bound their own I/O time.
    """

    @abstractmethod
    def is_connected(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def is_auto_mode(self) -> bool:
        """
        :return: bool, True when the controller operating mode is automatic
        """

    @abstractmethod
    def is_program_running(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def get_task_state(self, task_id: str) -> TaskState:
        """
        :param task_id, str: motion-group task name
        :return: TaskState
        """

    @abstractmethod
    def send_signal(self, signal_name: str) -> bool:
        """
        :param signal_name, str: digital signal to pulse
        :return: bool, True if the controller accepted the signal
        """

    @abstractmethod
    def start_program(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def stop_program(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def reset_program_pointer(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def set_motors_on(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def set_motors_off(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def is_motor_on(self) -> bool:
        """
        :return: bool
        """

    @abstractmethod
    def calibrate_grippers(self) -> bool:
        """
        Calibrate both grippers. The grippers are assumed closed.

        :return: bool
        """

    @abstractmethod
    def set_gripper_hold_force(self, force: float) -> bool:
        """
        :param force, float: hold force applied to both grippers (N)
        :return: bool
        """
