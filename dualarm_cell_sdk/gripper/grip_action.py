"""Grip action server for one smart gripper.

Goals are executed one at a time by a scheduler thread. Every goal moves
through ``ACCEPTED -> EXECUTING -> SUCCEEDED | CANCELLED | ABORTED``.

The gripper reports no position, so progress is an estimate: 10 percent per
feedback tick at a fixed rate, about one second for a full stroke.
"""

import itertools
import queue
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from omegaconf import DictConfig

from ..utils.config import load_cell_config
from ..utils.logger import BeautyLogger

logger = BeautyLogger(log_dir="./logs", log_name="gripper.log", verbose=True)

SUPPORTED_PERCENTAGES = (0, 100)


class GripHardware(ABC):
    """Commands for a single gripper, issued through the robot controller."""

    @abstractmethod
    def grip_in(self) -> bool:
        """Close the gripper. :return: bool, True if the controller accepted the command"""

    @abstractmethod
    def grip_out(self) -> bool:
        """Open the gripper. :return: bool, True if the controller accepted the command"""

    @abstractmethod
    def is_program_running(self) -> bool:
        """The controller program must run for grip commands to execute."""


class TaskStatus(Enum):
    ACCEPTED = "accepted"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


TERMINAL_STATUSES = (TaskStatus.SUCCEEDED, TaskStatus.CANCELLED, TaskStatus.ABORTED)


class GripTask:
    """Handle of one accepted grip goal."""

    def __init__(self, task_id: int, target: int,
                 on_feedback: Optional[Callable[["GripTask", int], None]] = None):
        self.task_id = task_id
        self.target = target
        self.status = TaskStatus.ACCEPTED
        self.feedback: List[int] = []
        self.result: Optional[int] = None
        self._on_feedback = on_feedback
        self._cancel = threading.Event()
        self._done = threading.Event()

    def __repr__(self):
        return f"<GripTask id={self.task_id} target={self.target} status={self.status.value}>"

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def cancel(self):
        """Request cancellation; honoured at the next feedback tick."""
        if not self.done:
            self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        :return: bool, True if the task reached a terminal status in time
        """
        return self._done.wait(timeout)

    def _publish(self, percentage: int):
        self.feedback.append(percentage)
        if self._on_feedback is not None:
            self._on_feedback(self, percentage)

    def _finish(self, status: TaskStatus, result: int):
        self.result = result
        self.status = status
        self._done.set()


class GripActionServer:
    def __init__(self,
                 name: str,
                 hardware: GripHardware,
                 config: Optional[DictConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        :param name, str: gripper name used in log messages (e.g. "left")
        :param hardware, GripHardware: gripper commands
        :param config, DictConfig|None: cell configuration (``gripper`` section)
        :param sleep, Callable: sleep between feedback ticks
        """
        self.name = name
        self.hardware = hardware
        cfg = config if config is not None else load_cell_config()
        self._rate_hz = float(cfg.gripper.feedback_rate_hz)
        self._step = int(cfg.gripper.feedback_step)
        if self._step <= 0:
            raise ValueError(f"gripper.feedback_step must be positive, got {self._step}")
        self._sleep = sleep

        self._queue: "queue.Queue[Optional[GripTask]]" = queue.Queue()
        self._ids = itertools.count(1)
        self._worker: Optional[threading.Thread] = None
        self._running = False
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<GripActionServer {self.name} running={self.is_running()}>"

    def start(self):
        """Start the scheduler thread."""
        with self._lock:
            if self._running:
                logger.info(f"[grip:{self.name}] Action server already running")
                return
            self._running = True
            self._worker = threading.Thread(target=self._run, name=f"grip-{self.name}", daemon=True)
            self._worker.start()
        logger.info(f"[grip:{self.name}] Grip action server started")

    def shutdown(self, timeout: float = 2.0):
        """Stop the scheduler after the queued goals have been handled."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            worker = self._worker
            self._worker = None
        self._queue.put(None)
        if worker is not None and worker.is_alive():
            worker.join(timeout=timeout)
        logger.info(f"[grip:{self.name}] Grip action server stopped")

    def is_running(self) -> bool:
        return self._running and self._worker is not None and self._worker.is_alive()

    def send_goal(self, grip_percentage_closed,
                  on_feedback: Optional[Callable[[GripTask, int], None]] = None) -> Optional[GripTask]:
        """
        Queue a grip goal.

        :param grip_percentage_closed, int: 0 opens the gripper, 100 closes it
        :param on_feedback, Callable|None: called with (task, percentage) on every tick
        :return: GripTask|None, None if the value is not supported
        """
        if not self._running:
            raise RuntimeError(f"Grip action server '{self.name}' is not running")
        if isinstance(grip_percentage_closed, bool) or grip_percentage_closed not in SUPPORTED_PERCENTAGES:
            logger.error(f"[grip:{self.name}] Only values 0 and 100 are supported, "
                         f"got {grip_percentage_closed}")
            return None

        task = GripTask(next(self._ids), int(grip_percentage_closed), on_feedback)
        action = "Grip In" if task.target == 100 else "Grip Out"
        logger.info(f"[grip:{self.name}] Received goal request: {action}")
        self._queue.put(task)
        return task

    def _run(self):
        while True:
            task = self._queue.get()
            if task is None:
                break
            try:
                self._execute(task)
            except Exception as e:
                logger.error(f"[grip:{self.name}] Task {task.task_id} failed: {e}")
                task._finish(TaskStatus.ABORTED, task.feedback[-1] if task.feedback else 0)

    def _execute(self, task: GripTask):
        if task.cancel_requested:
            task._finish(TaskStatus.CANCELLED, 0)
            logger.info(f"[grip:{self.name}] Goal cancelled before execution")
            return

        task.status = TaskStatus.EXECUTING
        if not self.hardware.is_program_running():
            logger.error(f"[grip:{self.name}] Unable to grip without the controller program executing")
            task._finish(TaskStatus.ABORTED, 0)
            return

        if task.target == 100:
            logger.info(f"[grip:{self.name}] Executing Grip In")
            accepted = self.hardware.grip_in()
        else:
            logger.info(f"[grip:{self.name}] Executing Grip Out")
            accepted = self.hardware.grip_out()
        if not accepted:
            logger.error(f"[grip:{self.name}] Gripper command rejected")
            task._finish(TaskStatus.ABORTED, 0)
            return

        period = 1.0 / self._rate_hz if self._rate_hz > 0 else 0.0
        percentage = 0
        while percentage < 100:
            if task.cancel_requested:
                task._finish(TaskStatus.CANCELLED, percentage)
                logger.info(f"[grip:{self.name}] Goal cancelled at {percentage}%")
                return
            percentage = min(100, percentage + self._step)
            task._publish(percentage)
            logger.debug(f"[grip:{self.name}] Feedback {percentage}%")
            self._sleep(period)

        task._finish(TaskStatus.SUCCEEDED, percentage)
        logger.success(f"[grip:{self.name}] Goal succeeded")


class GripClient:
    """Convenience client around one :class:`GripActionServer`."""

    def __init__(self, server: GripActionServer):
        self.server = server

    def perform_grip(self, grip_percentage_closed, wait: bool = True,
                     timeout: Optional[float] = None) -> Optional[GripTask]:
        """
        :param grip_percentage_closed, int: 0 or 100
        :param wait, bool: block until the task finishes
        :param timeout, float|None: bound for the wait
        :return: GripTask|None, None if the goal was rejected
        """
        task = self.server.send_goal(grip_percentage_closed)
        if task is None:
            return None
        if wait and not task.wait(timeout):
            logger.warning(f"[grip:{self.server.name}] Grip task {task.task_id} still running after {timeout}s")
        return task
