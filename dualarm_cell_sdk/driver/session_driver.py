"""Controller session driver.

Brings the robot controller from an unknown boot state into streaming mode and
mediates every later mode switch. All controller access goes through an
:class:`~dualarm_cell_sdk.driver.control_channel.IControlChannel`.

Typical start-up::

    driver = SessionDriver(channel)
    driver.connect()              # blocks until the controller answers
    driver.verify_auto_mode()     # PreconditionError if the key switch is in manual
    driver.ensure_idle()          # stop a program left running
    driver.start()                # motors on, program started, tasks idle
    driver.enter_streaming_mode() # both motion groups accept streamed commands
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from omegaconf import DictConfig

from .control_channel import IControlChannel, TaskState
from ..errors import (ControllerConnectionError, ModeError, PreconditionError,
                      StartError)
from ..utils.config import load_cell_config
from ..utils.logger import BeautyLogger
from ..utils.polling import poll_until

logger = BeautyLogger(log_dir="./logs", log_name="session.log", verbose=True)


class SessionPhase(Enum):
    """Handshake progress of the driver."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTO_MODE_VERIFIED = "auto_mode_verified"
    IDLE = "idle"
    STREAMING = "streaming"


class ControllerMode(Enum):
    """Top-level execution mode of the controller program."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    UNDEFINED = "undefined"


@dataclass
class ControllerSession:
    """Live handshake state, mutated only by :class:`SessionDriver`."""
    connected: bool = False
    auto_mode: bool = False
    program_running: bool = False
    current_mode: ControllerMode = ControllerMode.IDLE
    motors_on: bool = False
    phase: SessionPhase = SessionPhase.DISCONNECTED
    first_start: bool = True


class SessionDriver:
    def __init__(self,
                 channel: IControlChannel,
                 config: Optional[DictConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        :param channel, IControlChannel: transport to the robot controller
        :param config, DictConfig|None: cell configuration, packaged defaults if None
        :param sleep, Callable: sleep function used for every wait
        """
        self.channel = channel
        self.config = config if config is not None else load_cell_config()
        self.session = ControllerSession()

        self._timing = self.config.timing
        self._tasks = list(self.config.controller.tasks)
        self._start_signal = self.config.controller.stream_start_signal
        self._stop_signal = self.config.controller.stream_stop_signal
        self._sleep = sleep
        # Mode transitions may be requested from service threads; the undefined-state
        # recovery re-enters start() and enter_streaming_mode() on the same thread.
        self._lock = threading.RLock()

    def __repr__(self):
        return f"<SessionDriver phase={self.session.phase.value} mode={self.session.current_mode.value}>"

    @property
    def is_streaming(self) -> bool:
        return self.session.phase == SessionPhase.STREAMING

    # ------------------------------------------------------------------ handshake

    def connect(self, retry_interval: Optional[float] = None, timeout: Optional[float] = None) -> bool:
        """
        Block until the controller reports a connection.

        The default never gives up. A ``timeout`` turns this into a bounded wait.

        :param retry_interval, float|None: seconds between connection checks
        :param timeout, float|None: give up after this many seconds
        :return: bool, always True
        :raises ControllerConnectionError: the bounded wait expired
        """
        interval = self._timing.connect_retry_interval if retry_interval is None else retry_interval
        logger.module("[session] Connecting to robot controller...")

        def _on_retry(attempt: int):
            logger.warning(f"[session] Connection failed (attempt {attempt}). "
                           "Check the robot controller is connected. Retrying...")

        connected = poll_until(self.channel.is_connected,
                               interval=interval,
                               timeout=timeout,
                               on_retry=_on_retry,
                               sleep=self._sleep)
        if not connected:
            logger.error(f"[session] No connection to robot controller within {timeout}s")
            raise ControllerConnectionError(f"Robot controller not reachable within {timeout}s")

        self.session.connected = True
        if self.session.phase == SessionPhase.DISCONNECTED:
            self.session.phase = SessionPhase.CONNECTED
        logger.success("[session] Successfully connected to robot controller")
        return True

    def verify_auto_mode(self) -> bool:
        """
        :return: bool, always True
        :raises PreconditionError: controller not connected or not in automatic mode
        """
        self._require_connected()
        logger.info("[session] Checking if robot controller is in auto mode...")
        if not self.channel.is_auto_mode():
            self.session.auto_mode = False
            logger.error("[session] Robot controller must be in auto mode")
            raise PreconditionError("Robot controller is not in automatic operating mode")

        self.session.auto_mode = True
        if self.session.phase == SessionPhase.CONNECTED:
            self.session.phase = SessionPhase.AUTO_MODE_VERIFIED
        logger.info("[session] Robot controller confirmed in auto mode")
        return True

    def ensure_idle(self) -> bool:
        """
        Stop the controller program if it is executing.

        :return: bool, always True
        :raises PreconditionError: the program keeps running after the stop request
        """
        self._require_connected()
        with self._lock:
            logger.info("[session] Checking if controller program is running...")
            if self.channel.is_program_running():
                logger.warning("[session] Controller program should not be running during "
                               "initialization. Stopping it...")
                self.channel.stop_program()
                self._sleep(self._timing.stop_program_wait)
                if self.channel.is_program_running():
                    self.session.program_running = True
                    logger.error("[session] Unable to stop controller program")
                    raise PreconditionError("Controller program could not be stopped")

            self.session.program_running = False
            self.session.current_mode = ControllerMode.IDLE
            self.session.phase = SessionPhase.IDLE
            logger.info("[session] Controller program confirmed not running")
            return True

    def start(self, idle_timeout: Optional[float] = None) -> bool:
        """
        Switch motors on, start the controller program and wait until both
        motion-group tasks are idle.

        The very first start of the process runs start, stop and reset before
        the real start. Without it the motor-enable path leaves the program in
        a state that rejects streaming.

        :param idle_timeout, float|None: bound on the wait for idle tasks, None waits forever
        :return: bool, always True
        :raises StartError: program pointer reset failed, the program did not start
            or the tasks did not become idle within ``idle_timeout``
        """
        with self._lock:
            logger.module("[session] Starting controller program")

            logger.info("[session] Checking if motors are on...")
            if not self.channel.is_motor_on():
                if not self.channel.set_motors_on():
                    logger.warning("[session] Not able to turn on motors")
            self.session.motors_on = self.channel.is_motor_on()
            if self.session.motors_on:
                logger.info("[session] Motors are on")

            if not self.session.first_start:
                logger.info("[session] Resetting program pointer...")
                if not self.channel.reset_program_pointer():
                    logger.error("[session] Not able to reset program pointer")
                    raise StartError("Program pointer could not be reset")
                logger.info("[session] Program pointer successfully reset")
            else:
                logger.info("[session] First start, running start/stop/reset sequence")
                self.channel.start_program()
                self._sleep(self._timing.first_start_step_delay)
                self.channel.stop_program()
                self._sleep(self._timing.first_start_step_delay)
                self.channel.reset_program_pointer()

            self.channel.start_program()
            if not self.channel.is_program_running():
                self.session.program_running = False
                logger.warning("[session] Unable to start controller program")
                raise StartError("Controller program did not start")
            self.session.program_running = True
            logger.info("[session] Controller program started")

            # Give the program time to leave its initialization routine
            self._sleep(self._timing.start_init_delay)
            if not self.wait_until_idle(timeout=idle_timeout):
                logger.error("[session] Motion-group tasks did not become idle after program start")
                raise StartError("Motion-group tasks did not become idle after program start")

            self.session.first_start = False
            self.session.current_mode = ControllerMode.IDLE
            self.session.phase = SessionPhase.IDLE
            logger.success("[session] Controller program idle")
            return True

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every motion-group task reports ``IDLE``.

        :param timeout, float|None: None waits forever
        :return: bool, False if the timeout expired first
        """
        return poll_until(lambda: self._all_tasks_in(TaskState.IDLE),
                          interval=self._timing.idle_poll_interval,
                          timeout=timeout,
                          sleep=self._sleep)

    # ------------------------------------------------------------------ modes

    def enter_streaming_mode(self) -> bool:
        """
        Switch the controller program to streaming mode.

        If a task reports ``UNDEFINED`` (seen on the first run after a
        controller restart) the program is restarted and the switch retried
        once. A second ``UNDEFINED`` is fatal.

        :return: bool, always True
        :raises ModeError: the controller did not reach streaming mode
        """
        return self._enter_streaming(recovery_allowed=True)

    def _enter_streaming(self, recovery_allowed: bool) -> bool:
        with self._lock:
            if self.session.phase == SessionPhase.STREAMING:
                logger.info("[session] Already in streaming mode")
                return True
            if self.session.phase != SessionPhase.IDLE:
                raise ModeError(f"Streaming mode can only be entered from idle, "
                                f"current phase is '{self.session.phase.value}'")
            if not self.channel.is_program_running():
                self.session.program_running = False
                logger.error("[session] Unable to change mode, please confirm the controller program is running")
                raise ModeError("Controller program is not running")

            if not self.wait_until_idle(timeout=self._timing.mode_idle_timeout):
                logger.error("[session] Motion-group tasks did not become idle")
                raise ModeError("Motion-group tasks did not become idle")

            logger.module("[session] Entering streaming mode...")
            self.session.current_mode = ControllerMode.INITIALIZING
            if not self.channel.send_signal(self._start_signal):
                self.session.current_mode = ControllerMode.IDLE
                logger.error("[session] Stream start signal rejected")
                raise ModeError("Stream start signal rejected by the controller")

            poll_until(lambda: self._all_tasks_in(TaskState.RUNNING) or self._any_task_in(TaskState.UNDEFINED),
                       interval=self._timing.idle_poll_interval,
                       timeout=self._timing.stream_confirm_timeout,
                       sleep=self._sleep)
            states = self._task_states()
            if TaskState.UNDEFINED not in states.values():
                if not all(s == TaskState.RUNNING for s in states.values()):
                    self.session.current_mode = ControllerMode.IDLE
                    logger.error(f"[session] Unable to start streaming mode, task states: {self._fmt(states)}")
                    raise ModeError(f"Streaming mode not confirmed, task states: {self._fmt(states)}")
                # The undefined state can show up right after the routine starts
                self._sleep(self._timing.stream_settle_delay)
                states = self._task_states()

            if TaskState.UNDEFINED in states.values():
                self.session.current_mode = ControllerMode.UNDEFINED
                if not recovery_allowed:
                    logger.error("[session] Execution state still UNDEFINED after program restart")
                    raise ModeError("Execution state UNDEFINED after program restart")
                logger.warning("[session] Known issue, execution state is UNDEFINED. Restarting controller program")
                self._restart_after_undefined()
                return self._enter_streaming(recovery_allowed=False)

            if not all(s == TaskState.RUNNING for s in states.values()):
                self.session.current_mode = ControllerMode.IDLE
                logger.error(f"[session] Streaming mode lost, task states: {self._fmt(states)}")
                raise ModeError(f"Streaming mode lost, task states: {self._fmt(states)}")

            self.session.current_mode = ControllerMode.STREAMING
            self.session.phase = SessionPhase.STREAMING
            logger.success("[session] Controller in streaming mode")
            return True

    def _restart_after_undefined(self):
        delay = self._timing.undefined_recovery_delay
        self.channel.stop_program()
        self._sleep(delay)
        self.channel.reset_program_pointer()
        self._sleep(delay)
        self.session.program_running = False
        self.session.phase = SessionPhase.IDLE
        try:
            self.start(idle_timeout=self._timing.mode_idle_timeout)
        except StartError as e:
            raise ModeError(f"Restart after UNDEFINED execution state failed: {e}") from e
        self._sleep(delay)

    def return_to_idle(self) -> bool:
        """
        Leave streaming mode.

        :return: bool, False if the controller rejected the stop signal
        """
        with self._lock:
            if not self.channel.send_signal(self._stop_signal):
                logger.warning("[session] Unable to stop streaming execution")
                return False
            self.session.current_mode = ControllerMode.IDLE
            if self.session.phase == SessionPhase.STREAMING:
                self.session.phase = SessionPhase.IDLE
            logger.info("[session] Streaming mode stopped")
            return True

    def request_motors_off(self) -> bool:
        """
        Switch the motors off and verify they are off.

        :return: bool, False if the request failed or could not be verified
        """
        if not self.channel.set_motors_off():
            logger.warning("[session] Motors-off request rejected")
            return False
        if self.channel.is_motor_on():
            self.session.motors_on = True
            logger.warning("[session] Unable to verify motors are off")
            return False
        self.session.motors_on = False
        logger.info("[session] Motors are off")
        return True

    def refresh(self) -> ControllerSession:
        """
        Re-read the controller flags into :attr:`session`.

        :return: ControllerSession
        """
        self.session.connected = self.channel.is_connected()
        if self.session.connected:
            self.session.auto_mode = self.channel.is_auto_mode()
            self.session.program_running = self.channel.is_program_running()
            self.session.motors_on = self.channel.is_motor_on()
        return self.session

    # ------------------------------------------------------------------ helpers

    def _require_connected(self):
        if not self.session.connected:
            raise PreconditionError("Robot controller not connected, call connect() first")

    def _task_states(self) -> Dict[str, TaskState]:
        return {task: self.channel.get_task_state(task) for task in self._tasks}

    def _all_tasks_in(self, state: TaskState) -> bool:
        return all(self.channel.get_task_state(task) == state for task in self._tasks)

    def _any_task_in(self, state: TaskState) -> bool:
        return any(self.channel.get_task_state(task) == state for task in self._tasks)

    @staticmethod
    def _fmt(states: Dict[str, TaskState]) -> str:
        return ", ".join(f"{task}={state.value}" for task, state in states.items())
