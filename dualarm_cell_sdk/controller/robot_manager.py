# controller/robot_manager.py

"""
Operator-facing service surface of the cell: start/stop streaming, readiness,
motors off. Every service call answers with a boolean; the reasons for a
``False`` are logged.
"""

import threading
import time
from typing import Callable, Optional

from omegaconf import DictConfig

from .event_workers import JointStateMonitor
from ..driver import SessionDriver
from ..errors import ModeError, PreconditionError
from ..utils.logger import BeautyLogger
from ..utils.polling import poll_until

logger = BeautyLogger(log_dir="./logs", log_name="robot_manager.log", verbose=True)


class CellManager:
    def __init__(self,
                 driver: SessionDriver,
                 joint_monitor: Optional[JointStateMonitor] = None,
                 config: Optional[DictConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        :param driver, SessionDriver: controller session
        :param joint_monitor, JointStateMonitor|None: live joint-state feed awaited by :meth:`activate`
        :param config, DictConfig|None: cell configuration, the driver's if None
        :param sleep, Callable: sleep function
        """
        self.driver = driver
        self.joint_monitor = joint_monitor
        self.config = config if config is not None else driver.config
        self._timing = self.config.timing
        self._sleep = sleep
        self._ready = threading.Event()

    def __repr__(self):
        return f"<CellManager ready={self.is_ready()} {self.driver!r}>"

    @property
    def channel(self):
        return self.driver.channel

    # ------------------------------------------------------------------ start-up

    def init(self) -> bool:
        """
        Connect, then check the operator preconditions.

        :return: bool, always True
        :raises PreconditionError: not in auto mode, or a running program could not be stopped
        """
        logger.module("[manager] Initializing robot manager")
        self.driver.connect()
        self.driver.verify_auto_mode()
        self.driver.ensure_idle()
        return True

    def start_state_machine(self) -> bool:
        """:raises StartError: the controller program did not start"""
        return self.driver.start()

    def configure(self) -> bool:
        """
        Calibrate the grippers and set their hold force. Grippers are assumed closed.

        :return: bool, True once the cell is ready
        """
        logger.module("[manager] Configuring grippers")
        if not self.channel.is_program_running():
            logger.error("[manager] Unable to calibrate grippers without the controller program executing")
            return False

        # Submodules report INITIALIZING until they are done
        self.driver.wait_until_idle()
        logger.info("[manager] Calibrating grippers...")
        if not self.channel.calibrate_grippers():
            logger.error("[manager] Could not calibrate grippers, configuration failed")
            return False
        self._sleep(self._timing.gripper_calibration_wait)
        self.driver.wait_until_idle()
        logger.info("[manager] Grippers calibrated")

        force = self.config.controller.gripper_hold_force
        if not self.channel.set_gripper_hold_force(force):
            logger.error(f"[manager] Unable to set gripper hold force to {force}, configuration failed")
            return False

        self._ready.set()
        logger.success("[manager] Cell configured and ready")
        return True

    def bring_up(self) -> bool:
        """init, start the controller program and configure, in that order."""
        self.init()
        self.start_state_machine()
        return self.configure()

    # ------------------------------------------------------------------ services

    def start_streaming(self) -> bool:
        try:
            return self.driver.enter_streaming_mode()
        except (ModeError, PreconditionError) as e:
            logger.error(f"[manager] Start streaming failed: {e}")
            return False

    def stop_streaming(self) -> bool:
        return self.driver.return_to_idle()

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def stop_motors(self) -> bool:
        """:return: bool, True only if the motors are verified off"""
        return self.driver.request_motors_off()

    # ------------------------------------------------------------------ session

    def activate(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for readiness, enter streaming mode (one retry) and wait for live joint states.

        :param timeout, float|None: bound for each of the two waits
        :return: bool
        """
        logger.module("[manager] Activating streaming session")
        if not poll_until(self.is_ready,
                          interval=self._timing.idle_poll_interval,
                          timeout=timeout,
                          sleep=self._sleep):
            logger.error("[manager] Cell not ready, run configure() first")
            return False

        if not self.start_streaming():
            logger.warning("[manager] Retrying start of streaming mode")
            self._sleep(self._timing.activate_retry_delay)
            if not self.start_streaming():
                return False

        if self.joint_monitor is not None and not self.joint_monitor.wait_until_ready(timeout):
            logger.error("[manager] No live joint states received")
            return False
        logger.success("[manager] Streaming session active")
        return True

    def terminate_streaming_session(self) -> bool:
        """Stop streaming, then switch the motors off."""
        stopped = self.stop_streaming()
        motors_off = self.stop_motors()
        return stopped and motors_off
