# controller/event_workers.py

"""
Background workers that observe external state and raise coordination flags.
"""

import threading
from typing import Callable, Hashable, List, Optional, Sequence

from .component_registry import ComponentRegistry
from ..utils.logger import BeautyLogger

logger = BeautyLogger(log_dir="./logs", log_name="workers.log", verbose=True)


class JointStateMonitor:
    """Tracks joint-state messages and flags when live data arrives.

    A streaming interface publishes all-zero positions until the controller
    sends real feedback, so the robot counts as ready once any position is
    non-zero.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._positions: Optional[List[float]] = None

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def feed(self, positions: Sequence[float]):
        with self._lock:
            self._positions = [float(p) for p in positions]
        if not self._ready.is_set() and any(p != 0 for p in positions):
            logger.info("[joint_state] Live joint states received")
            self._ready.set()

    def latest(self) -> Optional[List[float]]:
        with self._lock:
            return None if self._positions is None else list(self._positions)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def reset(self):
        with self._lock:
            self._positions = None
        self._ready.clear()


class SceneChangeWatcher:
    def __init__(self,
                 registry: ComponentRegistry,
                 scene_version: Callable[[], Hashable],
                 interval: float = 0.1):
        """
        Poll a scene version and request a replan on every component when it changes.

        :param registry, ComponentRegistry: shared registry (not a copy)
        :param scene_version, Callable: returns a value that changes whenever the scene changes
        :param interval, float: polling interval (s)
        """
        self.registry = registry
        self.scene_version = scene_version
        self.interval = interval

        self._last_version = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check_once(self) -> bool:
        """
        :return: bool, True if the scene changed since the last check
        """
        version = self.scene_version()
        if self._last_version is None:
            self._last_version = version
            return False
        if version == self._last_version:
            return False
        self._last_version = version
        logger.info(f"[scene] Scene changed (version {version}), requesting replan")
        self.registry.request_replan()
        return True

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            logger.info("[scene] Scene watcher already running")
            return
        self._stop_event.clear()
        self._last_version = self.scene_version()
        self._thread = threading.Thread(target=self._loop, name="scene-watcher", daemon=True)
        self._thread.start()
        logger.info("[scene] Scene watcher started")

    def stop(self, timeout: float = 2.0):
        if self._thread is None:
            return
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("[scene] Scene watcher stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.check_once()
            except Exception as e:
                logger.error(f"[scene] Scene watcher stopped after error: {e}")
                break
