# cell_session.py (in controller/)
from typing import Dict, Optional

from omegaconf import DictConfig

from .component_registry import ComponentRegistry
from .event_workers import JointStateMonitor, SceneChangeWatcher
from .motion_engine import MotionExecutionEngine
from .pick_place import PickPlaceWorkflow
from .robot_manager import CellManager
from ..driver import SessionDriver
from ..gripper import GripActionServer


class CellSession:
    """Owns every long-lived object of one cell. Built by :func:`get_default_cell`."""

    def __init__(self,
                 config: DictConfig,
                 driver: SessionDriver,
                 registry: ComponentRegistry,
                 engine: MotionExecutionEngine,
                 workflow: PickPlaceWorkflow,
                 manager: CellManager,
                 grip_servers: Dict[str, GripActionServer],
                 joint_monitor: JointStateMonitor,
                 scene_watcher: Optional[SceneChangeWatcher] = None):
        self.config = config
        self.driver = driver
        self.registry = registry
        self.engine = engine
        self.workflow = workflow
        self.manager = manager
        self.grip_servers = grip_servers
        self.joint_monitor = joint_monitor
        self.scene_watcher = scene_watcher

    def __repr__(self):
        return f"<CellSession components={self.registry.ids()} phase={self.driver.session.phase.value}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Stop the background threads. Leaves the controller state untouched."""
        if self.scene_watcher is not None:
            self.scene_watcher.stop()
        for server in self.grip_servers.values():
            server.shutdown()
