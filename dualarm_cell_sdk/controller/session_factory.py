# controller/session_factory.py

import time
from typing import Any, Callable, Dict, Hashable, Optional

import numpy as np

from .cell_session import CellSession
from .component_registry import ComponentRegistry
from .event_workers import JointStateMonitor, SceneChangeWatcher
from .motion_engine import MotionExecutionEngine
from .pick_place import PickPlaceWorkflow
from .robot_manager import CellManager
from ..driver import IControlChannel, SessionDriver
from ..gripper import GripActionServer, GripClient, GripHardware
from ..planning import IPlanningService, ISceneQuery
from ..utils.config import load_cell_config
from ..utils.logger import logger


def get_default_cell(
    channel: IControlChannel,
    planner: IPlanningService,
    scene: ISceneQuery,
    grip_hardware: Dict[str, GripHardware],
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    scene_version: Optional[Callable[[], Hashable]] = None,
    bring_up: bool = False,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[np.random.Generator] = None
) -> CellSession:
    """
    Build a CellSession: driver, registry, motion engine, pick/place workflow,
    service surface and one grip action server per gripper.

    Args:
        channel (IControlChannel): robot controller transport
        planner (IPlanningService): motion planner
        scene (ISceneQuery): object poses
        grip_hardware (Dict[str, GripHardware]): gripper per single-arm component id
        config_path (str): optional user YAML merged over the defaults
        overrides (dict): nested overrides merged last
        scene_version (Callable): if given, a scene watcher requests replans when it changes
        bring_up (bool): connect, start and configure the controller before returning
        sleep (Callable): sleep function shared by every component
        rng (np.random.Generator): random source of the retry ladder

    Returns:
        CellSession: the assembled cell
    """
    logger.module("[session] Building default cell session")
    config = load_cell_config(config_path, overrides)

    logger.info("[session] Creating component registry")
    registry = ComponentRegistry.from_config(config)
    for component_id in grip_hardware:
        if component_id not in registry:
            raise ValueError(f"Gripper given for unknown component '{component_id}'")

    logger.info("[session] Creating session driver and motion engine")
    driver = SessionDriver(channel, config, sleep=sleep)
    engine = MotionExecutionEngine(driver, planner, registry, config, sleep=sleep, rng=rng)

    logger.info(f"[session] Starting grip action servers for {list(grip_hardware)}")
    grip_servers = {cid: GripActionServer(cid, hw, config, sleep=sleep) for cid, hw in grip_hardware.items()}
    for server in grip_servers.values():
        server.start()
    grippers = {cid: GripClient(server) for cid, server in grip_servers.items()}

    workflow = PickPlaceWorkflow(engine, scene, grippers, config, sleep=sleep)
    joint_monitor = JointStateMonitor()
    manager = CellManager(driver, joint_monitor, config, sleep=sleep)

    scene_watcher = None
    if scene_version is not None:
        scene_watcher = SceneChangeWatcher(registry, scene_version, interval=config.workers.scene_poll_interval)
        scene_watcher.start()

    cell = CellSession(config=config, driver=driver, registry=registry, engine=engine,
                       workflow=workflow, manager=manager, grip_servers=grip_servers,
                       joint_monitor=joint_monitor, scene_watcher=scene_watcher)

    if bring_up:
        logger.info("[session] Bringing up the controller")
        try:
            if not manager.bring_up():
                raise RuntimeError("Cell configuration failed, check the gripper calibration")
        except Exception:
            cell.close()
            raise

    logger.success("[session] Cell session created")
    return cell
