# controller/pick_place.py

"""
Pick and place workflows built on the motion engine.

Target poses for the gripper are derived from object poses: the orientation
is flipped about the local x axis so the gripper faces the object, and the
target is raised by half the object height, the gripper length and a hover
margin.
"""

import time
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np
from omegaconf import DictConfig

from .motion_engine import MotionExecutionEngine, MotionGoal
from ..errors import ActuationError, MotionError, TargetLostError
from ..gripper import GripClient
from ..planning import ISceneQuery
from ..utils.config import load_cell_config
from ..utils.coord import matrix_to_pose, rotate_pose_local
from ..utils.logger import BeautyLogger
from ..utils.polling import poll_until

logger = BeautyLogger(log_dir="./logs", log_name="pick_place.log", verbose=True)


class PickPoses(NamedTuple):
    hover: List[float]
    disable: List[float]
    grip: List[float]


def apply_gripper_transform(pose: Sequence[float],
                            dimensions: Sequence[float],
                            hover_height: float,
                            gripper_length: float = 0.135,
                            rotate: bool = True,
                            flip_angle: float = np.pi) -> List[float]:
    """
    Gripper target for an object pose.

    :param pose, Sequence[float]: object (or grip point) pose [x, y, z, qx, qy, qz, qw]
    :param dimensions, Sequence[float]: object extents [x, y, z] (m)
    :param hover_height, float: extra clearance above the object (m)
    :param gripper_length, float: flange to finger-tip distance (m)
    :param rotate, bool: flip the orientation so the gripper points at the object
    :param flip_angle, float: flip angle about the local x axis (rad)
    :return: List[float], target pose
    """
    target = rotate_pose_local(pose, 'x', flip_angle) if rotate else [float(v) for v in pose]
    target[2] += dimensions[2] / 2.0 + gripper_length + hover_height
    return target


class PickPlaceWorkflow:
    def __init__(self,
                 engine: MotionExecutionEngine,
                 scene: ISceneQuery,
                 grippers: Dict[str, GripClient],
                 config: Optional[DictConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        :param engine, MotionExecutionEngine: executes the motion
        :param scene, ISceneQuery: object poses
        :param grippers, Dict[str, GripClient]: grip client per single-arm component id
        :param config, DictConfig|None: cell configuration
        :param sleep, Callable: sleep function
        """
        self.engine = engine
        self.scene = scene
        self.grippers = grippers
        self.config = config if config is not None else load_cell_config()
        self._gripper_cfg = self.config.gripper
        self._pp = self.config.pick_place
        self._sleep = sleep

    @property
    def planner(self):
        return self.engine.planner

    # ------------------------------------------------------------------ poses

    def object_target(self, object_id: str, hover_height: float) -> Optional[List[float]]:
        """Gripper target above the object, or None if the object is not in the scene."""
        pose = self.scene.find_object(object_id)
        if pose is None:
            return None
        dims = self.scene.object_dimensions(object_id)
        if dims is None:
            return None
        return self._to_gripper(pose, dims, hover_height)

    def compose_pick_poses(self, object_id: str) -> PickPoses:
        """
        Hover, disable and grip poses for picking ``object_id``.

        The grip point is the object's first grip transform (the object
        origin if it has none). Hover and disable keep the grip orientation
        and x/y, but start from the object height.

        :raises TargetLostError: the object is not in the scene
        """
        obj_T = self.scene.object_transform(object_id)
        object_pose = self.scene.find_object(object_id)
        dims = self.scene.object_dimensions(object_id)
        if obj_T is None or object_pose is None or dims is None:
            raise TargetLostError(f"Object '{object_id}' not found in the scene")

        grips = self.scene.grip_transforms(object_id)
        grip_T = grips[0] if len(grips) > 0 else np.eye(4)
        grip_pose = matrix_to_pose(np.asarray(obj_T) @ np.asarray(grip_T))

        hover = list(grip_pose)
        hover[2] = float(object_pose[2])
        disable = list(hover)

        return PickPoses(hover=self._to_gripper(hover, dims, self._pp.hover_height),
                         disable=self._to_gripper(disable, dims, self._pp.disable_height),
                         grip=self._to_gripper(grip_pose, dims, 0.0))

    def _to_gripper(self, pose, dims, hover_height) -> List[float]:
        return apply_gripper_transform(pose, dims, hover_height,
                                       gripper_length=self._gripper_cfg.length,
                                       flip_angle=self._gripper_cfg.flip_angle_rad)

    # ------------------------------------------------------------------ moves

    def move_to_object(self, component_id: str, object_id: str, hover_height: Optional[float] = None,
                       retries: Optional[int] = None, replan: bool = False, blocking: bool = True):
        """
        Move above ``object_id``. With ``replan`` the object pose is queried
        again every time the scene changes.

        :raises TargetLostError: the object is not (or no longer) in the scene; the arm was sent home
        """
        hover = self._pp.hover_height if hover_height is None else hover_height
        retries = self._pp.approach_retries if retries is None else retries
        logger.info(f"[pick_place] Moving '{component_id}' to object '{object_id}'")

        target = self.object_target(object_id, hover)
        if target is None:
            logger.warning(f"[pick_place] Can't find object '{object_id}', moving to home")
            self._go_home(component_id)
            raise TargetLostError(f"Object '{object_id}' not found in the scene")

        def recompute(_goal: MotionGoal) -> Optional[MotionGoal]:
            new_target = self.object_target(object_id, hover)
            return None if new_target is None else MotionGoal.pose_target(new_target, retry_budget=retries)

        goal = MotionGoal.pose_target(target, retry_budget=retries)
        self.engine.move_to_goal(component_id, goal,
                                 replan=replan,
                                 recompute=recompute if replan else None,
                                 blocking=blocking)

    def linear_move_to_object(self, component_id: str, object_id: str, hover_height: float,
                              retries: int = 0, collision_checking: bool = True,
                              path_fraction: float = 1.0) -> bool:
        """
        Straight-line move above ``object_id``.

        :return: bool, False if the object is missing (the arm is sent home) or the move failed
        """
        target = self.object_target(object_id, hover_height)
        if target is None:
            logger.warning(f"[pick_place] Can't find object '{object_id}', moving to home")
            self._go_home(component_id)
            return False
        return self.engine.linear_move_to_pose(component_id, target,
                                               retries=retries,
                                               collision_checking=collision_checking,
                                               path_fraction=path_fraction)

    def _go_home(self, component_id: str):
        self.engine.cancel(component_id)
        try:
            self.engine.move_to_home(component_id)
        except MotionError as e:
            logger.error(f"[pick_place] '{component_id}' could not move home: {e}")

    # ------------------------------------------------------------------ workflows

    def pick_object(self, component_id: str, object_id: str) -> bool:
        """
        hover -> open -> straight down to the grip pose -> close -> settle ->
        straight back up -> check the gripper holds something.

        :return: bool, True if the gripper sensor reports closed at the end
        """
        logger.module(f"[pick] Picking '{object_id}' with '{component_id}'")
        try:
            poses = self.compose_pick_poses(object_id)
        except TargetLostError as e:
            logger.warning(f"[pick] {e}")
            return False

        try:
            self.engine.move_to_goal(component_id, MotionGoal.pose_target(
                poses.hover, retry_budget=self._pp.approach_retries, collision_checking=False))
        except MotionError as e:
            logger.warning(f"[pick] Hover pose not reached: {e}")
            return False
        self.grip_out(component_id, blocking=True)

        if not self.engine.linear_move_to_pose(component_id, poses.grip,
                                               retries=self._pp.grip_retries,
                                               collision_checking=False):
            return False
        self.grip_in(component_id, blocking=True)
        self._sleep(self._gripper_cfg.settle_time)

        if not self.engine.linear_move_to_pose(component_id, poses.hover,
                                               retries=0,
                                               collision_checking=False,
                                               path_fraction=self._pp.linear_path_fraction):
            return False

        held = self.gripper_holds_object(component_id)
        if held:
            logger.success(f"[pick] '{component_id}' holds '{object_id}'")
        else:
            logger.warning(f"[pick] Gripper of '{component_id}' is not closed after the pick")
        return held

    def place_object(self, component_id: str, object_id: str) -> bool:
        """
        Place the held object on top of ``object_id``.

        Each straight-line leg (hover, down, up) is re-attempted up to
        ``pick_place.leg_attempts`` times.

        :return: bool, True if the gripper released
        """
        logger.module(f"[place] Placing on '{object_id}' with '{component_id}'")
        pp = self._pp

        if not self._leg(component_id, object_id, pp.hover_height, collision_checking=True):
            return False
        if not self._leg(component_id, object_id, pp.place_down_height, collision_checking=False):
            return False

        self.grip_out(component_id, blocking=True)
        self._sleep(self._gripper_cfg.settle_time)

        if not self._leg(component_id, object_id, pp.hover_height, collision_checking=False):
            return False

        released = all(self.planner.gripper_open(leaf) for leaf in self._leaves(component_id))
        self.grip_in(component_id, blocking=True)
        if released:
            logger.success(f"[place] '{component_id}' released the object")
        else:
            logger.warning(f"[place] Gripper of '{component_id}' did not report open after release")
        return released

    def _leg(self, component_id: str, object_id: str, height: float, collision_checking: bool) -> bool:
        attempts = self._pp.leg_attempts
        for attempt in range(1, attempts + 1):
            if self.linear_move_to_object(component_id, object_id, height,
                                          retries=0,
                                          collision_checking=collision_checking,
                                          path_fraction=self._pp.linear_path_fraction):
                return True
            logger.info(f"[place] Leg to {height:.2f} m failed (attempt {attempt}/{attempts})")
        logger.error(f"[place] Leg to {height:.2f} m failed {attempts} times")
        return False

    # ------------------------------------------------------------------ gripper

    def gripper_holds_object(self, component_id: str) -> bool:
        return all(self.planner.gripper_closed(leaf) for leaf in self._leaves(component_id))

    def grip_in(self, component_id: str, blocking: bool = True):
        """Close the gripper(s) of ``component_id``."""
        self._grip(component_id, 100, self.planner.gripper_closed, blocking)

    def grip_out(self, component_id: str, blocking: bool = True):
        """Open the gripper(s) of ``component_id``."""
        self._grip(component_id, 0, self.planner.gripper_open, blocking)

    def _grip(self, component_id: str, percentage: int, sensor: Callable[[str], bool], blocking: bool):
        leaves = self._leaves(component_id)
        for leaf in leaves:
            client = self.grippers.get(leaf)
            if client is None:
                raise ValueError(f"No gripper registered for '{leaf}'")
            client.perform_grip(percentage, wait=False)
        if not blocking:
            return

        cfg = self._gripper_cfg
        reached = poll_until(lambda: all(sensor(leaf) for leaf in leaves),
                             interval=cfg.poll_interval,
                             timeout=cfg.wait_timeout,
                             sleep=self._sleep)
        if not reached:
            action = "close" if percentage == 100 else "open"
            logger.error(f"[gripper] Gripper of '{component_id}' did not {action} within {cfg.wait_timeout}s")
            raise ActuationError(f"Gripper of '{component_id}' did not {action} within {cfg.wait_timeout}s")

    def _leaves(self, component_id: str):
        return self.engine.registry.leaf_ids(component_id)
