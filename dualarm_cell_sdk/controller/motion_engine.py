"""Motion execution engine.

Turns a :class:`MotionGoal` for a planning component into planner calls.
Three execution paths exist:

* direct: one planner call, then a reached check
* linear retry ladder: Cartesian goals with a retry budget; a failed attempt
  first looks for an equivalent joint configuration and otherwise perturbs the
  arm around its start pose before trying again
* replanning: the goal is dispatched without blocking and re-dispatched every
  time the component's ``should_replan`` signal is raised

Only one goal may be in flight per component. The registry's ``in_motion``
flag is held from dispatch until completion or cancellation.
"""

import itertools
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

import numpy as np
from omegaconf import DictConfig, OmegaConf

from .component_registry import ComponentRegistry, PlanningComponent
from .retry_strategies import equivalent_state, random_nearby_pose
from ..driver import SessionDriver
from ..errors import (ComponentBusyError, MotionError, MotionTimeoutError,
                      NotReadyError, RetryBudgetExhausted, TargetLostError)
from ..planning import IPlanningService, MotionOptions
from ..utils.config import load_cell_config
from ..utils.coord import joint_distance, validate_joint_list, validate_pose, validate_scale
from ..utils.logger import BeautyLogger

logger = BeautyLogger(log_dir="./logs", log_name="motion.log", verbose=True)

STRATEGY_DIRECT = "direct"
STRATEGY_EQUIVALENT_STATE = "equivalent_state"
STRATEGY_PERTURB_AND_RETURN = "perturb_and_return"


class GoalKind(Enum):
    POSE_TARGET = "pose"
    JOINT_TARGET = "joint"


@dataclass
class MotionGoal:
    """A pose or joint-space target plus how to get there.

    Use :meth:`pose_target` / :meth:`joint_target` rather than filling in
    ``kind`` by hand.
    """
    kind: GoalKind
    pose: Optional[List[float]] = None
    joint_state: Optional[List[float]] = None
    retry_budget: int = 0
    collision_checking: bool = True
    speed_scale: float = 1.0
    accel_scale: float = 1.0
    cartesian: bool = False
    path_fraction: float = 1.0
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.kind == GoalKind.POSE_TARGET:
            if self.pose is None or self.joint_state is not None:
                raise ValueError("A pose target needs a pose and no joint state")
            validate_pose(self.pose)
            self.pose = [float(v) for v in self.pose]
        elif self.kind == GoalKind.JOINT_TARGET:
            if self.joint_state is None or self.pose is not None:
                raise ValueError("A joint target needs a joint state and no pose")
            validate_joint_list(self.joint_state)
            self.joint_state = [float(q) for q in self.joint_state]
            if self.cartesian:
                raise ValueError("Cartesian motion requires a pose target")
        else:
            raise ValueError(f"Unknown goal kind: {self.kind}")

        if isinstance(self.retry_budget, bool) or not isinstance(self.retry_budget, int) or self.retry_budget < 0:
            raise ValueError(f"retry_budget must be a non-negative int, got {self.retry_budget}")
        validate_scale("speed_scale", self.speed_scale)
        validate_scale("accel_scale", self.accel_scale)
        validate_scale("path_fraction", self.path_fraction)
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def pose_target(cls, pose: Sequence[float], **kwargs) -> "MotionGoal":
        return cls(kind=GoalKind.POSE_TARGET, pose=list(pose), **kwargs)

    @classmethod
    def joint_target(cls, joint_state: Sequence[float], **kwargs) -> "MotionGoal":
        return cls(kind=GoalKind.JOINT_TARGET, joint_state=list(joint_state), **kwargs)

    @property
    def target(self) -> List[float]:
        return self.pose if self.kind == GoalKind.POSE_TARGET else self.joint_state

    def options(self, blocking: bool = True, retries: int = 0) -> MotionOptions:
        return MotionOptions(retries=retries,
                             collision_checking=self.collision_checking,
                             speed_scale=self.speed_scale,
                             accel_scale=self.accel_scale,
                             blocking=blocking,
                             cartesian=self.cartesian,
                             path_fraction=self.path_fraction,
                             timeout=self.timeout)


class RetryAttempt(NamedTuple):
    strategy: str
    succeeded: bool
    retries_left: int


Recompute = Callable[[MotionGoal], Optional[MotionGoal]]


class MotionExecutionEngine:
    def __init__(self,
                 driver: SessionDriver,
                 planner: IPlanningService,
                 registry: ComponentRegistry,
                 config: Optional[DictConfig] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic,
                 rng: Optional[np.random.Generator] = None):
        """
        :param driver, SessionDriver: gate for motion, the controller must be streaming
        :param planner, IPlanningService: motion planner
        :param registry, ComponentRegistry: shared component flags
        :param config, DictConfig|None: cell configuration
        :param sleep, Callable: sleep function used for every wait
        :param clock, Callable: monotonic clock for goal timeouts
        :param rng, np.random.Generator|None: random source of the retry ladder
        """
        self.driver = driver
        self.planner = planner
        self.registry = registry
        self.config = config if config is not None else load_cell_config()
        self.rng = rng if rng is not None else np.random.default_rng()

        self._timing = self.config.timing
        self._retry = self.config.retry
        self._seeds = OmegaConf.to_container(self._retry.seeds, resolve=True)
        self._sleep = sleep
        self._clock = clock

        self._lock = threading.RLock()
        self._tokens = itertools.count(1)
        self._active: Dict[str, int] = {}
        self._pending: Dict[str, MotionGoal] = {}
        self._should_stop = threading.Event()
        self.attempts: List[RetryAttempt] = []

    def __repr__(self):
        return f"<MotionExecutionEngine components={self.registry.ids()}>"

    @property
    def should_stop(self) -> bool:
        """Raised when a retry ladder ran out of budget. Callers check it before issuing further motion."""
        return self._should_stop.is_set()

    def clear_should_stop(self):
        self._should_stop.clear()

    # ------------------------------------------------------------------ entry points

    def move_to_goal(self,
                     component_id: str,
                     goal: MotionGoal,
                     replan: bool = False,
                     recompute: Optional[Recompute] = None,
                     blocking: bool = True):
        """
        Execute ``goal`` for ``component_id``.

        A non-blocking call dispatches a single planner request and returns;
        the component stays in motion until :meth:`is_in_motion` or
        :meth:`wait_for_goal` observes the goal reached, or it is cancelled.

        :param component_id, str: planning component
        :param goal, MotionGoal: target
        :param replan, bool: re-dispatch whenever the component's replan signal is raised
        :param recompute, Callable|None: called with the current goal on every replan;
            returns the new goal, or None when the target is gone. Without it the
            same goal is re-dispatched
        :param blocking, bool: wait for the motion to finish
        :raises UnknownComponentError: ``component_id`` is not registered
        :raises NotReadyError: the controller is not in streaming mode
        :raises ValueError: replanning requested for a non-blocking call
        :raises ComponentBusyError: a goal is already in flight for the component
        :raises MotionError: the goal was not reached
        """
        component = self.registry.get(component_id)
        if not self.driver.is_streaming:
            raise NotReadyError(f"Controller not in streaming mode, refusing motion for '{component_id}'")
        if replan and not blocking:
            logger.error("[motion] Replanning is only available for blocking motion")
            raise ValueError("Replanning is only available for blocking motion")

        self._reap_pending(component_id)
        if not self.registry.try_begin_motion(component_id):
            raise ComponentBusyError(f"A goal is already in flight for '{component_id}'")
        token = next(self._tokens)
        with self._lock:
            self._active[component_id] = token

        keep_in_motion = False
        try:
            if not blocking:
                self._dispatch_async(component, goal, token)
                keep_in_motion = True
            elif replan:
                self._execute_replanning(component, goal, recompute, token)
            elif goal.cartesian:
                self._execute_linear(component, goal, token)
            else:
                self._execute_direct(component, goal, token)
        finally:
            if not keep_in_motion:
                self._release(component_id, token)

    def move_to_home(self, component_id: str, retry_budget: int = 0, blocking: bool = True,
                     speed_scale: float = 1.0):
        """Joint move to the component's configured home configuration."""
        component = self.registry.get(component_id)
        if not component.home_configuration:
            raise ValueError(f"No home configuration configured for '{component_id}'")
        logger.info(f"[motion] Moving '{component_id}' home")
        goal = MotionGoal.joint_target(component.home_configuration,
                                       retry_budget=retry_budget,
                                       speed_scale=speed_scale)
        self.move_to_goal(component_id, goal, blocking=blocking)

    def linear_move_to_pose(self,
                            component_id: str,
                            pose: Sequence[float],
                            retries: int = 0,
                            collision_checking: bool = True,
                            path_fraction: float = 1.0,
                            speed_scale: float = 1.0,
                            accel_scale: float = 1.0) -> bool:
        """
        Straight-line move with the retry ladder, reported as a boolean.

        Motion failures are logged and turned into ``False``. An exhausted
        ladder still raises :attr:`should_stop`.

        :return: bool, True if the pose was reached
        """
        goal = MotionGoal.pose_target(pose,
                                      retry_budget=retries,
                                      collision_checking=collision_checking,
                                      cartesian=True,
                                      path_fraction=path_fraction,
                                      speed_scale=speed_scale,
                                      accel_scale=accel_scale)
        try:
            self.move_to_goal(component_id, goal)
        except RetryBudgetExhausted as e:
            logger.error(f"[linear] {e}")
            return False
        except MotionError as e:
            logger.warning(f"[linear] '{component_id}': {e}")
            return False
        return True

    def cancel(self, component_id: str):
        """
        Stop whatever goal is in flight for ``component_id``.

        Raises the stop signal for the component (every member of a combined
        component), clears ``in_motion``, waits for the arm to settle and then
        allows motion again.
        """
        self.registry.get(component_id)
        with self._lock:
            self._active.pop(component_id, None)
            self._pending.pop(component_id, None)
        logger.info(f"[motion] Cancelling motion of '{component_id}'")
        self._halt(component_id)

    def is_in_motion(self, component_id: str) -> bool:
        """``in_motion`` of the component, after retiring a reached non-blocking goal."""
        self._reap_pending(component_id)
        return self.registry.is_in_motion(component_id)

    def wait_for_goal(self, component_id: str, timeout: Optional[float] = None) -> bool:
        """
        Wait until a non-blocking goal of ``component_id`` is reached.

        :return: bool, False if the timeout expired first
        """
        deadline = None if timeout is None else self._clock() + timeout
        while self.is_in_motion(component_id):
            if deadline is not None and self._clock() >= deadline:
                return False
            self._sleep(self._timing.replan_poll_interval)
        return True

    # ------------------------------------------------------------------ execution paths

    def _execute_direct(self, component: PlanningComponent, goal: MotionGoal, token: int):
        cid = component.id
        logger.info(f"[motion] Moving '{cid}' to {goal.kind.value} target")
        ok = self._dispatch(cid, goal, goal.options(blocking=True, retries=goal.retry_budget))
        self._check_cancelled(cid, token)
        if not ok:
            raise MotionError(f"Planner could not execute the {goal.kind.value} target of '{cid}'")
        if not self._reached(cid, goal, settle=goal.cartesian):
            raise MotionError(f"'{cid}' did not reach its {goal.kind.value} target")
        logger.success(f"[motion] '{cid}' reached its target")

    def _execute_linear(self, component: PlanningComponent, goal: MotionGoal, token: int):
        cid = component.id
        logger.module(f"[linear] Linear move of '{cid}', retry budget {goal.retry_budget}")
        org_pose = self.planner.current_pose(cid)
        options = goal.options(blocking=True)

        retries_left = goal.retry_budget
        success = self.planner.move_to_pose(cid, goal.pose, options)
        attempts = [RetryAttempt(STRATEGY_DIRECT, success, retries_left)]

        while not success and retries_left > 0:
            self._check_cancelled(cid, token)
            retries_left -= 1
            logger.info(f"[linear] New attempt for '{cid}', {retries_left} retries left")
            self._sleep(self._retry.attempt_delay)
            strategy, success = self._retry_once(cid, goal, org_pose, options)
            attempts.append(RetryAttempt(strategy, success, retries_left))
        self.attempts = attempts
        self._check_cancelled(cid, token)

        if not success:
            if goal.retry_budget > 0:
                self._should_stop.set()
                logger.error(f"[linear] No valid solution for '{cid}' within {goal.retry_budget} attempts")
                raise RetryBudgetExhausted(
                    f"Linear move of '{cid}' failed after {goal.retry_budget} retries", attempts)
            raise MotionError(f"Linear move of '{cid}' failed")

        if not self._reached(cid, goal, settle=True):
            raise MotionError(f"'{cid}' reported success but did not reach the target pose")
        logger.success(f"[linear] '{cid}' reached the target pose")

    def _retry_once(self, cid: str, goal: MotionGoal, org_pose: Sequence[float], options: MotionOptions):
        retry = self._retry
        current = self.planner.current_state(cid)
        state = equivalent_state(self.planner, cid, org_pose, current,
                                 fixed_seeds=self._seeds,
                                 min_distance=retry.equivalent_min_distance,
                                 offset_range=retry.random_seed_offset,
                                 rng=self.rng)
        if (state is not None
                and joint_distance(state, current) > retry.state_switch_threshold
                and self.planner.move_to_state(cid, state,
                                               MotionOptions(retries=retry.equivalent_move_retries,
                                                             timeout=goal.timeout))):
            logger.info(f"[linear] Trying '{cid}' again from an equivalent joint configuration")
            self._sleep(retry.strategy_delay)
            return STRATEGY_EQUIVALENT_STATE, self.planner.move_to_pose(cid, goal.pose, options)

        logger.info(f"[linear] Fallback for '{cid}': visiting random nearby poses")
        self._sleep(retry.strategy_delay)
        perturb_options = MotionOptions(retries=retry.perturb_move_retries, timeout=goal.timeout)
        for angle_range in (retry.first_perturbation_deg, retry.second_perturbation_deg):
            nearby = random_nearby_pose(org_pose, retry.side_shift, angle_range, self.rng)
            self.planner.move_to_pose(cid, nearby, perturb_options)
        if not self.planner.move_to_pose(cid, org_pose, perturb_options):
            logger.warning(f"[linear] '{cid}' could not return to its start pose")
            return STRATEGY_PERTURB_AND_RETURN, False
        return STRATEGY_PERTURB_AND_RETURN, self.planner.move_to_pose(cid, goal.pose, options)

    def _execute_replanning(self, component: PlanningComponent, goal: MotionGoal,
                            recompute: Optional[Recompute], token: int):
        cid = component.id
        deadline = None if goal.timeout is None else self._clock() + goal.timeout
        logger.module(f"[replan] Moving '{cid}' with replanning")
        self._dispatch_or_raise(cid, goal, token)

        while not self._goal_reached(cid, goal):
            self._check_cancelled(cid, token)
            if self.registry.consume_should_replan(cid):
                logger.info(f"[replan] Scene changed, replanning '{cid}'")
                # in_motion stays held until the loop returns or raises
                self._halt(cid, release=False)
                new_goal = recompute(goal) if recompute is not None else goal
                if new_goal is None:
                    logger.warning(f"[replan] Target of '{cid}' lost, moving home")
                    self._check_cancelled(cid, token)
                    self._return_home_after_loss(component)
                    raise TargetLostError(f"Target of '{cid}' lost while replanning")
                goal = new_goal
                self._dispatch_or_raise(cid, goal, token)
                continue
            if deadline is not None and self._clock() >= deadline:
                self._halt(cid, release=False)
                raise MotionTimeoutError(f"'{cid}' did not reach its goal within {goal.timeout}s")
            self._sleep(self._timing.replan_poll_interval)

        logger.success(f"[replan] Goal of '{cid}' considered reached")

    def _return_home_after_loss(self, component: PlanningComponent):
        if not component.home_configuration:
            return
        home = MotionGoal.joint_target(component.home_configuration)
        if not self._dispatch(component.id, home, home.options(blocking=True)):
            logger.error(f"[replan] '{component.id}' could not move home")

    # ------------------------------------------------------------------ helpers

    def _dispatch(self, cid: str, goal: MotionGoal, options: MotionOptions) -> bool:
        if goal.kind == GoalKind.POSE_TARGET:
            return self.planner.move_to_pose(cid, goal.pose, options)
        return self.planner.move_to_state(cid, goal.joint_state, options)

    def _dispatch_or_raise(self, cid: str, goal: MotionGoal, token: int):
        # cancel() takes the same lock, so it either wins before the dispatch
        # or stops the goal that was just sent
        with self._lock:
            if self._active.get(cid) != token:
                raise MotionError(f"Motion of '{cid}' was cancelled")
            ok = self._dispatch(cid, goal, goal.options(blocking=False, retries=goal.retry_budget))
        if not ok:
            self._halt(cid, release=False)
            raise MotionError(f"Planner rejected the {goal.kind.value} target of '{cid}'")

    def _dispatch_async(self, component: PlanningComponent, goal: MotionGoal, token: int):
        cid = component.id
        logger.info(f"[motion] Dispatching '{cid}' without blocking")
        self._dispatch_or_raise(cid, goal, token)
        with self._lock:
            self._pending[cid] = goal

    def _goal_reached(self, cid: str, goal: MotionGoal) -> bool:
        if goal.kind == GoalKind.POSE_TARGET:
            return self.planner.pose_reached(cid, goal.pose)
        return self.planner.state_reached(cid, goal.joint_state)

    def _reached(self, cid: str, goal: MotionGoal, settle: bool) -> bool:
        if self._goal_reached(cid, goal):
            return True
        if not settle:
            return False
        self._sleep(self._timing.reached_settle_delay)
        return self._goal_reached(cid, goal)

    def _halt(self, cid: str, release: bool = True):
        leaves = self.registry.leaf_ids(cid)
        for leaf in leaves:
            self.planner.set_stop_signal(leaf, True)
        if release:
            self.registry.set_in_motion(cid, False)
        self._sleep(self._timing.replan_delay)
        for leaf in leaves:
            self.planner.set_stop_signal(leaf, False)

    def _check_cancelled(self, cid: str, token: int):
        with self._lock:
            active = self._active.get(cid) == token
        if not active:
            raise MotionError(f"Motion of '{cid}' was cancelled")

    def _release(self, cid: str, token: int):
        with self._lock:
            if self._active.get(cid) != token:
                return
            del self._active[cid]
            self._pending.pop(cid, None)
        self.registry.set_in_motion(cid, False)

    def _reap_pending(self, cid: str):
        with self._lock:
            goal = self._pending.get(cid)
            token = self._active.get(cid)
        if goal is None or token is None:
            return
        if self._goal_reached(cid, goal):
            logger.debug(f"[motion] Non-blocking goal of '{cid}' reached")
            self._release(cid, token)
