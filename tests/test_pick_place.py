"""
Tests for pick/place pose composition and the pick and place workflows,
run against the in-memory planner with real grip action servers.
"""

import numpy as np
import pytest

from dualarm_cell_sdk.controller import PickPlaceWorkflow, apply_gripper_transform
from dualarm_cell_sdk.errors import ActuationError, TargetLostError
from dualarm_cell_sdk.gripper import GripActionServer, GripClient
from dualarm_cell_sdk.utils.config import load_cell_config, zero_delay_overrides

from fakes import FakeGripHardware, no_sleep

CUBE_POSE = [0.5, 0.1, 0.05, 0.0, 0.0, 0.0, 1.0]
CUBE_DIMS = [0.04, 0.04, 0.06]
BASE_POSE = [0.3, -0.2, 0.02, 0.0, 0.0, 0.0, 1.0]
BASE_DIMS = [0.1, 0.1, 0.04]


@pytest.fixture
def grip_hardware(planner):
    return {cid: FakeGripHardware(planner, cid) for cid in ("left_arm", "right_arm")}


@pytest.fixture
def grip_servers(grip_hardware, config):
    servers = {cid: GripActionServer(cid, hw, config, sleep=no_sleep) for cid, hw in grip_hardware.items()}
    for server in servers.values():
        server.start()
    yield servers
    for server in servers.values():
        server.shutdown()


@pytest.fixture
def workflow(engine, scene, grip_servers, config):
    scene.add("cube", CUBE_POSE, CUBE_DIMS)
    scene.add("base", BASE_POSE, BASE_DIMS)
    grippers = {cid: GripClient(server) for cid, server in grip_servers.items()}
    return PickPlaceWorkflow(engine, scene, grippers, config, sleep=no_sleep)


def home_moves(planner, cid):
    return [c for c in planner.motion_calls() if c[0] == "move_to_state" and c[1] == cid]


class TestPoses:

    def test_apply_gripper_transform(self):
        target = apply_gripper_transform(CUBE_POSE, CUBE_DIMS, 0.2)
        assert target[:2] == CUBE_POSE[:2]
        assert target[2] == pytest.approx(0.05 + 0.03 + 0.135 + 0.2)
        # flipped about x: the gripper z axis points down
        assert np.allclose(np.abs(target[3:]), [1.0, 0.0, 0.0, 0.0], atol=1e-3)

    def test_apply_gripper_transform_without_rotation(self):
        target = apply_gripper_transform(CUBE_POSE, CUBE_DIMS, 0.0, rotate=False)
        assert target[3:] == CUBE_POSE[3:]

    def test_compose_pick_poses(self, workflow):
        poses = workflow.compose_pick_poses("cube")
        assert poses.grip[2] == pytest.approx(0.215)
        assert poses.hover[2] == pytest.approx(0.415)
        assert poses.disable[2] == pytest.approx(0.265)
        assert np.allclose(poses.hover[:2], CUBE_POSE[:2])
        assert np.allclose(poses.hover[3:], poses.grip[3:])

    def test_compose_uses_first_grip_transform(self, workflow, scene):
        grip_T = np.eye(4)
        grip_T[0, 3] = 0.02
        scene.add("handle", CUBE_POSE, CUBE_DIMS, grips=[grip_T])
        poses = workflow.compose_pick_poses("handle")
        assert poses.grip[0] == pytest.approx(0.52)
        assert poses.hover[0] == pytest.approx(0.52)

    def test_compose_missing_object(self, workflow):
        with pytest.raises(TargetLostError):
            workflow.compose_pick_poses("sphere")


class TestMoveToObject:

    def test_move_above_object(self, workflow, planner):
        workflow.move_to_object("left_arm", "cube")
        target = planner.pose_calls()[-1][2]
        assert target == workflow.object_target("cube", 0.2)
        assert planner.poses["left_arm"] == target

    def test_missing_object_goes_home(self, workflow, planner, registry):
        with pytest.raises(TargetLostError):
            workflow.move_to_object("left_arm", "sphere")
        assert home_moves(planner, "left_arm")[-1][2] == registry.get("left_arm").home_configuration
        assert not registry.is_in_motion("left_arm")

    def test_replan_follows_moving_object(self, workflow, planner, scene, registry):
        moved = []

        def move_cube(cid):
            if not moved:
                moved.append(cid)
                scene.move("cube", [0.55, 0.0, 0.05, 0.0, 0.0, 0.0, 1.0])
                registry.request_replan(cid)

        planner.on_move = move_cube
        planner.unreached = 1

        workflow.move_to_object("left_arm", "cube", replan=True)

        targets = [c[2] for c in planner.pose_calls()]
        assert len(targets) == 2
        assert targets[0][0] == pytest.approx(0.5)
        assert targets[1][0] == pytest.approx(0.55)

    def test_object_removed_while_replanning(self, workflow, planner, scene, registry):
        def remove_cube(cid):
            if "cube" in scene.objects:
                scene.remove("cube")
                registry.request_replan(cid)

        planner.on_move = remove_cube
        planner.unreached = 1

        with pytest.raises(TargetLostError):
            workflow.move_to_object("left_arm", "cube", replan=True)
        assert home_moves(planner, "left_arm")

    def test_linear_move_to_missing_object(self, workflow, planner):
        assert workflow.linear_move_to_object("left_arm", "sphere", 0.1) is False
        assert home_moves(planner, "left_arm")


class TestPick:

    def test_pick_object(self, workflow, planner, grip_hardware):
        assert workflow.pick_object("left_arm", "cube") is True

        poses = workflow.compose_pick_poses("cube")
        calls = planner.pose_calls()
        assert [c[2] for c in calls] == [poses.hover, poses.grip, poses.hover]
        assert [c[3].cartesian for c in calls] == [False, True, True]
        assert not any(c[3].collision_checking for c in calls)
        assert calls[2][3].path_fraction == 0.7
        assert grip_hardware["left_arm"].calls == ["grip_out", "grip_in"]
        assert planner.gripper_closed("left_arm")

    def test_pick_fails_when_grip_pose_unreachable(self, workflow, planner, engine):
        planner.pose_policy = lambda cid, pose, opts: not opts.cartesian

        assert workflow.pick_object("left_arm", "cube") is False
        assert engine.should_stop
        assert not planner.gripper_closed("left_arm")

    def test_pick_missing_object(self, workflow, planner):
        assert workflow.pick_object("left_arm", "sphere") is False
        assert planner.pose_calls() == []

    def test_pick_raises_when_gripper_does_not_close(self, engine, scene, config, planner):
        """The gripper sensor never reports closed within the wait timeout."""
        hardware = FakeGripHardware(planner, "left_arm", moves=False)
        overrides = zero_delay_overrides()
        overrides["gripper"]["wait_timeout"] = 0.05
        cfg = load_cell_config(overrides=overrides)
        server = GripActionServer("left", hardware, cfg, sleep=no_sleep)
        server.start()
        try:
            scene.add("cube", CUBE_POSE, CUBE_DIMS)
            workflow = PickPlaceWorkflow(engine, scene, {"left_arm": GripClient(server)}, cfg, sleep=no_sleep)
            with pytest.raises(ActuationError):
                workflow.pick_object("left_arm", "cube")
        finally:
            server.shutdown()


class TestPlace:

    def test_place_object(self, workflow, planner, grip_hardware):
        planner.closed["left_arm"] = True

        assert workflow.place_object("left_arm", "base") is True

        targets = [c[2] for c in planner.pose_calls(cartesian=True)]
        assert targets == [workflow.object_target("base", 0.2),
                           workflow.object_target("base", 0.01),
                           workflow.object_target("base", 0.2)]
        assert grip_hardware["left_arm"].calls == ["grip_out", "grip_in"]
        # gripper is closed again for the next move
        assert planner.gripper_closed("left_arm")

    def test_place_retries_a_failed_leg(self, workflow, planner):
        failures = [2]

        def policy(cid, pose, opts):
            if opts.cartesian and failures[0] > 0:
                failures[0] -= 1
                return False
            return True

        planner.pose_policy = policy
        assert workflow.place_object("left_arm", "base") is True
        assert len(planner.pose_calls(cartesian=True)) == 5

    def test_place_gives_up_after_leg_attempts(self, workflow, planner, grip_hardware):
        planner.pose_policy = lambda cid, pose, opts: not opts.cartesian
        assert workflow.place_object("left_arm", "base") is False
        assert len(planner.pose_calls(cartesian=True)) == 10
        assert grip_hardware["left_arm"].calls == []


class TestGripper:

    def test_both_arms_close_together(self, workflow, planner, grip_hardware):
        workflow.grip_in("both_arms")
        assert planner.gripper_closed("left_arm") and planner.gripper_closed("right_arm")
        assert workflow.gripper_holds_object("both_arms")

    def test_missing_gripper(self, engine, scene, config):
        workflow = PickPlaceWorkflow(engine, scene, {}, config, sleep=no_sleep)
        with pytest.raises(ValueError):
            workflow.grip_in("left_arm")

    def test_non_blocking_grip(self, workflow, grip_servers, planner):
        workflow.grip_in("right_arm", blocking=False)
        grip_servers["right_arm"].shutdown()
        assert planner.gripper_closed("right_arm")
