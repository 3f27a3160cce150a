"""
Tests for the grip action server and client.
"""

import threading

import pytest

from dualarm_cell_sdk.gripper import GripActionServer, GripClient, TaskStatus

from fakes import FakeGripHardware, FakePlanningService, no_sleep


@pytest.fixture
def hardware():
    return FakeGripHardware(FakePlanningService(), "left_arm")


@pytest.fixture
def server(hardware, config):
    server = GripActionServer("left", hardware, config, sleep=no_sleep)
    server.start()
    yield server
    server.shutdown()


class TestGoals:

    @pytest.mark.parametrize("value", [50, 1, 99, -1, 101, True, "100"])
    def test_unsupported_value_rejected(self, server, hardware, value):
        assert server.send_goal(value) is None
        assert hardware.calls == []

    def test_close(self, server, hardware):
        task = server.send_goal(100)
        assert task.wait(2.0)
        assert task.status == TaskStatus.SUCCEEDED
        assert task.result == 100
        assert task.feedback == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
        assert hardware.calls == ["grip_in"]
        assert hardware.planner.gripper_closed("left_arm")

    def test_open(self, server, hardware):
        task = server.send_goal(0)
        assert task.wait(2.0)
        assert task.status == TaskStatus.SUCCEEDED
        assert task.feedback[-1] == 100
        assert hardware.calls == ["grip_out"]

    def test_feedback_callback(self, server):
        seen = []
        task = server.send_goal(100, on_feedback=lambda t, pct: seen.append((t.task_id, pct)))
        task.wait(2.0)
        assert [pct for _, pct in seen] == task.feedback
        assert {tid for tid, _ in seen} == {task.task_id}

    def test_goals_run_in_order(self, server, hardware):
        first = server.send_goal(100)
        second = server.send_goal(0)
        assert second.wait(2.0) and first.done
        assert hardware.calls == ["grip_in", "grip_out"]

    def test_program_not_running_aborts(self, server, hardware):
        hardware.program_running = False
        task = server.send_goal(100)
        assert task.wait(2.0)
        assert task.status == TaskStatus.ABORTED
        assert task.result == 0
        assert hardware.calls == []

    def test_rejected_command_aborts(self, config):
        class RejectingHardware(FakeGripHardware):
            def grip_in(self):
                super().grip_in()
                return False

        server = GripActionServer("left", RejectingHardware(), config, sleep=no_sleep)
        server.start()
        try:
            task = server.send_goal(100)
            assert task.wait(2.0)
            assert task.status == TaskStatus.ABORTED
            assert task.feedback == []
        finally:
            server.shutdown()

    def test_not_started(self, hardware, config):
        server = GripActionServer("left", hardware, config, sleep=no_sleep)
        with pytest.raises(RuntimeError):
            server.send_goal(100)


class TestCancel:

    def test_cancel_during_execution(self, server):
        def cancel_at_30(task, pct):
            if pct == 30:
                task.cancel()

        task = server.send_goal(100, on_feedback=cancel_at_30)
        assert task.wait(2.0)
        assert task.status == TaskStatus.CANCELLED
        assert task.feedback == [10, 20, 30]
        assert task.result == 30

    def test_cancel_before_execution(self, server, hardware):
        entered = threading.Event()
        release = threading.Event()

        def hold(task, pct):
            entered.set()
            release.wait(2.0)

        first = server.send_goal(100, on_feedback=hold)
        assert entered.wait(2.0)
        second = server.send_goal(0)
        second.cancel()
        release.set()

        assert second.wait(2.0)
        assert first.status == TaskStatus.SUCCEEDED
        assert second.status == TaskStatus.CANCELLED
        assert second.result == 0
        assert hardware.calls == ["grip_in"]

    def test_cancel_after_completion_is_ignored(self, server):
        task = server.send_goal(0)
        task.wait(2.0)
        task.cancel()
        assert task.status == TaskStatus.SUCCEEDED
        assert not task.cancel_requested


class TestLifecycle:

    def test_start_twice(self, server):
        server.start()
        assert server.is_running()

    def test_shutdown(self, server):
        server.shutdown()
        assert not server.is_running()
        with pytest.raises(RuntimeError):
            server.send_goal(100)


class TestClient:

    def test_perform_grip_waits(self, server):
        task = GripClient(server).perform_grip(100)
        assert task.done
        assert task.status == TaskStatus.SUCCEEDED

    def test_perform_grip_rejected(self, server):
        assert GripClient(server).perform_grip(42) is None

    def test_perform_grip_without_wait(self, server):
        task = GripClient(server).perform_grip(0, wait=False)
        assert task.wait(2.0)
