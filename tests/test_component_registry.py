import threading

import pytest

from dualarm_cell_sdk.controller import ComponentRegistry, PlanningComponent
from dualarm_cell_sdk.errors import UnknownComponentError
from dualarm_cell_sdk.utils.config import load_cell_config


class TestFromConfig:

    def test_components_loaded(self, registry):
        assert registry.ids() == ["left_arm", "right_arm", "both_arms"]
        left = registry.get("left_arm")
        assert left.end_effector_id == "gripper_l_base"
        assert len(left.home_configuration) == 7
        assert not left.is_group
        both = registry.get("both_arms")
        assert both.is_group
        assert len(both.home_configuration) == 14

    def test_leaf_ids(self, registry):
        assert registry.leaf_ids("left_arm") == ("left_arm",)
        assert registry.leaf_ids("both_arms") == ("left_arm", "right_arm")

    def test_unknown_member_rejected(self):
        cfg = load_cell_config(overrides={"components": {"both_arms": {"members": ["left_arm", "tail"]}}})
        with pytest.raises(ValueError):
            ComponentRegistry.from_config(cfg)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            ComponentRegistry([PlanningComponent("arm"), PlanningComponent("arm")])


class TestLookup:

    def test_unknown_component(self, registry):
        with pytest.raises(UnknownComponentError) as exc:
            registry.get("tail")
        assert exc.value.component_id == "tail"
        assert isinstance(exc.value, KeyError)

    def test_contains(self, registry):
        assert "right_arm" in registry
        assert "tail" not in registry

    def test_flag_setters_reject_unknown_ids(self, registry):
        with pytest.raises(UnknownComponentError):
            registry.set_in_motion("tail", True)
        with pytest.raises(UnknownComponentError):
            registry.request_replan("left_arm", "tail")
        assert not registry.consume_should_replan("left_arm")


class TestShouldReplan:

    def test_consume_clears_flag(self, registry):
        registry.set_should_replan("left_arm")
        assert registry.consume_should_replan("left_arm") is True
        assert registry.consume_should_replan("left_arm") is False

    def test_repeated_requests_coalesce(self, registry):
        for _ in range(5):
            registry.request_replan("left_arm")
        assert registry.consume_should_replan("left_arm") is True
        assert registry.consume_should_replan("left_arm") is False

    def test_request_without_ids_flags_every_component(self, registry):
        registry.request_replan()
        assert all(registry.consume_should_replan(cid) for cid in registry.ids())

    def test_each_set_consumed_exactly_once(self, registry):
        """A producer waits for its signal to be consumed before raising the next one."""
        rounds = 200
        consumed = threading.Semaphore(0)
        seen = []

        def producer():
            for _ in range(rounds):
                registry.set_should_replan("left_arm", True)
                assert consumed.acquire(timeout=5.0)

        def consumer():
            while len(seen) < rounds:
                if registry.consume_should_replan("left_arm"):
                    seen.append(True)
                    consumed.release()

        threads = [threading.Thread(target=producer), threading.Thread(target=consumer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10.0)

        assert len(seen) == rounds
        assert registry.consume_should_replan("left_arm") is False

    def test_concurrent_writer_and_consumer(self, registry):
        """Every consume observes either a set flag or a cleared one, and no request is lost."""
        writes = 1000
        consumed = []
        done = threading.Event()

        def writer():
            for _ in range(writes):
                registry.set_should_replan("right_arm", True)
            done.set()

        def reader():
            while not done.is_set():
                consumed.append(registry.consume_should_replan("right_arm"))
            consumed.append(registry.consume_should_replan("right_arm"))

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5.0)

        assert all(isinstance(v, bool) for v in consumed)
        assert any(consumed)
        assert registry.consume_should_replan("right_arm") is False


class TestInMotion:

    def test_try_begin_is_exclusive(self, registry):
        assert registry.try_begin_motion("left_arm") is True
        assert registry.try_begin_motion("left_arm") is False
        assert registry.try_begin_motion("right_arm") is True
        registry.set_in_motion("left_arm", False)
        assert registry.try_begin_motion("left_arm") is True

    def test_only_one_thread_wins(self, registry):
        barrier = threading.Barrier(8)
        wins = []

        def contend():
            barrier.wait()
            wins.append(registry.try_begin_motion("both_arms"))

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5.0)

        assert wins.count(True) == 1
        assert registry.is_in_motion("both_arms")
