import pytest

from dualarm_cell_sdk.controller import CellManager, JointStateMonitor
from dualarm_cell_sdk.driver import SessionDriver
from dualarm_cell_sdk.errors import PreconditionError, StartError

from fakes import FakeControlChannel, no_sleep


@pytest.fixture
def monitor():
    return JointStateMonitor()


@pytest.fixture
def manager(driver, monitor, config):
    return CellManager(driver, monitor, config, sleep=no_sleep)


class TestBringUp:

    def test_init_stops_running_program(self, manager, channel):
        channel.program_running = True
        assert manager.init() is True
        assert "stop_program" in channel.call_names()
        assert not channel.program_running

    def test_init_manual_mode(self, manager, channel):
        channel.auto_mode = False
        with pytest.raises(PreconditionError):
            manager.init()

    def test_bring_up(self, manager, channel):
        assert manager.bring_up() is True
        assert manager.is_ready()
        assert "calibrate_grippers" in channel.call_names()
        assert channel.hold_force == 20

    def test_start_failure_propagates(self, manager, channel):
        channel.startable = False
        with pytest.raises(StartError):
            manager.bring_up()
        assert not manager.is_ready()

    def test_configure_requires_running_program(self, manager, channel):
        manager.init()
        assert manager.configure() is False
        assert "calibrate_grippers" not in channel.call_names()
        assert not manager.is_ready()

    def test_configure_calibration_failure(self, manager, channel):
        channel.calibrate_ok = False
        assert manager.bring_up() is False
        assert channel.hold_force is None
        assert not manager.is_ready()


class TestServices:

    def test_start_streaming_reports_failure(self, manager, channel):
        manager.init()
        # controller program not started yet
        assert manager.start_streaming() is False
        assert ("send_signal", "EGM_START_JOINT") not in channel.calls

    def test_start_and_stop_streaming(self, manager, driver):
        manager.bring_up()
        assert manager.start_streaming() is True
        assert driver.is_streaming
        assert manager.stop_streaming() is True
        assert not driver.is_streaming

    def test_stop_motors(self, manager, channel):
        manager.bring_up()
        assert channel.motors_on
        assert manager.stop_motors() is True
        assert not channel.motors_on

    def test_stop_motors_unverified(self, manager, channel):
        manager.bring_up()
        channel.motors_off_verifiable = False
        assert manager.stop_motors() is False


class TestActivate:

    def test_activate(self, manager, monitor, driver):
        manager.bring_up()
        monitor.feed([0.1] * 7)
        assert manager.activate(timeout=1.0) is True
        assert driver.is_streaming

    def test_activate_retries_streaming_once(self, manager, monitor, channel):
        manager.bring_up()
        monitor.feed([0.1] * 7)
        channel.signal_failures = 1

        assert manager.activate(timeout=1.0) is True
        assert channel.calls.count(("send_signal", "EGM_START_JOINT")) == 2

    def test_activate_gives_up_after_retry(self, manager, monitor, channel):
        manager.bring_up()
        monitor.feed([0.1] * 7)
        channel.signal_failures = 2

        assert manager.activate(timeout=1.0) is False

    def test_activate_requires_ready_cell(self, manager, channel):
        assert manager.activate(timeout=0) is False
        assert "send_signal" not in channel.call_names()

    def test_activate_waits_for_live_joint_states(self, manager, monitor):
        manager.bring_up()
        monitor.feed([0.0] * 7)
        assert manager.activate(timeout=0.01) is False

    def test_activate_without_monitor(self, config):
        channel = FakeControlChannel()
        manager = CellManager(SessionDriver(channel, config, sleep=no_sleep), sleep=no_sleep)
        manager.bring_up()
        assert manager.activate(timeout=1.0) is True

    def test_terminate_streaming_session(self, manager, monitor, channel, driver):
        manager.bring_up()
        monitor.feed([0.1] * 7)
        manager.activate(timeout=1.0)

        assert manager.terminate_streaming_session() is True
        assert ("send_signal", "EGM_STOP") in channel.calls
        assert not channel.motors_on
        assert not driver.is_streaming
