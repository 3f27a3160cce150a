import numpy as np
import pytest

from dualarm_cell_sdk.controller import ComponentRegistry, MotionExecutionEngine
from dualarm_cell_sdk.driver import SessionDriver
from dualarm_cell_sdk.utils.config import load_cell_config, zero_delay_overrides

from fakes import FakeControlChannel, FakePlanningService, FakeScene, no_sleep


@pytest.fixture
def config():
    """Packaged configuration with every delay set to zero."""
    return load_cell_config(overrides=zero_delay_overrides())


@pytest.fixture
def channel():
    return FakeControlChannel()


@pytest.fixture
def planner():
    return FakePlanningService()


@pytest.fixture
def scene():
    return FakeScene()


@pytest.fixture
def registry(config):
    return ComponentRegistry.from_config(config)


@pytest.fixture
def driver(channel, config):
    return SessionDriver(channel, config, sleep=no_sleep)


@pytest.fixture
def streaming_driver(driver):
    """Driver taken through the full start-up into streaming mode."""
    driver.connect()
    driver.verify_auto_mode()
    driver.ensure_idle()
    driver.start()
    driver.enter_streaming_mode()
    return driver


@pytest.fixture
def engine(streaming_driver, planner, registry, config):
    return MotionExecutionEngine(streaming_driver, planner, registry, config,
                                 sleep=no_sleep, rng=np.random.default_rng(7))
