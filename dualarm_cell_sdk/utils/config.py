# dualarm_cell_sdk/utils/config.py

import os
from typing import Any, Dict, Optional

from omegaconf import DictConfig, OmegaConf


def default_config_path(name: str = "cell") -> str:
    """
    Path of a configuration file shipped in the package ``config`` directory.
    """
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_dir, "config", f"{name}.yaml")


def load_cell_config(path: Optional[str] = None,
                     overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    """
    Load the cell configuration.

    The packaged defaults are always loaded first; a user file and then
    ``overrides`` are merged on top, so partial files only need the keys they
    change.

    :param path, str|None: optional user YAML file
    :param overrides, dict|None: nested dict merged last
    :return: DictConfig
    """
    default_path = default_config_path("cell")
    if not os.path.exists(default_path):
        raise FileNotFoundError(f"Default configuration missing: {default_path}")
    cfg = OmegaConf.load(default_path)

    if path is not None:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Configuration file not found: {path}")
        cfg = OmegaConf.merge(cfg, OmegaConf.load(path))

    if overrides:
        cfg = OmegaConf.merge(cfg, OmegaConf.create(overrides))

    return cfg


def zero_delay_overrides() -> Dict[str, Any]:
    """
    Overrides that set every wait in the ``timing``, ``retry`` and ``gripper``
    sections to zero. Used by simulations and tests that drive in-memory
    controllers.
    """
    timing_keys = OmegaConf.load(default_config_path("cell")).timing.keys()
    overrides = {"timing": {key: 0.0 for key in timing_keys}}
    overrides["retry"] = {"attempt_delay": 0.0, "strategy_delay": 0.0}
    overrides["gripper"] = {"settle_time": 0.0, "poll_interval": 0.0, "feedback_rate_hz": 0.0}
    return overrides
