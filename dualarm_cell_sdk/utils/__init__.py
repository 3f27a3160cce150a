# utils/__init__.py

from .logger import BeautyLogger, LogLevel, beauty_print
from .polling import poll_until
from .config import load_cell_config, default_config_path, zero_delay_overrides

__all__ = [
    "BeautyLogger",
    "LogLevel",
    "beauty_print",
    "poll_until",
    "load_cell_config",
    "default_config_path",
    "zero_delay_overrides"
]
