from .beauty_logger import BeautyLogger, LogLevel, beauty_print

# Shared logger for code paths that do not own a dedicated log file
logger = BeautyLogger(log_dir="./logs", log_name="cell.log", verbose=True)

__all__ = [
    "BeautyLogger",
    "LogLevel",
    "beauty_print",
    "logger"
]
