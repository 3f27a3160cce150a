#  Copyright (C) 2024, Junjia Liu
#
#  This file is part of Rofunc.
#
#  Rofunc is licensed under the GNU General Public License v3.0.
#  You may use, distribute, and modify this code under the terms of the GPL-3.0.
#
#  Additional Terms for Commercial Use:
#  Commercial use requires sharing 50% of net profits with the copyright holder.
#  Financial reports and regular payments must be provided as agreed in writing.
#  Non-compliance results in revocation of commercial rights.
#
#  For more details, see <https://www.gnu.org/licenses/>.
#  Contact: skylark0924@gmail.com


import os
import threading
from datetime import datetime

TAG = "DualArm-Cell"


class LogLevel:
    """Console thresholds, lowest first."""
    DEBUG = 0
    INFO = 1
    MODULE = 2
    WARNING = 3
    ERROR = 4
    SUCCESS = 5


# message type -> (level, ANSI colour)
_STYLES = {
    "debug": (LogLevel.DEBUG, "1;34"),     # light blue
    "info": (LogLevel.INFO, "1;35"),       # light purple
    "module": (LogLevel.MODULE, "1;33"),   # light yellow
    "warning": (LogLevel.WARNING, "1;37"), # gray
    "error": (LogLevel.ERROR, "1;31"),     # red
    "success": (LogLevel.SUCCESS, "1;32"), # green
}


class BeautyLogger:
    def __init__(self, log_dir: str, log_name: str = 'cell.log', verbose: bool = True,
                 min_level: int = LogLevel.INFO):
        """
        Coloured console output plus a plain-text log file per module.

        Every record goes to the file. Console output is filtered by
        ``verbose`` and ``min_level``. File lines carry the thread name, since
        the session driver, the grip schedulers and the scene watcher log from
        different threads into the same files.

        Example::

            >>> from dualarm_cell_sdk.utils.logger import BeautyLogger, LogLevel
            >>> logger = BeautyLogger(log_dir="./logs", log_name="session.log", min_level=LogLevel.WARNING)
            >>> logger.module("[session] Entering streaming mode...")

        :param log_dir: directory of the log file, created if missing
        :param log_name: file name inside ``log_dir``
        :param verbose: print records to the console
        :param min_level: lowest :class:`LogLevel` printed to the console
        """
        self.log_dir = log_dir
        self.log_name = log_name
        self.log_path = os.path.join(log_dir, log_name)
        self.verbose = verbose
        self.min_level = min_level
        self._file_lock = threading.Lock()

        os.makedirs(self.log_dir, exist_ok=True)

    def __repr__(self):
        return f"<BeautyLogger {self.log_path} min_level={self.min_level}>"

    def set_min_level(self, level: int):
        """
        :param level: lowest :class:`LogLevel` printed to the console
        """
        if not LogLevel.DEBUG <= level <= LogLevel.SUCCESS:
            raise ValueError(f"Invalid log level {level}, expected LogLevel.DEBUG..LogLevel.SUCCESS")
        self.min_level = level

    def set_verbose(self, verbose: bool):
        self.verbose = verbose

    def _record(self, content, type, local_verbose):
        level, _ = _STYLES[type]
        if local_verbose and self.verbose and level >= self.min_level:
            beauty_print(content, type=type)

        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = f"{stamp} [{TAG}:{type.upper()}] ({threading.current_thread().name}) {content}\n"
        with self._file_lock:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line)

    def module(self, content, local_verbose=True):
        """
        Start of a new phase (connecting, entering streaming mode, a pick).

        :param content: message
        :param local_verbose: print this record to the console
        """
        self._record(content, "module", local_verbose)

    def info(self, content, local_verbose=True):
        self._record(content, "info", local_verbose)

    def debug(self, content, local_verbose=True):
        self._record(content, "debug", local_verbose)

    def warning(self, content, local_verbose=True):
        """
        Something failed but is retried or recovered from.

        Example::

            >>> logger.warning("[session] Not able to turn on motors")
        """
        self._record(content, "warning", local_verbose)

    def error(self, content, local_verbose=True):
        self._record(content, "error", local_verbose)

    def success(self, content, local_verbose=True):
        self._record(content, "success", local_verbose)


def beauty_print(content, type: str = None):
    """
    Print ``content`` in the colour of its message type.

    Example::

        >>> from dualarm_cell_sdk.utils.logger import beauty_print
        >>> beauty_print("Streaming mode active", type="success")

    :param content: text to print
    :param type: "debug", "info", "module", "warning", "error" or "success" (default "info")
    """
    type = "info" if type is None else type
    if type not in _STYLES:
        raise ValueError(f"Invalid message type '{type}'")
    _, colour = _STYLES[type]
    print(f"\033[{colour}m [{TAG}:{type.upper()}] {content}\033[0m")
