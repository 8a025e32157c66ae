"""
This module provides the ``RunLog`` context manager, which records every
message emitted by the ``CACSetup`` logger while a provisioning run is active.

The entries are kept in memory as an ordered, timestamped and leveled sequence
and are persisted at the same time to a plain-text log file. The command
executor appends the raw output of external tools to that file, so fatal
messages can point the operator to a single place.
"""


import logging
import time
from collections import namedtuple
from datetime import datetime
from pathlib import Path
from typing import Union

from CACSetup import logger

LogEntry = namedtuple("LogEntry", ["timestamp", "level", "message"])


def default_log_path(log_dir: Union[str, Path]) -> Path:
    """
    Returns the timestamped path of the run log inside ``log_dir``.
    """
    return Path(log_dir).joinpath(f"cac_setup_{int(time.time())}.log")


class RunLog(logging.Handler):
    """
    Logging handler collecting the entries of one run. Use it as a context
    manager: on enter it is attached to the package logger together with a
    file handler writing to ``path``; on exit both are detached.
    """
    path: Path = None
    _file_handler: logging.FileHandler = None

    def __init__(self, path: Union[str, Path], level: int = logging.DEBUG):
        super().__init__(level)
        self.path = Path(path)
        self.entries = []

    def __enter__(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handler = logging.FileHandler(self.path)
        self._file_handler.setLevel(logging.DEBUG)
        self._file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"))
        logger.addHandler(self)
        logger.addHandler(self._file_handler)
        logger.debug(f"Run log is stored in {self.path}")
        return self

    def __exit__(self, exp_type, exp_value, exp_traceback):
        logger.removeHandler(self)
        logger.removeHandler(self._file_handler)
        self._file_handler.close()

    def emit(self, record: logging.LogRecord):
        self.entries.append(LogEntry(datetime.fromtimestamp(record.created),
                                     record.levelname, record.getMessage()))

    def by_level(self, level: str) -> list:
        """
        Returns messages of the given level name (``WARNING``, ``ERROR``, ...)
        in the order they were logged.
        """
        return [e.message for e in self.entries if e.level == level.upper()]

    @property
    def warnings(self):
        return self.by_level("WARNING")

    @property
    def errors(self):
        return self.by_level("ERROR")
