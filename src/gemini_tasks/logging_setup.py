# src/gemini_tasks/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

APP_LOGGER = "gemini_tasks"
LOG_FILE_NAME = "gemini_tasks.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"

# Library loggers and the level they keep regardless of the root level.
# httpx logs one INFO line per request, which is what the file wants.
LIBRARY_LEVELS = {
    "httpx": logging.INFO,
    "httpcore": logging.WARNING,
}


class AppOnlyConsoleFilter(logging.Filter):
    """Console shows our own records; libraries and warnings only at ERROR+."""

    def __init__(self, app_logger: str = APP_LOGGER) -> None:
        super().__init__()
        self._prefix = app_logger + "."

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(self._prefix):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/gemini_tasks",
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console on stderr (filtered, so the REPL stays readable) plus a full
    DEBUG log file under `log_dir`. Re-running replaces earlier handlers.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(AppOnlyConsoleFilter())
    root.addHandler(console)

    log_to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    log_to_file.setLevel(file_level)
    log_to_file.setFormatter(fmt)
    root.addHandler(log_to_file)

    logging.captureWarnings(True)
    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
