"""
ragserve Web Application - Logging Configuration

Console output is colored per level; file output goes to one plain-text
file per UTC day (logs/app/ragserve_YYYY-MM-DD.log by default).

All loggers live under the "ragserve" hierarchy. Core modules log to
"ragserve.<component>" with the standard logging module; routers use
DebugLogger for request/response lines.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "ragserve"
PROJECT_ROOT = Path(__file__).parent.parent

_RESET = "\033[0m"
_DIM = "\033[2m"
_COMPONENT = "\033[34m"

# ANSI color per level
LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}


class ServerFormatter(logging.Formatter):
    """
    One line per record: time, level, component, message.

    Args:
        color: Emit ANSI colors (console) or an ISO UTC timestamp (files)
    """

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record):
        component = record.name.rsplit(".", 1)[-1][:12].ljust(12)
        level = record.levelname[:5].ljust(5)
        if self.color:
            stamp = datetime.now().strftime("%H:%M:%S")
            tint = LEVEL_COLORS.get(record.levelno, "")
            line = (
                f"{_DIM}{stamp}{_RESET} {tint}{level}{_RESET} "
                f"[{_COMPONENT}{component}{_RESET}] {record.getMessage()}"
            )
        else:
            now = datetime.now(timezone.utc)
            stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
            line = f"{stamp} | {level} | {component} | {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class DailyFileHandler(logging.FileHandler):
    """FileHandler that reopens on a new file whenever the UTC date changes."""

    def __init__(self, log_dir: str = "logs/app", prefix: str = "ragserve_"):
        directory = Path(log_dir)
        if not directory.is_absolute():
            directory = PROJECT_ROOT / directory
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory
        self.prefix = prefix
        self.day = self._today()
        super().__init__(self._path_for(self.day), encoding="utf-8", delay=True)

    @staticmethod
    def _today() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d")

    def _path_for(self, day: str) -> str:
        return str(self.directory / f"{self.prefix}{day}.log")

    def emit(self, record):
        day = self._today()
        if day != self.day:
            self.day = day
            if self.stream is not None:
                self.stream.close()
                self.stream = None
            self.baseFilename = self._path_for(day)
        super().emit(record)


_debug_mode = False


def set_debug_mode(enabled: bool):
    """Switch console verbosity at runtime (file output always keeps DEBUG)."""
    global _debug_mode
    _debug_mode = enabled
    level = logging.DEBUG if enabled else logging.INFO
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    for handler in root.handlers:
        if not isinstance(handler, DailyFileHandler):
            handler.setLevel(level)
    if enabled:
        get_logger("config").info("Debug mode ENABLED - prompts and completions are logged")


def is_debug_mode() -> bool:
    return _debug_mode


def setup_logging(debug: bool = False, log_to_file: bool = True, log_dir: str = "logs/app"):
    """
    Configure the "ragserve" logger tree.

    Args:
        debug: DEBUG level on the console instead of INFO
        log_to_file: Also write daily files under ``log_dir``
        log_dir: Log directory, relative paths resolve against the project root
    """
    global _debug_mode
    _debug_mode = debug
    level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    while root.handlers:
        root.handlers.pop().close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ServerFormatter(color=True))
    console.setLevel(level)
    root.addHandler(console)

    if log_to_file:
        try:
            daily = DailyFileHandler(log_dir)
        except OSError as e:
            root.warning(f"File logging disabled: {e}")
        else:
            daily.setFormatter(ServerFormatter(color=False))
            daily.setLevel(logging.DEBUG)
            root.addHandler(daily)

    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


# ============================================================================
# Request-flow logging
# ============================================================================

class DebugLogger:
    """Per-router logger with key=value helpers for request flow."""

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(name)

    @staticmethod
    def _kv(fields) -> str:
        return " ".join(f"{k}={v}" for k, v in fields.items())

    def request(self, method: str, path: str, **fields):
        self.logger.info(f"-> {method} {path} {self._kv(fields)}".rstrip())

    def response(self, status: int, **fields):
        self.logger.info(f"<- {status} {self._kv(fields)}".rstrip())

    def rag(self, action: str, **fields):
        self.logger.debug(f"rag.{action} {self._kv(fields)}")

    def store(self, action: str, **fields):
        self.logger.debug(f"store.{action} {self._kv(fields)}")

    def error(self, msg: str, exc: Optional[BaseException] = None):
        if exc is None:
            self.logger.error(msg)
        else:
            self.logger.error(f"{msg}: {exc}", exc_info=exc)

    def warning(self, msg: str):
        self.logger.warning(msg)

    def info(self, msg: str):
        self.logger.info(msg)

    def debug(self, msg: str):
        self.logger.debug(msg)
