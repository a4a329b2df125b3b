"""Logging setup for NetView.

Everything logs below the ``netview`` logger. Scans, the monitoring loop and
the event bus each run on their own thread, so every line carries the thread
name; a rotating file under the data directory keeps the full DEBUG trail
while the console only shows warnings unless debug output is requested.

Usage:
    from config.logging_config import setup_logging, get_logger

    setup_logging(data_dir=Path.home() / ".netview", debug=args.debug)

    logger = get_logger(__name__)       # "netview.app.controller"
    with LogContext(logger, "start_scan 10.0.0.0 - 10.0.0.255"):
        backend.start_scan(params)
"""
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from config.constants import STORAGE

ROOT_LOGGER_NAME = 'netview'

FILE_FORMAT = '%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s'
CONSOLE_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class ConsoleFormatter(logging.Formatter):
    """Short console lines; level names are colored on a terminal."""

    LEVEL_COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, stream=None):
        super().__init__(fmt=CONSOLE_FORMAT, datefmt='%H:%M:%S')
        stream = stream if stream is not None else sys.stderr
        self.use_colors = hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname)
        if not self.use_colors or color is None:
            return super().format(record)
        # Color a copy; the same record also reaches the file handler
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _file_handler(data_dir: Path) -> RotatingFileHandler:
    data_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        data_dir / STORAGE.LOG_FILE,
        maxBytes=STORAGE.LOG_MAX_BYTES,
        backupCount=STORAGE.LOG_BACKUP_COUNT,
        encoding='utf-8',
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _console_handler(debug: bool) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    handler.setFormatter(ConsoleFormatter(sys.stderr))
    return handler


def setup_logging(
    data_dir: Optional[Path] = None,
    debug: bool = False,
    console_output: bool = True,
    log_to_file: bool = True
) -> logging.Logger:
    """Configure the ``netview`` logger.

    Safe to call again; the previous handlers are closed and replaced.

    Args:
        data_dir: Directory holding the log file. Defaults to ~/.netview/
        debug: Log at DEBUG level instead of INFO.
        console_output: Also log to stderr.
        log_to_file: Write a rotating log file in ``data_dir``.

    Returns:
        The ``netview`` logger.
    """
    if data_dir is None:
        data_dir = Path.home() / STORAGE.DATA_DIR_NAME

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.propagate = False

    if log_to_file:
        root_logger.addHandler(_file_handler(data_dir))
    if console_output:
        root_logger.addHandler(_console_handler(debug))

    root_logger.debug(
        f"Logging configured (debug={debug}, file={log_to_file}, console={console_output})"
    )
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Logger below ``netview`` for a module.

    Only the last two dotted parts of ``name`` are kept, so
    ``get_logger("app.controller")`` gives ``netview.app.controller``.
    """
    short_name = '.'.join(name.split('.')[-2:])
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{short_name}')


def log_exception(logger: logging.Logger, message: str, exc: Exception) -> None:
    """Log ``exc`` at ERROR with its traceback, prefixed by ``message``."""
    logger.error(
        f"{message}: {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={'exception_type': type(exc).__name__}
    )


class LogContext:
    """Log how long a backend command took.

    Failures are logged as warnings and re-raised.

    Example:
        >>> with LogContext(logger, "stop_monitoring"):
        ...     backend.stop_monitoring()
        # Logs: "stop_monitoring done in 3ms"
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None

    def __enter__(self) -> 'LogContext':
        self.start_time = time.perf_counter()
        self.logger.log(self.level, f"{self.operation} ...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.warning(
                f"{self.operation} failed after {elapsed_ms:.0f}ms: {exc_type.__name__}: {exc_val}"
            )
        else:
            self.logger.log(self.level, f"{self.operation} done in {elapsed_ms:.0f}ms")
        return False
