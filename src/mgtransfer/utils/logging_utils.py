"""Logging helpers for hierarchy construction and grid transfers."""

import logging
import sys
import time
import functools
from pathlib import Path
from typing import Optional, Union, Iterable, TYPE_CHECKING
from contextlib import contextmanager

if TYPE_CHECKING:
    from ..core.sparse_matrix import SparseMatrix

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ColoredFormatter(logging.Formatter):
    """Console formatter that colours the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # Other handlers share the record, so colour a copy
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: Union[str, int] = logging.INFO,
    format_string: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    console_output: bool = True,
    colored_console: bool = True
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level
        format_string: Custom format string
        log_file: Path to log file (optional)
        console_output: Enable console output
        colored_console: Use coloured console output
    """
    if isinstance(level, str):
        level = level.upper()
    format_string = format_string or DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        formatter_cls = ColoredFormatter if colored_console else logging.Formatter
        console_handler.setFormatter(formatter_cls(format_string))
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))
        root_logger.addHandler(file_handler)

    logging.getLogger(__name__).debug(
        f"Logging initialized: level={logging.getLevelName(root_logger.level)}, "
        f"console={console_output}, file={log_file is not None}")


def get_logger(name: str, level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Get a logger, optionally overriding its level.

    Args:
        name: Logger name (typically __name__)
        level: Optional override level for this logger
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


class LoggingContext:
    """Context manager that temporarily changes a logger's level."""

    def __init__(self, level: Union[str, int], logger_name: Optional[str] = None):
        self.new_level = level
        self.logger_name = logger_name
        self.original_level = None
        self.logger = None

    def __enter__(self) -> logging.Logger:
        self.logger = logging.getLogger(self.logger_name)
        self.original_level = self.logger.level
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.logger is not None and self.original_level is not None:
            self.logger.setLevel(self.original_level)


@contextmanager
def silence_logger(logger_name: str):
    """Temporarily silence a specific logger."""
    with LoggingContext(logging.CRITICAL + 1, logger_name) as logger:
        yield logger


@contextmanager
def debug_logging(logger_name: Optional[str] = None):
    """Temporarily enable debug logging."""
    with LoggingContext(logging.DEBUG, logger_name) as logger:
        yield logger


def log_function_call(func):
    """Decorator logging entry, exit and failures of a call with timing."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.perf_counter()
        logger.debug(f"Entering {func.__name__}")

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed_time = time.perf_counter() - start_time
            logger.error(f"Exception in {func.__name__} after {elapsed_time:.3f}s: {e}")
            raise

        elapsed_time = time.perf_counter() - start_time
        logger.debug(f"Exiting {func.__name__} (elapsed: {elapsed_time:.3f}s)")
        return result

    return wrapper


def format_level(level: 'SparseMatrix') -> str:
    """One-line description of a hierarchy level."""
    geom = level.geom
    line = (f"{level.title}: local {geom.nx}x{geom.ny}x{geom.nz}, "
            f"global {geom.gnx}x{geom.gny}x{geom.gnz}, "
            f"rows={level.local_number_of_rows}, cols={level.local_number_of_columns}, "
            f"nnz={level.local_number_of_nonzeros}")
    if geom.has_z_split:
        line += f", z split {geom.partz_nz} at pz={geom.pz}"
    return line


def log_hierarchy(levels: Iterable['SparseMatrix'],
                  logger: Optional[logging.Logger] = None,
                  level: int = logging.INFO) -> None:
    """Log one line per hierarchy level."""
    logger = logger or get_logger(__name__)
    for matrix in levels:
        logger.log(level, format_level(matrix))
