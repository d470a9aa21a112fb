"""Utility modules for the multigrid transfer package."""

from .logging_utils import (
    setup_logging, get_logger, LoggingContext, silence_logger,
    debug_logging, log_function_call, format_level, log_hierarchy
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingContext",
    "silence_logger",
    "debug_logging",
    "log_function_call",
    "format_level",
    "log_hierarchy"
]
