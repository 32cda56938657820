"""Utility modules for News Dialogue."""

from .logging_config import setup_logging, get_logger, log_operation, LoggingAdapter

__all__ = [
    'setup_logging',
    'get_logger',
    'log_operation',
    'LoggingAdapter',
]
