"""Structured logging configuration for News Dialogue."""

import copy
import logging
import sys
from typing import Optional, TextIO
from ..config import get_settings


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(component)-10s | %(name)s | %(message)s'
FILE_LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(component)-10s | %(name)s | %(filename)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are chatty at DEBUG
NOISY_LOGGERS = ('asyncio', 'readability', 'readability.readability', 'aiohttp.access')

# Package sub-packages and the component tag their records get by default
PACKAGE_COMPONENTS = {
    'extraction': 'EXTRACTION',
    'streaming': 'STREAM',
    'services': 'DIALOGUE',
    'core': 'HTTP',
    'cli': 'CLI',
}

OPERATION_LEVELS = {
    'started': logging.INFO,
    'completed': logging.INFO,
    'failed': logging.ERROR,
    'aborted': logging.WARNING,
}


def component_for(logger_name: str) -> str:
    """Default component tag for a logger name such as ``news_dialogue.extraction.site_rules``."""
    parts = logger_name.split('.')
    if parts[0] == 'news_dialogue' and len(parts) > 1:
        parts = parts[1:]
    return PACKAGE_COMPONENTS.get(parts[0], 'APP')


class ComponentFilter(logging.Filter):
    """Make sure every record carries ``component`` and ``context`` attributes."""

    def filter(self, record):
        if not getattr(record, 'component', None):
            record.component = component_for(record.name)
        if not hasattr(record, 'context'):
            record.context = {}
        return True


class ComponentFormatter(logging.Formatter):
    """Appends the structured ``context`` of a record as ``[k=v | ...]``."""

    def format(self, record):
        message = super().format(record)
        context = getattr(record, 'context', None)
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} [{context_str}]"
        return message


class ColoredFormatter(ComponentFormatter):
    """Component formatter with ANSI colored level names for terminals."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # color a copy; the same record also reaches the file handler
        colored = copy.copy(record)
        log_color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_colors: bool = True,
    stream: Optional[TextIO] = None
) -> None:
    """
    Setup structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to
            DEBUG when ``settings.debug`` is on, otherwise ``settings.log_level``
        log_file: Optional file to log to
        use_colors: Whether to use colored output when the stream is a TTY
        stream: Console stream, stdout by default
    """
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else settings.log_level)
    stream = stream or sys.stdout

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(logging.DEBUG)
    console_handler.addFilter(ComponentFilter())

    is_tty = hasattr(stream, 'isatty') and stream.isatty()
    formatter_class = ColoredFormatter if use_colors and is_tty else ComponentFormatter
    console_handler.setFormatter(formatter_class(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(ComponentFilter())
        file_handler.setFormatter(ComponentFormatter(fmt=FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, component: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger with component-specific context.

    Args:
        name: Logger name (typically __name__)
        component: Component tag; derived from ``name`` when omitted

    Returns:
        Logger adapter that tags every record with the component
    """
    logger = logging.getLogger(name)
    return LoggingAdapter(logger, {'component': component or component_for(name)})


class LoggingAdapter(logging.LoggerAdapter):
    """Logging adapter that adds component context to all records."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs['extra'] = extra
        return msg, kwargs


def log_operation(
    logger,
    operation: str,
    status: str,
    **context
):
    """
    Log an operation status line with structured context.

    The message reads ``operation | status``; ``context`` travels on the
    record and is rendered by ``ComponentFormatter``.

    Args:
        logger: Logger or adapter instance
        operation: Operation name (e.g., 'generate_dialogue_stream', 'extract')
        status: 'started', 'completed', 'failed', 'aborted'; anything else logs at DEBUG
        **context: Additional context key-value pairs
    """
    level = OPERATION_LEVELS.get(status, logging.DEBUG)
    logger.log(level, f"{operation} | {status}", extra={'context': context})
