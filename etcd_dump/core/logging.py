"""Logging configuration module."""

from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    INFO,
    WARNING,
    Handler,
    Logger,
    StreamHandler,
    getLogger,
)
from typing import Any, cast

import structlog
from structlog import dev, processors, stdlib
from structlog.processors import JSONRenderer, TimeStamper, dict_tracebacks
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

# Define log levels
LOG_LEVELS: dict[str, int] = {
    "debug": DEBUG,
    "info": INFO,
    "warning": WARNING,
    "error": ERROR,
    "critical": CRITICAL,
}


def configure_logging(
    level: str = "info", json_logs: bool = True, testing: bool = False
) -> None:
    """Configure structured logging for the dump tool.

    Args:
        level: Name of the minimum log level (see LOG_LEVELS)
        json_logs: Render records as JSON instead of console output
        testing: Whether the tool is running in test mode
    """
    log_level = LOG_LEVELS.get(level.lower(), INFO)

    # Configure root logger
    root_logger: Logger = getLogger()
    root_logger.setLevel(log_level)

    # Create and configure package logger
    package_logger: Logger = getLogger("etcd_dump")
    package_logger.setLevel(log_level)

    # Log to stderr so stdout stays free for the final summary
    handler: Handler = StreamHandler()
    handler.setLevel(log_level)

    render_json = json_logs and not testing

    # Define shared processors
    shared_processors = [
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
        dict_tracebacks,
    ]

    # Configure structlog; rendering happens once, in the handler formatter
    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *shared_processors,
            processors.format_exc_info,
            stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure handler formatter
    renderer: Processor
    if render_json:
        renderer = JSONRenderer()
    elif testing:
        renderer = processors.KeyValueRenderer(key_order=["event"])
    else:
        renderer = dev.ConsoleRenderer()

    formatter = stdlib.ProcessorFormatter(
        processors=[stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )
    handler.setFormatter(formatter)

    # Clear existing handlers to prevent duplicates
    root_logger.handlers = []
    package_logger.handlers = []
    package_logger.propagate = False

    root_logger.addHandler(handler)
    package_logger.addHandler(handler)


def get_logger(**initial_values: Any) -> BoundLogger:
    """Get a configured logger instance.

    The logger is resolved lazily, so module-level loggers pick up the
    configuration applied later by configure_logging.

    Args:
        **initial_values: Context bound to every record

    Returns:
        A structured logger instance.
    """
    return cast(BoundLogger, structlog.get_logger(**initial_values))


def get_key_logger(key: str | None = None) -> BoundLogger:
    """Get a logger with the store key bound to it.

    Args:
        key: Optional store key to bind to logger

    Returns:
        Configured logger with key context
    """
    logger: BoundLogger = get_logger()
    if key:
        logger = logger.bind(key=key)
    return logger
