import logging
import threading
from pathlib import Path

import structlog
from rich.logging import RichHandler

from .config import settings


def setup_logging(log_level: str | None = None) -> None:
    """Configure logging for the stress test.

    Args:
        log_level: Override the log level from settings
    """
    # Determine log level
    requested = log_level or settings.log_level
    if requested:
        level = getattr(logging, requested.upper(), logging.INFO)
    else:
        level = logging.DEBUG if settings.debug else logging.INFO

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Clear any existing handlers
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    # Console handler with Rich for better formatting
    console_handler = RichHandler(
        rich_tracebacks=True,
        show_path=settings.debug,
        show_time=False,  # We handle time in formatter
    )
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler for long runs
    if settings.log_to_file:
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "fitstress.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)

    _configure_third_party_loggers()
    _configure_structlog(level)

    logger = get_logger(__name__)
    logger.info("Logging configured", level=logging.getLevelName(level))


def _configure_third_party_loggers() -> None:
    """Configure logging levels for third-party libraries."""
    # httpx logs every request at INFO, far too much under load
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _add_thread_name(logger, method_name, event_dict):
    """Tag entries with the emitting thread so worker output can be told apart."""
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def _configure_structlog(level: int) -> None:
    """Configure structlog for structured logging."""
    # Output directly (not through stdlib logging) so it doesn't fight
    # with the Rich handler
    if settings.debug:
        processors = [
            _add_thread_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    else:
        processors = [
            _add_thread_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.WriteLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    """Get a logger with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
