"""Logging configuration and utilities using Loguru.

Public API:
----------
setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru sinks for the application

get_logger(name: str) -> Logger
    Get a context-aware logger for your module
    Usage: logger = get_logger(__name__)

log_startup_info() -> None
    Log configuration at startup

@resilient_operation(operation_name: str)
    Decorator that logs and re-raises errors at service boundaries

Quick Start:
-----------
```python
from smartlists.config import get_logger
logger = get_logger(__name__)
logger.info("Starting sync", playlist_id=123)
```
"""

from collections.abc import Callable
import functools
from pathlib import Path
import sys
from typing import Any

from loguru import logger

from .settings import settings

SERVICE_NAME = "smartlists"


def setup_loguru_logger(verbose: bool = False) -> None:
    """Configure Loguru logger for the application.

    Args:
        verbose: Enable verbose logging with debug level and detailed tracebacks
    """
    logger.remove()

    log_file_path = Path(settings.logging.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.configure(extra={"service": SERVICE_NAME, "module": "root"})

    console_level = "DEBUG" if verbose else settings.logging.console_level
    logger.add(
        sink=sys.stdout,
        level=console_level,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:"
            "<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )

    # Buffered writes unless real-time debugging is on
    logger.add(
        sink=str(log_file_path),
        level=settings.logging.file_level,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {process}:{thread} | "
            "{extra[service]} | {extra[module]} | {name}:{function}:{line} | {message}"
        ),
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=not settings.logging.real_time_debug,
        catch=True,
        serialize=True,
    )


def get_logger(name: str) -> Any:
    """Get a logger bound to the given module name.

    Args:
        name: Module name (typically __name__)

    Returns:
        Loguru logger with ``module`` and ``service`` context
    """
    return logger.bind(module=name, service=SERVICE_NAME)


async def log_startup_info() -> None:  # noqa: RUF029
    """Log a startup banner and every configuration value at debug level."""
    local_logger = get_logger(__name__)
    separator = "=" * 50

    local_logger.info("{}", separator)
    local_logger.info("Smartlists smart playlist engine")
    local_logger.info("{}", separator)

    local_logger.debug("Configuration:")
    for section_name, section_values in settings.model_dump().items():
        local_logger.debug("  {}:", section_name.upper())
        if isinstance(section_values, dict):
            for key, value in section_values.items():
                if "secret" in key:
                    value = "***" if value else ""
                local_logger.debug("    {}: {}", key.upper(), str(value))
        else:
            local_logger.debug("    {}", str(section_values))


def resilient_operation(operation_name: str | None = None) -> Callable:
    """Decorator for service boundary operations.

    Logs any exception with the operation name, then re-raises it so callers
    keep full control over error classification.

    Example:
        >>> @resilient_operation("spotify_add_items")
        >>> async def add_items(playlist_id, item_ids): ...
    """

    def decorator(func: Callable) -> Callable:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.bind(module=func.__module__, service=SERVICE_NAME).opt(
                    exception=True
                ).warning(f"Error in {op_name}: {e!s}", operation=op_name)
                raise

        return wrapper

    return decorator
