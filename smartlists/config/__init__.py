"""Configuration module for Smartlists.

Public API:
----------
settings: Settings instance
    Pydantic settings object with nested configuration groups

get_logger(name: str) -> Logger
    Get a context-aware logger for your module

setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru logger for the application

resilient_operation(operation_name: str)
    Decorator for handling errors in external API calls

log_startup_info() -> None
    Log configuration at startup

Usage:
------
```python
from smartlists.config import get_logger, settings

chunk_size = settings.api.spotify_write_chunk_size
logger = get_logger(__name__)
logger.info("Starting operation")
```
"""

from .logging import (
    get_logger,
    log_startup_info,
    resilient_operation,
    setup_loguru_logger,
)
from .settings import settings

__all__ = [
    "get_logger",
    "log_startup_info",
    "resilient_operation",
    "settings",
    "setup_loguru_logger",
]
