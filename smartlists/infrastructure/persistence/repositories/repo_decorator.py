"""Repository decorator for standardizing DB operations.

Wraps repository methods with:
- Structured trace logging with context and timing information
- Error classification so integrity, timeout and operational failures are
  logged at the right level before being re-raised
"""

import asyncio
from collections.abc import Callable, Coroutine
import functools
import time
from typing import Any, ParamSpec, TypeVar

from sqlalchemy.exc import (
    IntegrityError,
    MultipleResultsFound,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
    TimeoutError,
)

from smartlists.config import get_logger
from smartlists.domain.exceptions import SmartlistsError

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


def db_operation(operation_name: str | None = None):
    """Decorate repository methods with consistent logging and error handling.

    Example:
        @db_operation("get_playlist")
        async def get_by_id(self, playlist_id: int) -> SmartPlaylist:
            ...
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]],
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        func_name = operation_name or func.__name__

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(
                f"db_operation can only be used with async functions, but {func_name} is not async",
            )

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            repo_name = args[0].__class__.__name__ if args else "Repository"
            context = _build_log_context(kwargs)

            def elapsed() -> float:
                return (time.perf_counter() - start_time) * 1000

            try:
                result = await func(*args, **kwargs)
            except SmartlistsError:
                # Domain errors (not found, validation) are expected outcomes
                raise
            except (NoResultFound, MultipleResultsFound, IntegrityError) as e:
                logger.warning(
                    f"DB {type(e).__name__}: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise
            except (TimeoutError, OperationalError) as e:
                logger.error(
                    f"DB {type(e).__name__}: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise
            except SQLAlchemyError as e:
                logger.error(
                    f"SQLAlchemy error: {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise
            except Exception as e:
                logger.exception(
                    f"Unhandled exception in {repo_name}.{func_name}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=elapsed(),
                    **context,
                )
                raise

            logger.trace(
                f"DB operation completed: {repo_name}.{func_name}",
                operation=func_name,
                exec_time_ms=elapsed(),
                **context,
            )
            return result

        return wrapper

    return decorator


def _build_log_context(kwargs: dict[str, Any]) -> dict[str, Any]:
    """Keep simple keyword arguments (IDs, flags, names) for log context."""
    return {
        k: v
        for k, v in kwargs.items()
        if not k.startswith("_") and isinstance(v, int | str | float | bool)
    }
