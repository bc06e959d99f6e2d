"""Performance Logging.

Decorator that times function calls and flags slow ones.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG


def _log_duration(
    _logger: logging.Logger,
    func_name: str,
    start: float,
    threshold_ms: float,
    failed: Optional[BaseException],
) -> None:
    duration_ms = (time.perf_counter() - start) * 1000
    extra = {"duration_ms": round(duration_ms, 2)}

    if failed is not None:
        _logger.error(
            f"{func_name} failed after {duration_ms:.1f}ms: {type(failed).__name__}",
            extra=extra,
        )
    elif duration_ms >= threshold_ms:
        _logger.warning(f"Slow operation: {func_name} took {duration_ms:.1f}ms", extra=extra)
    else:
        _logger.debug(f"{func_name} completed in {duration_ms:.1f}ms", extra=extra)


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator that logs function execution time.

    Logs every call at DEBUG, slow calls at WARNING, and failures at ERROR.
    Works on both sync and async functions.

    Args:
        threshold_ms: Slow operation threshold in milliseconds.
                     Defaults to config.slow_threshold_ms (1000ms).
        logger_name: Custom logger name. Defaults to function's module.

    Example:
        @log_performance(threshold_ms=2000)
        async def retrieve_share(self, token):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        _logger = logging.getLogger(logger_name or func.__module__)
        func_name = func.__qualname__

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _log_duration(_logger, func_name, start, threshold_ms, exc)
                    raise
                _log_duration(_logger, func_name, start, threshold_ms, None)
                return result
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _log_duration(_logger, func_name, start, threshold_ms, exc)
                raise
            _log_duration(_logger, func_name, start, threshold_ms, None)
            return result
        return sync_wrapper

    return decorator
