"""
Performance timing utilities for debugging.

This module provides a decorator measuring execution time of key functions
when the FD_DEBUG environment variable is set.
"""

import functools
import logging
import os
import time
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def timer(func: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator that measures and logs execution time when FD_DEBUG=1.

    The flag is checked per call so the CLI --debug switch takes effect
    after import.

    Args:
        func: Function to measure

    Returns:
        Wrapped function that logs timing if debug is enabled
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if os.getenv("FD_DEBUG") != "1":
            return func(*args, **kwargs)

        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.debug(f"{func.__qualname__}: {elapsed_ms:.2f}ms")

    return wrapper
