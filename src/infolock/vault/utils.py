"""
Utility functions for the vault client library.

This module contains common helper functions used throughout the library.
"""

import asyncio
import re
import time
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from loguru import logger

T = TypeVar('T')

_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f<>:"|?*]')


def normalize_doc_id(doc_id: Any) -> Optional[str]:
    """
    Normalize a document id to its string form.

    The backend emits numeric ids; everything on the client side keys on
    strings so that ``5`` and ``"5"`` are the same document.

    Args:
        doc_id: Raw id value (int, str or None)

    Returns:
        str id, or None when the value is missing or blank
    """
    if doc_id is None or isinstance(doc_id, bool):
        return None
    value = str(doc_id).strip()
    return value or None


def sanitize_file_name(file_name: str, fallback: str = "download") -> str:
    """
    Reduce a server- or user-supplied name to a safe bare file name.

    Args:
        file_name: Name to sanitize
        fallback: Name to use when nothing usable remains

    Returns:
        str: File name without directory components
    """
    # Strip both POSIX and Windows directory parts
    name = PureWindowsPath(PurePosixPath(file_name or "").name).name
    name = _UNSAFE_FILENAME_CHARS.sub('_', name).strip().strip('.')
    return name or fallback


async def retry_with_backoff(
    operation: str,
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
) -> T:
    """
    Await ``func`` and retry it with exponential backoff.

    The last error is re-raised unchanged once attempts run out, so callers
    see the same normalized exception they would without retries.

    Args:
        operation: Name used in log messages
        func: Zero-argument coroutine factory
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between attempts (seconds)
        max_delay: Maximum delay between attempts (seconds)
        backoff_factor: Exponential backoff multiplier
        exceptions: Tuple of exceptions to catch and retry

    Returns:
        Result of ``func``
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except exceptions as e:
            if attempt == max_attempts - 1:
                logger.error(f"Operation {operation} failed after {max_attempts} attempts: {str(e)}")
                raise

            delay = min(base_delay * (backoff_factor ** attempt), max_delay)

            logger.warning(
                f"Operation {operation} failed on attempt {attempt + 1}/{max_attempts}: {str(e)}. "
                f"Retrying in {delay:.2f} seconds..."
            )

            await asyncio.sleep(delay)

    raise RuntimeError(f"retry_with_backoff called with max_attempts={max_attempts}")


def timing_context(operation_name: str) -> 'TimingContext':
    """
    Create a timing context manager for performance measurement.

    Args:
        operation_name: Name of the operation being timed

    Returns:
        TimingContext: Context manager for timing
    """
    return TimingContext(operation_name)


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.monotonic()
        logger.debug(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.monotonic()
        duration = self.end_time - self.start_time

        if exc_type is None:
            logger.info(f"Operation '{self.operation_name}' completed in {duration:.3f}s")
        else:
            logger.error(f"Operation '{self.operation_name}' failed after {duration:.3f}s: {exc_val}")

    @property
    def duration(self) -> Optional[float]:
        """Get the duration of the operation."""
        if self.start_time is not None and self.end_time is not None:
            return self.end_time - self.start_time
        return None
