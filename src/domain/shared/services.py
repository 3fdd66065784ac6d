"""Domain service errors and helpers shared by the analytics services.

Analysis services in this project are plain synchronous callables over
in-memory snapshots. This module holds the exception hierarchy they raise
for caller misuse and the logging decorator wrapped around engine entry
points.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class DomainServiceError(Exception):
    """Base exception for domain service errors.

    Used when business rules are violated or domain-specific
    errors occur during service execution.
    """

    def __init__(self, message: str, error_code: str | None = None) -> None:
        """Initialize domain service error.

        Args:
            message: Human-readable error message
            error_code: Optional machine-readable error code
        """
        super().__init__(message)
        self.error_code = error_code


class ValidationError(DomainServiceError):
    """Exception for request validation errors."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error message
            field: Optional field name that failed validation
        """
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


def log_domain_operation(func: F) -> F:
    """Decorator to log engine operations.

    Logs the start and completion of the wrapped call with its duration.
    Failures are logged and re-raised.
    """

    @functools.wraps(func)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        operation_name = f"{self.__class__.__name__}.{func.__name__}"
        op_logger = getattr(self, "logger", logger)
        op_logger.debug(f"Starting {operation_name}")

        start_time = time.perf_counter()
        try:
            result = func(self, *args, **kwargs)
        except Exception as e:
            duration = time.perf_counter() - start_time
            op_logger.error(f"Failed {operation_name} after {duration:.3f}s: {e}")
            raise
        duration = time.perf_counter() - start_time
        op_logger.debug(f"Completed {operation_name} in {duration:.3f}s")
        return result

    return wrapper  # type: ignore[return-value]
