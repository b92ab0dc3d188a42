"""
Bounded timeouts for backend calls.

Every store and monitoring call runs under a timeout. A timeout is reported as
BackendUnavailableError and is never retried here; retry policy belongs to the
caller.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from clusterview.shared.core.config import get_settings
from clusterview.shared.core.exceptions import BackendUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


def resolve_timeout(operation_type: str) -> float:
    """Timeout in seconds for an operation type, read from settings."""
    settings = get_settings()
    if operation_type == "monitoring":
        return float(settings.GANGLIA_TIMEOUT_SECONDS)
    if operation_type == "store":
        return float(settings.STORE_TIMEOUT_SECONDS)
    return DEFAULT_TIMEOUT_SECONDS


class TimeoutManager:
    """Manages timeouts for external operations."""

    def __init__(self, operation_type: str = "default", timeout: float | None = None):
        self.operation_type = operation_type
        self.timeout = timeout if timeout is not None else resolve_timeout(operation_type)

    async def execute_with_timeout(
        self,
        coro: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute a coroutine with timeout handling."""
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(coro(*args, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            execution_time = time.perf_counter() - start_time
            logger.warning(
                "operation_timed_out",
                operation_type=self.operation_type,
                execution_time_seconds=round(execution_time, 3),
                timeout_seconds=self.timeout,
            )
            raise BackendUnavailableError(
                f"Operation timed out after {self.timeout} seconds",
                code="timeout_error",
                details={
                    "operation_type": self.operation_type,
                    "timeout_seconds": self.timeout,
                    "execution_time_seconds": round(execution_time, 3),
                },
            )

        logger.debug(
            "operation_completed_within_timeout",
            operation_type=self.operation_type,
            execution_time_seconds=round(time.perf_counter() - start_time, 3),
            timeout_seconds=self.timeout,
        )
        return result
