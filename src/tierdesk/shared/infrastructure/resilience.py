"""
Resilience Utilities
====================

- ResilientCaller: bounded timeout per call, exponential backoff retry on
  timeout, degraded-service callback once attempts are exhausted
- CircuitBreaker: stop calling a failing external service for a while
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tierdesk.core import StoreTimeoutException
from tierdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ResilientCaller:
    """
    Wraps store and registry calls with a time bound.

    Only timeouts are retried; every other exception propagates on the first
    attempt so domain errors (NotFound, Conflict, ...) are never masked.
    """

    def __init__(
        self,
        timeout_seconds: float,
        attempts: int = 3,
        base_delay: float = 0.1,
        on_exhausted: Optional[Callable[[str, int], Awaitable[None]]] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts
        self.base_delay = base_delay
        self._on_exhausted = on_exhausted

    def set_exhausted_callback(self, callback: Callable[[str, int], Awaitable[None]]) -> None:
        self._on_exhausted = callback

    async def call(
        self,
        operation: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        for attempt in range(self.attempts):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=self.timeout_seconds)
            except (asyncio.TimeoutError, StoreTimeoutException):
                logger.warning(
                    "Call timed out",
                    extra={
                        "operation": operation,
                        "attempt": attempt + 1,
                        "timeout_seconds": self.timeout_seconds,
                    }
                )

            if attempt < self.attempts - 1:
                await asyncio.sleep(self.base_delay * (2 ** attempt))

        logger.error(
            "Call failed after retries, service degraded",
            extra={"operation": operation, "attempts": self.attempts}
        )
        if self._on_exhausted is not None:
            await self._on_exhausted(operation, self.attempts)
        raise StoreTimeoutException(operation, self.timeout_seconds, self.attempts)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )
