"""Tests for ResilientCaller and CircuitBreaker"""
import asyncio

import pytest

from tierdesk.core import ResourceNotFoundException, StoreTimeoutException
from tierdesk.shared.infrastructure.resilience import CircuitBreaker, CircuitState, ResilientCaller


class FlakyStore:
    """Times out on the first `failures` calls."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def get(self, key: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            await asyncio.sleep(1)
        return f"value:{key}"


class TestResilientCaller:
    async def test_passes_result_through(self):
        caller = ResilientCaller(timeout_seconds=0.5, attempts=3, base_delay=0)
        assert await caller.call("store.get", FlakyStore(0).get, "a") == "value:a"

    async def test_retries_timeouts(self):
        store = FlakyStore(failures=2)
        caller = ResilientCaller(timeout_seconds=0.01, attempts=3, base_delay=0)

        assert await caller.call("store.get", store.get, "a") == "value:a"
        assert store.calls == 3

    async def test_exhausted_attempts_raise_and_report(self):
        reported = []

        async def on_exhausted(operation, attempts):
            reported.append((operation, attempts))

        store = FlakyStore(failures=10)
        caller = ResilientCaller(timeout_seconds=0.01, attempts=2, base_delay=0, on_exhausted=on_exhausted)

        with pytest.raises(StoreTimeoutException) as exc_info:
            await caller.call("store.get", store.get, "a")

        assert exc_info.value.attempts == 2
        assert store.calls == 2
        assert reported == [("store.get", 2)]

    async def test_domain_errors_are_not_retried(self):
        calls = 0

        async def missing():
            nonlocal calls
            calls += 1
            raise ResourceNotFoundException("Ticket", "TKT-1")

        caller = ResilientCaller(timeout_seconds=0.5, attempts=3, base_delay=0)
        with pytest.raises(ResourceNotFoundException):
            await caller.call("tickets.get", missing)
        assert calls == 1

    async def test_store_timeout_from_callee_is_retried(self):
        calls = 0

        async def slow_backend():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise StoreTimeoutException("db.query", 0.5)
            return "ok"

        caller = ResilientCaller(timeout_seconds=0.5, attempts=3, base_delay=0)
        assert await caller.call("tickets.query", slow_backend) == "ok"
        assert calls == 2


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
