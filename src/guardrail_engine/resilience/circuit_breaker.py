"""
Circuit breaker guarding the whole guardrail pipeline.

Implements the circuit breaker pattern with three states:
- Closed: Normal operation, calls pass through
- Open: Circuit tripped, calls fail fast
- Half-Open: A single trial call probes recovery
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from guardrail_engine.errors import CircuitOpenError
from guardrail_engine.telemetry.logger import GuardrailLogger, get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures that trip the circuit
        success_threshold: Successful trial calls needed to close again
        reset_timeout_seconds: Time the circuit stays open before a trial
        timeout_seconds: Optional timeout for each guarded call
    """

    failure_threshold: int = 10
    success_threshold: int = 1
    reset_timeout_seconds: float = 30.0
    timeout_seconds: float | None = 5.0

    @classmethod
    def default(cls) -> CircuitBreakerConfig:
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> CircuitBreakerConfig:
        """Create configuration from environment variables."""
        failure_threshold = int(
            os.getenv("GUARDRAILS_BREAKER_FAILURE_THRESHOLD", "10")
        )
        reset_timeout = float(
            os.getenv("GUARDRAILS_BREAKER_RESET_SECS", "30")
        )
        timeout = os.getenv("GUARDRAILS_PIPELINE_TIMEOUT_SECS", "5")

        return cls(
            failure_threshold=failure_threshold,
            reset_timeout_seconds=reset_timeout,
            timeout_seconds=float(timeout) if float(timeout) > 0 else None,
        )


@dataclass
class CircuitStats:
    """Statistics for circuit breaker."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreaker:
    """Circuit breaker for fault isolation.

    One instance guards the entire guardrail pipeline. Failures are counted
    consecutively; any success resets the count.

    Example:
        >>> breaker = CircuitBreaker("guardrails", CircuitBreakerConfig(failure_threshold=3))
        >>> try:
        ...     result = await breaker.execute(run_pipeline)
        ... except CircuitOpenError:
        ...     result = degraded_result()
    """

    def __init__(
        self,
        name: str = "guardrails",
        config: CircuitBreakerConfig | None = None,
        logger: GuardrailLogger | None = None,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            name: Name used in log lines
            config: Circuit breaker configuration
            logger: Logger for state transitions
        """
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._logger = logger or get_logger(__name__)
        self._state = CircuitState.CLOSED
        self._lock = asyncio.Lock()

        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False

        self._stats = CircuitStats()

    @property
    def name(self) -> str:
        """Breaker name."""
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        """Breaker configuration."""
        return self._config

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        self._check_state_transition()
        return self._state

    @property
    def failure_count(self) -> int:
        """Consecutive failures recorded while closed."""
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        """Check if circuit is closed (normal operation)."""
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (failing fast)."""
        return self.state == CircuitState.OPEN

    def _check_state_transition(self) -> None:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            elapsed = time.monotonic() - self._opened_at
            if elapsed >= self._config.reset_timeout_seconds:
                self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return

        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            self._logger.warning(
                "Circuit breaker opened",
                breaker=self._name,
                from_state=old_state.value,
                failures=self._failure_count,
            )
        elif new_state == CircuitState.HALF_OPEN:
            self._success_count = 0
            self._logger.info("Circuit breaker half-open", breaker=self._name)
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._opened_at = None
            self._logger.info("Circuit breaker closed", breaker=self._name)

    def _record_success(self) -> None:
        self._stats.successful_requests += 1
        self._stats.last_success_time = time.monotonic()
        self._failure_count = 0

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self._config.success_threshold:
                self._transition_to(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        now = time.monotonic()
        self._stats.failed_requests += 1
        self._stats.last_failure_time = now

        if self._state == CircuitState.HALF_OPEN:
            # A failed trial reopens immediately
            self._transition_to(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            self._failure_count += 1
            if self._failure_count >= self._config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def get_time_until_retry(self) -> float | None:
        """Seconds until the circuit will allow a trial call, or None."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None

        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self._config.reset_timeout_seconds - elapsed)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute an operation through the circuit breaker.

        Args:
            operation: Async operation to execute

        Returns:
            Operation result

        Raises:
            CircuitOpenError: If the circuit is open, or half-open with a
                trial call already in flight
        """
        async with self._lock:
            self._check_state_transition()
            self._stats.total_requests += 1

            if self._state == CircuitState.OPEN or (
                self._state == CircuitState.HALF_OPEN and self._trial_in_flight
            ):
                self._stats.rejected_requests += 1
                raise CircuitOpenError(
                    f"Circuit breaker {self._name} is open",
                    time_until_retry=self.get_time_until_retry(),
                )

            is_trial = self._state == CircuitState.HALF_OPEN
            if is_trial:
                self._trial_in_flight = True

        try:
            result = await self._execute_with_timeout(operation)
        except Exception:
            async with self._lock:
                self._record_failure()
            raise
        finally:
            if is_trial:
                self._trial_in_flight = False

        async with self._lock:
            self._record_success()

        return result

    async def _execute_with_timeout(
        self, operation: Callable[[], Awaitable[T]]
    ) -> T:
        if self._config.timeout_seconds:
            return await asyncio.wait_for(
                operation(),
                timeout=self._config.timeout_seconds,
            )
        return await operation()

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        self._trial_in_flight = False
        self._logger.info("Circuit breaker manually reset", breaker=self._name)

    def get_stats(self) -> CircuitStats:
        """Get a copy of circuit breaker statistics."""
        return CircuitStats(
            total_requests=self._stats.total_requests,
            successful_requests=self._stats.successful_requests,
            failed_requests=self._stats.failed_requests,
            rejected_requests=self._stats.rejected_requests,
            state_changes=self._stats.state_changes,
            last_failure_time=self._stats.last_failure_time,
            last_success_time=self._stats.last_success_time,
        )

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name!r}, state={self._state.value}, "
            f"failures={self._failure_count}/{self._config.failure_threshold})"
        )
