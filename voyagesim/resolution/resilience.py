"""
Resilience patterns for the external lookup collaborators.

Provides a circuit breaker and retry logic for geocoding and directions
calls. Everything runs on the host event loop, so state changes need no
locking.
"""
import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open."""
    pass


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for an external provider.

    Stops calling a provider that keeps failing and lets it recover; while
    open, calls fail immediately with CircuitOpenError so the caller falls
    back without waiting for a timeout.

    Usage:
        breaker = CircuitBreaker(name="mapbox_directions")

        @breaker
        async def fetch():
            ...
    """
    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0  # seconds
    half_open_max_calls: int = 1
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _last_failure_time: Optional[float] = field(default=None, init=False)
    _half_open_calls: int = field(default=0, init=False)

    @property
    def state(self) -> CircuitState:
        return self._check_state()

    @property
    def is_open(self) -> bool:
        return self._check_state() == CircuitState.OPEN

    def _check_state(self) -> CircuitState:
        """Check and potentially transition circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self.clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                logger.info(f"Circuit breaker '{self.name}' transitioning to HALF_OPEN")
        return self._state

    def _transition_to_open(self):
        self._state = CircuitState.OPEN
        self._last_failure_time = self.clock()
        logger.warning(f"Circuit breaker '{self.name}' OPENED after {self._failure_count} failures")

    def _transition_to_closed(self):
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        logger.info(f"Circuit breaker '{self.name}' CLOSED - service recovered")

    def record_success(self):
        """Record a successful call."""
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_calls += 1
            if self._half_open_calls >= self.half_open_max_calls:
                self._transition_to_closed()
        elif self._state == CircuitState.CLOSED:
            self._failure_count = max(0, self._failure_count - 1)

    def record_failure(self, error: BaseException):
        """Record a failed call."""
        self._failure_count += 1
        self._last_failure_time = self.clock()
        logger.warning(f"Circuit breaker '{self.name}' recorded failure: {error!r}")

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to_open()
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._transition_to_open()

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``func`` through the breaker."""
        if self._check_state() == CircuitState.OPEN:
            raise CircuitOpenError(
                f"Circuit breaker '{self.name}' is OPEN. "
                f"Service unavailable, try again in {self.recovery_timeout}s"
            )
        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError as e:
            # Cancelled by the caller's deadline, so the service hung
            self.record_failure(e)
            raise
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result

    def __call__(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Decorator form of ``call`` for coroutine functions."""
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await self.call(func, *args, **kwargs)

        return wrapper

    def get_status(self) -> dict:
        """Get circuit breaker status."""
        return {
            'name': self.name,
            'state': self._check_state().value,
            'failure_count': self._failure_count,
            'failure_threshold': self.failure_threshold,
            'recovery_timeout_seconds': self.recovery_timeout,
        }


def with_retry_async(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
    exceptions: tuple = (Exception,),
):
    """
    Async decorator for adding retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exception types to retry on
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await func(*args, **kwargs)

        return wrapper

    return decorator
