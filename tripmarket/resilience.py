"""
Retry with exponential backoff and a circuit breaker for plan generation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retry behavior"""

    max_attempts: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: Optional[float] = None
    exponential_base: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay = self.initial_delay * (self.exponential_base ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


def call_with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    """
    Calls fn until it succeeds or policy.max_attempts is exhausted.

    Only exceptions in retry_on are retried; the last one is re-raised.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, exc)
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs",
                label,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            sleep(delay)


@dataclass
class CircuitBreaker:
    """
    Opens after `threshold` consecutive failures and stays open for
    `reset_timeout` seconds after the most recent one. Any success closes it.
    """

    threshold: int = 3
    reset_timeout: float = 60.0
    clock: Callable[[], float] = time.monotonic
    failures: int = 0
    last_failure_at: Optional[float] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def is_open(self) -> bool:
        with self._lock:
            if self.failures < self.threshold or self.last_failure_at is None:
                return False
            return self.clock() - self.last_failure_at < self.reset_timeout

    def allow(self) -> bool:
        return not self.is_open()

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1
            self.last_failure_at = self.clock()
            if self.failures == self.threshold:
                logger.warning(
                    "Circuit breaker opened after %d consecutive failures", self.failures
                )

    def record_success(self) -> None:
        with self._lock:
            if self.failures:
                logger.info("Circuit breaker reset")
            self.failures = 0
            self.last_failure_at = None
