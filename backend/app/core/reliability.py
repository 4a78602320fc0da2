"""
Reliability utilities.

Circuit breaker wrapped around outbound carrier calls. Callers decide
what counts as a failure by what they let escape from the wrapped
coroutine: the carrier client only raises for retryable outcomes, so
vendor rejections (4xx) never open the circuit.
"""

import time
from typing import Callable, Any

from backend.app.core.config import settings
from backend.app.core.observability import logger


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    After `failure_threshold` failures in a row the circuit opens and
    rejects calls for `reset_timeout` seconds. The first call after that
    runs as a HALF_OPEN trial: success closes the circuit, failure opens
    it again.
    """
    def __init__(self, failure_threshold: int = 5, reset_timeout: int = 60, name: str = "default"):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
                logger.info("Circuit %s half-open, allowing a trial call", self.name)
            else:
                raise CircuitOpenError(f"Circuit {self.name} is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        if self.state == "HALF_OPEN" or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit %s opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        if self.state != "CLOSED":
            logger.info("Circuit %s closed", self.name)
        self.failures = 0
        self.state = "CLOSED"


# Shared breaker for carrier API calls
carrier_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.carrier_breaker_failure_threshold,
    reset_timeout=settings.carrier_breaker_reset_seconds,
    name="carrier",
)
