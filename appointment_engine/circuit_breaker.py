"""Circuit breaker guarding storage round trips.

While the store keeps failing, callers get CircuitBreakerOpen right away
instead of piling up on a backend that is down.

closed -> open after `failure_threshold` consecutive failures
open -> half_open once `timeout` seconds passed since the last failure
half_open -> closed on the first success, back to open on a failure

Only one trial call runs while half-open; concurrent callers fail fast until
it finishes. An error outside `failure_exceptions` still means the store
answered, so it ends the trial the same way a success does.
"""
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from appointment_engine.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(StorageUnavailableError):
    """Store considered down; the call was not attempted."""
    pass


class CircuitBreaker:
    """Counts consecutive storage failures and short-circuits while open."""

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        failure_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the circuit
            timeout: Seconds the circuit stays open before a trial call
            failure_exceptions: Only these count as failures; other errors
                propagate and count as the store answering
            clock: Seconds source, time.time by default
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_exceptions = failure_exceptions
        self._clock = clock or time.time
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        return self._state.value

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) unless the circuit is open.

        Raises:
            CircuitBreakerOpen: Circuit open and timeout not yet elapsed, or a
                half-open trial call is already running
        """
        if self._state == CircuitState.OPEN:
            remaining = self._seconds_until_trial()
            if remaining > 0:
                raise CircuitBreakerOpen(
                    f"Circuit breaker is OPEN. Retry after {remaining:.1f}s"
                )
            self._state = CircuitState.HALF_OPEN
            logger.info("Storage circuit half-open, allowing a trial call")

        is_trial = self._state == CircuitState.HALF_OPEN
        if is_trial:
            if self._trial_in_flight:
                raise CircuitBreakerOpen("Circuit breaker is HALF_OPEN, trial call in progress")
            self._trial_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except self.failure_exceptions:
            self._record_failure()
            raise
        except Exception:
            self._record_success()
            raise
        finally:
            if is_trial:
                self._trial_in_flight = False

        self._record_success()
        return result

    def _seconds_until_trial(self) -> float:
        if self.last_failure_time is None:
            return 0
        return max(0, self.timeout - (self._clock() - self.last_failure_time))

    def _record_success(self):
        self.failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            logger.info("Storage circuit closed, trial call succeeded")

    def _record_failure(self):
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning("Storage circuit reopened, trial call failed")
        elif self._state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                f"Storage circuit opened after {self.failure_count} consecutive failures, "
                f"cooling down for {self.timeout}s"
            )
