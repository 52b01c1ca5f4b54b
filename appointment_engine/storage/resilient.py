"""Resilience wrapper for any Storage Port.

Pattern: circuit breaker around every call, tenacity retry with exponential
backoff around reads only. Commits are never retried here: a rejected batch
is reported to the caller, which decides whether to try again.
"""
import logging
from typing import Any, Dict, Optional, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from appointment_engine.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from appointment_engine.config import Settings
from appointment_engine.storage.base import (
    DocumentSnapshot,
    Precondition,
    ServerTimestamp,
    StoragePort,
    StorageUnavailableError,
    WriteOperation,
)

logger = logging.getLogger(__name__)


class ResilientStorage(StoragePort):
    """Decorates a Storage Port with fail-fast and read retries."""

    def __init__(
        self,
        port: StoragePort,
        breaker: Optional[CircuitBreaker] = None,
        read_attempts: int = 3,
        wait_multiplier: float = 0.1
    ):
        """
        Args:
            port: Underlying store
            breaker: Circuit breaker; by default only StorageUnavailableError
                counts as a failure
            read_attempts: Total attempts for get_document
            wait_multiplier: Backoff multiplier in seconds (0 disables sleeping)
        """
        self.port = port
        self.breaker = breaker or CircuitBreaker(
            failure_exceptions=(StorageUnavailableError,)
        )
        self.read_attempts = read_attempts
        self.wait_multiplier = wait_multiplier

    @classmethod
    def from_settings(cls, port: StoragePort, settings: Settings) -> "ResilientStorage":
        breaker = CircuitBreaker(
            failure_threshold=settings.circuit_failure_threshold,
            timeout=settings.circuit_timeout_seconds,
            failure_exceptions=(StorageUnavailableError,),
        )
        return cls(port, breaker=breaker, read_attempts=settings.storage_read_attempts)

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.read_attempts),
            wait=wait_exponential(
                multiplier=self.wait_multiplier,
                min=0,
                max=self.wait_multiplier * 8
            ),
            retry=(
                retry_if_exception_type(StorageUnavailableError)
                & retry_if_not_exception_type(CircuitBreakerOpen)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self.breaker.call(self.port.get_document, path)

    async def run_atomic_batch(self, operations: Sequence[WriteOperation]) -> None:
        await self.breaker.call(self.port.run_atomic_batch, operations)

    async def update_document(
        self,
        path: str,
        fields: Dict[str, Any],
        precondition: Optional[Precondition] = None
    ) -> None:
        await self.breaker.call(self.port.update_document, path, fields, precondition)

    def server_timestamp(self) -> ServerTimestamp:
        return self.port.server_timestamp()
