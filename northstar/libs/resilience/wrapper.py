"""Retry-with-backoff and circuit breaking around outbound provider calls."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from .breaker import BreakerRegistry, CircuitBreakerState
from .errors import failure_status, is_transient

MAX_ATTEMPTS = 3
BASE_BACKOFF_SECONDS = 0.25
MAX_BACKOFF_SECONDS = 2.0

UNAVAILABLE_MESSAGE = "AI temporarily unavailable. Please try again in a couple of minutes."
EXHAUSTED_MESSAGE = "AI temporarily unavailable after retries"

Operation = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class ResilienceResult:
    """Outcome of a wrapped call; failures are values, not exceptions."""

    ok: bool
    value: Any = None
    message: str | None = None
    status: int | None = None
    error: str | None = None
    circuit_open: bool = False
    retry_after: float | None = None
    attempts: int = 0

    @property
    def retry_at(self) -> str | None:
        if self.retry_after is None:
            return None
        return (datetime.now(timezone.utc) + timedelta(seconds=self.retry_after)).isoformat()

    def describe(self) -> str:
        detail = self.error or self.message or "unavailable"
        if self.circuit_open:
            return f"circuit open: {detail}"
        if self.status is not None:
            return f"{detail} (status {self.status})"
        return detail


def backoff_delay(attempt: int) -> float:
    """Delay before retrying after the zero-based ``attempt`` failed."""

    return min(BASE_BACKOFF_SECONDS * (2**attempt), MAX_BACKOFF_SECONDS)


class ResilienceWrapper:
    """Wrap provider calls with retries and a breaker per label.

    The wrapper knows nothing about what it calls. Transient failures are
    retried and counted against the label's breaker; permanent failures are
    re-raised untouched.
    """

    def __init__(
        self,
        registry: BreakerRegistry | None = None,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.registry = registry or BreakerRegistry()
        self.max_attempts = max_attempts
        self._clock = clock
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    def breaker(self, label: str) -> CircuitBreakerState:
        return self.registry.get(label)

    def is_open(self, label: str) -> bool:
        return self.breaker(label).is_open(self._clock())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return self.registry.snapshot(self._clock)

    async def call(self, label: str, operation: Operation) -> ResilienceResult:
        state = self.breaker(label)
        now = self._clock()
        if state.is_open(now):
            self._logger.info(
                "provider_call_short_circuited",
                extra={"label": label, "retry_after": state.open_until - now},
            )
            return ResilienceResult(
                ok=False,
                message=UNAVAILABLE_MESSAGE,
                circuit_open=True,
                retry_after=state.open_until - now,
            )

        last_exc: BaseException | None = None
        attempts = 0
        for attempt in range(self.max_attempts):
            attempts = attempt + 1
            try:
                value = await operation()
            except Exception as exc:
                if not is_transient(exc):
                    raise
                last_exc = exc
                opened = self._record_failure(label, state)
                if opened or attempt >= self.max_attempts - 1:
                    break
                delay = backoff_delay(attempt)
                self._logger.warning(
                    "provider_transient_failure",
                    extra={
                        "label": label,
                        "attempt": attempts,
                        "status": failure_status(exc),
                        "backoff_ms": int(delay * 1000),
                        "error": str(exc),
                    },
                )
                await self._sleep(delay)
                continue

            if state.reset():
                self._logger.info("provider_circuit_reset", extra={"label": label})
            return ResilienceResult(ok=True, value=value, attempts=attempts)

        now = self._clock()
        circuit_open = state.is_open(now)
        self._logger.warning(
            "provider_call_exhausted",
            extra={
                "label": label,
                "attempts": attempts,
                "status": failure_status(last_exc) if last_exc else None,
                "circuit_open": circuit_open,
                "error": str(last_exc) if last_exc else None,
            },
        )
        return ResilienceResult(
            ok=False,
            message=EXHAUSTED_MESSAGE,
            status=failure_status(last_exc) if last_exc else None,
            error=str(last_exc) if last_exc else None,
            circuit_open=circuit_open,
            retry_after=(state.open_until - now) if circuit_open else None,
            attempts=attempts,
        )

    def _record_failure(self, label: str, state: CircuitBreakerState) -> bool:
        opened = state.record_failure(
            self._clock(),
            threshold=self.registry.threshold,
            cool_down=self.registry.cool_down,
        )
        if opened:
            self._logger.warning(
                "provider_circuit_opened",
                extra={
                    "label": label,
                    "failure_count": state.failure_count,
                    "cool_down_seconds": self.registry.cool_down,
                },
            )
        return opened


__all__ = [
    "BASE_BACKOFF_SECONDS",
    "EXHAUSTED_MESSAGE",
    "MAX_ATTEMPTS",
    "MAX_BACKOFF_SECONDS",
    "ResilienceResult",
    "ResilienceWrapper",
    "UNAVAILABLE_MESSAGE",
    "backoff_delay",
]
