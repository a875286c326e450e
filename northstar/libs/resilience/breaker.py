"""Circuit breaker state kept per logical call site."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

FAILURE_THRESHOLD = 5
COOL_DOWN_SECONDS = 120.0


@dataclass
class CircuitBreakerState:
    """Closed/open state machine for one ``(provider, task_class)`` key."""

    failure_count: int = 0
    open_until: float = 0.0

    def is_open(self, now: float) -> bool:
        return now < self.open_until

    def record_failure(self, now: float, *, threshold: int, cool_down: float) -> bool:
        """Count a transient failure; return True when this call opened the breaker."""

        self.failure_count += 1
        if self.failure_count >= threshold and not self.is_open(now):
            self.open_until = now + cool_down
            return True
        return False

    def reset(self) -> bool:
        """Close the breaker; return True when there was anything to clear."""

        dirty = self.failure_count > 0 or self.open_until > 0
        self.failure_count = 0
        self.open_until = 0.0
        return dirty


class BreakerRegistry:
    """Owns breaker instances so tests and callers can build isolated sets."""

    def __init__(
        self,
        *,
        threshold: int = FAILURE_THRESHOLD,
        cool_down: float = COOL_DOWN_SECONDS,
    ) -> None:
        if threshold < 1:
            raise ValueError("Breaker threshold must be at least 1")
        self.threshold = threshold
        self.cool_down = cool_down
        self._states: dict[str, CircuitBreakerState] = {}

    def get(self, key: str) -> CircuitBreakerState:
        state = self._states.get(key)
        if state is None:
            state = CircuitBreakerState()
            self._states[key] = state
        return state

    def snapshot(self, now_fn: Callable[[], float]) -> dict[str, dict[str, Any]]:
        now = now_fn()
        return {
            key: {
                "failure_count": state.failure_count,
                "open": state.is_open(now),
                "seconds_until_retry": max(0.0, state.open_until - now),
            }
            for key, state in sorted(self._states.items())
        }


def breaker_key(provider: str, task_class: str) -> str:
    return f"{provider}:{task_class}"


__all__ = [
    "BreakerRegistry",
    "COOL_DOWN_SECONDS",
    "CircuitBreakerState",
    "FAILURE_THRESHOLD",
    "breaker_key",
]
