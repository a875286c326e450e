"""Retry, backoff and circuit breaking for calls to external providers."""

from .breaker import BreakerRegistry, CircuitBreakerState, breaker_key
from .errors import ProviderError, ProviderNotConfiguredError, is_transient
from .wrapper import ResilienceResult, ResilienceWrapper, backoff_delay

__all__ = [
    "BreakerRegistry",
    "CircuitBreakerState",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ResilienceResult",
    "ResilienceWrapper",
    "backoff_delay",
    "breaker_key",
    "is_transient",
]
