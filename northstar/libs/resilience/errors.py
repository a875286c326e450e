"""Failure taxonomy shared by outbound provider calls."""

from __future__ import annotations

import asyncio

import httpx

TRANSIENT_STATUSES = frozenset({408, 429})


class ProviderError(RuntimeError):
    """Raised by provider adapters with enough detail to classify the failure."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status: int | None = None,
        transient: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status
        if transient is None:
            transient = is_transient_status(status)
        self.transient = transient


class ProviderNotConfiguredError(ProviderError):
    """Raised when a provider has no credentials; never retried."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message, provider=provider, transient=False)


def is_transient_status(status: int | None) -> bool:
    if status is None:
        return False
    return status in TRANSIENT_STATUSES or status >= 500


def is_transient(exc: BaseException) -> bool:
    """Decide whether ``exc`` reflects provider instability worth retrying."""

    if isinstance(exc, ProviderError):
        return exc.transient
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return is_transient_status(exc.response.status_code)
    return is_transient_status(getattr(exc, "status", None))


def failure_status(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return 408
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


__all__ = [
    "ProviderError",
    "ProviderNotConfiguredError",
    "TRANSIENT_STATUSES",
    "failure_status",
    "is_transient",
    "is_transient_status",
]
