import asyncio

import httpx
import pytest

from northstar.libs.resilience import ProviderError, backoff_delay, is_transient
from northstar.libs.resilience.wrapper import EXHAUSTED_MESSAGE, UNAVAILABLE_MESSAGE

LABEL = "openai:deep_reasoning"


class _Counter:
    def __init__(self, exc: BaseException | None = None, value: str = "done") -> None:
        self.calls = 0
        self.exc = exc
        self.value = value

    async def __call__(self) -> str:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.value


@pytest.mark.asyncio
async def test_breaker_opens_after_five_transient_failures(resilience, sleeper) -> None:
    operation = _Counter(ProviderError("upstream down", provider="openai", status=503))

    first = await resilience.call(LABEL, operation)
    assert first.ok is False
    assert first.message == EXHAUSTED_MESSAGE
    assert first.status == 503
    assert operation.calls == 3
    assert sleeper.delays == [0.25, 0.5]

    second = await resilience.call(LABEL, operation)
    # Fifth failure opens the breaker and skips the remaining retry.
    assert operation.calls == 5
    assert second.circuit_open is True

    third = await resilience.call(LABEL, operation)
    assert operation.calls == 5
    assert third.ok is False
    assert third.circuit_open is True
    assert third.message == UNAVAILABLE_MESSAGE
    assert third.retry_after == pytest.approx(120.0)
    assert third.retry_at is not None


@pytest.mark.asyncio
async def test_breaker_half_opens_after_cool_down(resilience, clock) -> None:
    failing = _Counter(ProviderError("timeout", provider="openai", status=504))
    await resilience.call(LABEL, failing)
    await resilience.call(LABEL, failing)
    assert resilience.is_open(LABEL)

    clock.advance(120.0)
    assert not resilience.is_open(LABEL)

    healthy = _Counter(value="recovered")
    result = await resilience.call(LABEL, healthy)

    assert result.ok is True
    assert result.value == "recovered"
    assert healthy.calls == 1
    assert resilience.breaker(LABEL).failure_count == 0


@pytest.mark.asyncio
async def test_failure_after_cool_down_reopens_immediately(resilience, clock) -> None:
    failing = _Counter(ProviderError("bad gateway", provider="openai", status=502))
    await resilience.call(LABEL, failing)
    await resilience.call(LABEL, failing)
    clock.advance(121.0)

    result = await resilience.call(LABEL, failing)

    assert failing.calls == 6
    assert result.circuit_open is True
    assert resilience.is_open(LABEL)


@pytest.mark.asyncio
async def test_permanent_error_propagates_without_counting(resilience) -> None:
    operation = _Counter(ProviderError("unauthorised", provider="openai", status=401))

    with pytest.raises(ProviderError):
        await resilience.call(LABEL, operation)

    assert operation.calls == 1
    assert resilience.breaker(LABEL).failure_count == 0


@pytest.mark.asyncio
async def test_success_after_transient_failure_resets_counter(resilience) -> None:
    calls = {"n": 0}

    async def flaky() -> str:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("reset by peer")
        return "ok"

    result = await resilience.call(LABEL, flaky)

    assert result.ok is True
    assert result.attempts == 2
    assert resilience.breaker(LABEL).failure_count == 0


@pytest.mark.asyncio
async def test_cancellation_is_not_retried(resilience) -> None:
    operation = _Counter(asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await resilience.call(LABEL, operation)

    assert operation.calls == 1
    assert resilience.breaker(LABEL).failure_count == 0


@pytest.mark.asyncio
async def test_breakers_are_isolated_per_label(resilience) -> None:
    failing = _Counter(ProviderError("overloaded", provider="openai", status=429))
    await resilience.call(LABEL, failing)
    await resilience.call(LABEL, failing)

    assert resilience.is_open(LABEL)
    assert not resilience.is_open("openai:conversational")
    snapshot = resilience.snapshot()
    assert snapshot[LABEL]["open"] is True
    assert snapshot[LABEL]["failure_count"] == 5


def test_backoff_is_capped() -> None:
    assert [backoff_delay(n) for n in range(5)] == [0.25, 0.5, 1.0, 2.0, 2.0]


def test_transient_classification() -> None:
    assert is_transient(ProviderError("x", status=429))
    assert is_transient(ProviderError("x", status=500))
    assert is_transient(ProviderError("x", status=408))
    assert not is_transient(ProviderError("x", status=404))
    assert not is_transient(ProviderError("x", status=422))
    assert is_transient(httpx.ReadTimeout("slow"))
    assert is_transient(asyncio.TimeoutError())
    assert not is_transient(ValueError("bad input"))
