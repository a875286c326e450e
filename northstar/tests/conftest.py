from __future__ import annotations

from typing import Any, Iterable, List

import pytest

from northstar.libs.llm_router.base import BaseProvider
from northstar.libs.llm_router.router import ModelRouter
from northstar.libs.llm_router.types import LLMResponse, SystemStyle
from northstar.libs.memory import InMemoryBackend, MemoryStore
from northstar.libs.resilience import BreakerRegistry, ResilienceWrapper


class ScriptedProvider(BaseProvider):
    """Replays canned replies; exceptions in the script are raised. The last entry repeats."""

    def __init__(
        self,
        name: str,
        replies: Iterable[Any] = ("ok",),
        *,
        system_style: SystemStyle = SystemStyle.INLINE,
        role_map: dict[str, str] | None = None,
    ) -> None:
        super().__init__(name=name)
        self.system_style = system_style
        self.role_map = role_map or {}
        self._replies: List[Any] = list(replies)
        self.calls: List[dict[str, Any]] = []

    async def chat(self, *, messages, system=None, model=None, **kwargs: Any) -> LLMResponse:
        self.calls.append(
            {"messages": [dict(message) for message in messages], "system": system, "kwargs": kwargs}
        )
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return LLMResponse(model=f"{self.name}-test", text=reply, provider=self.name)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def resilience(clock: FakeClock, sleeper: RecordingSleep) -> ResilienceWrapper:
    return ResilienceWrapper(BreakerRegistry(), clock=clock, sleep=sleeper)


@pytest.fixture
def scripted():
    """Factory for :class:`ScriptedProvider` instances."""

    def _make(name: str, *replies: Any, separate: bool = False) -> ScriptedProvider:
        if separate:
            return ScriptedProvider(
                name,
                replies or ("ok",),
                system_style=SystemStyle.SEPARATE,
                role_map={"assistant": "model"},
            )
        return ScriptedProvider(name, replies or ("ok",))

    return _make


@pytest.fixture
def make_router(resilience: ResilienceWrapper):
    def _make(**providers: BaseProvider) -> ModelRouter:
        router = ModelRouter(resilience)
        for key, provider in providers.items():
            router.register_provider(key, provider)
        return router

    return _make


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore(InMemoryBackend())
