"""Policy-aware model router with per-provider failover."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from northstar.libs.resilience import ProviderError, ResilienceWrapper, breaker_key

from .base import BaseProvider
from .types import LLMResponse, RouteResult, SystemStyle, TaskClass

DEFAULT_POLICY: dict[TaskClass, tuple[str, str]] = {
    TaskClass.DEEP_REASONING: ("openai", "gemini"),
    TaskClass.CONVERSATIONAL: ("gemini", "openai"),
    TaskClass.MIXED: ("gemini", "openai"),
    TaskClass.CLASSIFICATION: ("openai", "gemini"),
}

NOT_CONFIGURED = "not configured"


class AllProvidersFailedError(RuntimeError):
    """Raised when both the preferred and fallback provider failed."""

    def __init__(self, task_class: TaskClass, failures: Mapping[str, str]) -> None:
        self.task_class = task_class
        self.failures = dict(failures)
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        super().__init__(f"All providers failed for task '{task_class.value}': {detail}")


@dataclass
class ModelRouteConfig:
    """Ordered (preferred, fallback) pair per task class."""

    policy: dict[TaskClass, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_POLICY)
    )


class ModelRouter:
    """Route a task class to its preferred provider and fall back once."""

    def __init__(
        self,
        resilience: ResilienceWrapper | None = None,
        *,
        config: ModelRouteConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._providers: dict[str, BaseProvider] = {}
        self._resilience = resilience or ResilienceWrapper()
        self._config = config or ModelRouteConfig()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def resilience(self) -> ResilienceWrapper:
        return self._resilience

    def register_provider(self, key: str, provider: BaseProvider) -> None:
        self._providers[key] = provider

    def set_policy(self, task_class: TaskClass, providers: Sequence[str]) -> None:
        """Assign the ordered provider keys for ``task_class``."""

        if not providers:
            raise ValueError("Provider policy requires at least one provider key")
        self._config.policy[TaskClass(task_class)] = tuple(dict.fromkeys(providers))

    def candidates(self, task_class: TaskClass) -> tuple[str, ...]:
        policy = self._config.policy.get(TaskClass(task_class))
        if not policy:
            raise ValueError(f"No providers configured for task '{TaskClass(task_class).value}'")
        return policy

    def has_provider_for(self, task_class: TaskClass) -> bool:
        return any(key in self._providers for key in self.candidates(task_class))

    async def route(
        self,
        task_class: TaskClass | str,
        system_instructions: str,
        user_text: str,
        history: Sequence[Mapping[str, Any]] | None = None,
        **options: Any,
    ) -> RouteResult:
        """Run one generation request, trying the fallback provider on any failure."""

        task = TaskClass(task_class)
        failures: dict[str, str] = {}
        for index, key in enumerate(self.candidates(task)):
            provider = self._providers.get(key)
            if provider is None:
                failures[key] = NOT_CONFIGURED
                continue

            system, messages = self._normalise(provider, system_instructions, user_text, history)
            label = breaker_key(key, task.value)

            async def _invoke(
                provider: BaseProvider = provider,
                system: str | None = system,
                messages: list[dict[str, Any]] = messages,
            ) -> LLMResponse:
                response = await provider.chat(messages=messages, system=system, **dict(options))
                if not (response.text or "").strip():
                    raise ProviderError(
                        f"{provider.name} returned an empty completion", provider=provider.name, transient=False
                    )
                return response

            try:
                result = await self._resilience.call(label, _invoke)
            except Exception as exc:
                self._logger.warning(
                    "provider_permanent_failure",
                    extra={
                        "provider": key,
                        "task_class": task.value,
                        "status": getattr(exc, "status", None),
                        "error": str(exc),
                    },
                )
                failures[key] = str(exc)
                continue

            if not result.ok:
                failures[key] = result.describe()
                continue

            response: LLMResponse = result.value
            fallback_used = index > 0
            if fallback_used:
                self._logger.info(
                    "provider_fallback_used",
                    extra={"provider": key, "task_class": task.value, "failures": failures},
                )
            self._log_usage(key, task, response)
            return RouteResult(
                provider_used=key,
                text=response.text,
                model=response.model,
                task_class=task,
                fallback_used=fallback_used,
                failures=dict(failures),
            )

        raise AllProvidersFailedError(task, failures)

    def _normalise(
        self,
        provider: BaseProvider,
        system_instructions: str,
        user_text: str,
        history: Sequence[Mapping[str, Any]] | None,
    ) -> tuple[str | None, list[dict[str, Any]]]:
        """Shape one request the way ``provider`` expects it."""

        turns = [
            {"role": str(entry.get("role")), "content": str(entry.get("content") or "")}
            for entry in (history or [])
            if entry.get("role") and entry.get("content")
        ]
        turns.append({"role": "user", "content": user_text})

        if provider.system_style is SystemStyle.INLINE:
            messages = [{"role": "system", "content": system_instructions}] if system_instructions else []
            messages.extend(turns)
            return None, messages

        system_parts = [system_instructions] if system_instructions else []
        messages = []
        for turn in turns:
            if turn["role"] == "system":
                system_parts.append(turn["content"])
                continue
            role = provider.role_map.get(turn["role"], turn["role"])
            messages.append({"role": role, "content": turn["content"]})
        return "\n\n".join(system_parts) or None, messages

    def _log_usage(self, key: str, task: TaskClass, response: LLMResponse) -> None:
        usage = response.usage or {}
        self._logger.info(
            "llm_task=%s provider=%s model=%s prompt_tokens=%s completion_tokens=%s",
            task.value,
            key,
            response.model,
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
        )


__all__ = [
    "AllProvidersFailedError",
    "DEFAULT_POLICY",
    "ModelRouteConfig",
    "ModelRouter",
    "NOT_CONFIGURED",
]
