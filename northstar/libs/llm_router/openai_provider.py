"""OpenAI provider implementation for the NorthStar LLM router."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import openai
from openai import AsyncOpenAI

from northstar.libs.resilience.errors import ProviderError, ProviderNotConfiguredError

from .base import BaseProvider
from .types import LLMResponse, SystemStyle


class OpenAIProvider(BaseProvider):
    """Provider that talks to OpenAI chat completions; system text travels inline."""

    system_style = SystemStyle.INLINE

    def __init__(
        self,
        api_key: str | None,
        *,
        model_chat: str = "gpt-4o-mini",
        timeout: float = 30.0,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(name="openai")
        self._api_key = api_key
        self._model_chat = model_chat
        self._timeout = timeout
        self._base_url = base_url
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ProviderNotConfiguredError("OpenAI is not configured", provider=self.name)
            # Retries belong to the resilience layer, not the SDK.
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        system: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        if not messages:
            raise ProviderError(
                "OpenAI provider: 'messages' must be a non-empty sequence.",
                provider=self.name,
                transient=False,
            )

        payload_messages = [dict(message) for message in messages]
        if system:
            payload_messages.insert(0, {"role": "system", "content": system})

        temperature = kwargs.pop("temperature", 0.7)
        max_tokens = kwargs.pop("max_tokens", 1500)
        force_json = bool(kwargs.pop("force_json", False))

        payload: dict[str, Any] = {
            "model": model or self._model_chat,
            "messages": payload_messages,
            "temperature": float(temperature),
            "max_tokens": int(max_tokens),
            **kwargs,
        }
        if force_json:
            payload["response_format"] = {"type": "json_object"}

        client = self._get_client()
        try:
            response = await client.chat.completions.create(**payload)
        except openai.APITimeoutError as exc:
            raise ProviderError("OpenAI request timed out", provider=self.name, status=408) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(
                "OpenAI network failure", provider=self.name, transient=True
            ) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"OpenAI API call failed ({exc.status_code})",
                provider=self.name,
                status=exc.status_code,
            ) from exc

        choice = response.choices[0] if response.choices else None
        message = getattr(choice, "message", None)
        text_content = (getattr(message, "content", "") or "") if message is not None else ""
        if not text_content.strip():
            reason = getattr(choice, "finish_reason", None)
            raise ProviderError(
                f"OpenAI returned an empty completion ({reason or 'no choices'})",
                provider=self.name,
                transient=False,
            )

        usage = response.usage
        usage_dict = usage.model_dump() if usage is not None and hasattr(usage, "model_dump") else {}

        return LLMResponse(
            model=getattr(response, "model", payload["model"]),
            text=text_content,
            provider=self.name,
            usage=usage_dict,
        )


def make_openai_provider(settings: Any) -> OpenAIProvider | None:
    if not settings.openai_api_key:
        return None
    return OpenAIProvider(
        settings.openai_api_key,
        model_chat=settings.openai_model,
        timeout=settings.openai_timeout,
        base_url=settings.openai_base_url,
    )


__all__ = ["OpenAIProvider", "make_openai_provider"]
