"""Gemini provider speaking the Generative Language REST API over httpx."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from northstar.libs.resilience.errors import ProviderError, ProviderNotConfiguredError

from .base import BaseProvider
from .types import LLMResponse, SystemStyle

GEMINI_DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(BaseProvider):
    """Gemini takes the system instruction as its own field and calls the assistant ``model``."""

    system_style = SystemStyle.SEPARATE
    role_map = {"assistant": "model"}

    def __init__(
        self,
        api_key: str | None,
        *,
        model_chat: str = "gemini-1.5-flash",
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(name="gemini")
        self._api_key = api_key
        self._model_chat = model_chat
        self._base_url = base_url or GEMINI_DEFAULT_BASE_URL
        self._timeout = timeout
        self._transport = transport
        self._logger = logging.getLogger(__name__)

    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        system: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        if not self._api_key:
            raise ProviderNotConfiguredError("Gemini is not configured", provider=self.name)

        resolved_model = model or self._model_chat
        generation_config: dict[str, Any] = {
            "temperature": float(kwargs.pop("temperature", 0.7)),
            "maxOutputTokens": int(kwargs.pop("max_tokens", 1500)),
        }
        if kwargs.pop("force_json", False):
            generation_config["responseMimeType"] = "application/json"

        payload: dict[str, Any] = {
            "contents": [self._serialise_message(message) for message in messages],
            "generationConfig": generation_config,
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        data = await self._post(f"/models/{resolved_model}:generateContent", payload)
        candidate = (data.get("candidates") or [{}])[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            reason = candidate.get("finishReason") or (data.get("promptFeedback") or {}).get("blockReason")
            raise ProviderError(
                f"Gemini returned an empty completion ({reason or 'no candidates'})",
                provider=self.name,
                transient=False,
            )

        usage_meta = data.get("usageMetadata") or {}
        usage = {
            "prompt_tokens": usage_meta.get("promptTokenCount"),
            "completion_tokens": usage_meta.get("candidatesTokenCount"),
        }
        return LLMResponse(
            model=data.get("modelVersion") or resolved_model,
            text=text,
            provider=self.name,
            usage=usage,
            raw=data,
        )

    async def _post(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url.rstrip('/')}{path}"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key or "",
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
            except httpx.TimeoutException as exc:
                raise ProviderError("Gemini request timed out", provider=self.name, status=408) from exc
            except httpx.RequestError as exc:
                raise ProviderError(
                    f"Gemini network error: {exc}", provider=self.name, transient=True
                ) from exc

        if not response.is_success:
            raise ProviderError(
                f"Gemini {response.status_code}. Body: {response.text[:400]}",
                provider=self.name,
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                "Gemini returned a non-JSON body", provider=self.name, status=502
            ) from exc

    def _serialise_message(self, message: Mapping[str, Any]) -> dict[str, Any]:
        role = message.get("role")
        content = message.get("content")
        if role is None or content is None:
            raise ProviderError(
                "Chat messages must include 'role' and 'content'",
                provider=self.name,
                transient=False,
            )
        return {"role": role, "parts": [{"text": str(content)}]}


def make_gemini_provider(settings: Any) -> GeminiProvider | None:
    if not settings.gemini_api_key:
        return None
    return GeminiProvider(
        settings.gemini_api_key,
        model_chat=settings.gemini_model,
        timeout=settings.gemini_timeout,
    )


__all__ = ["GEMINI_DEFAULT_BASE_URL", "GeminiProvider", "make_gemini_provider"]
