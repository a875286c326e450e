import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from northstar.libs.llm_router.gemini_provider import GeminiProvider
from northstar.libs.llm_router.openai_provider import OpenAIProvider
from northstar.libs.resilience import ProviderError, ProviderNotConfiguredError

_OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class _FakeCompletions:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.payloads = []

    async def create(self, **payload):
        self.payloads.append(payload)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _fake_client(outcome):
    completions = _FakeCompletions(outcome)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.mark.asyncio
async def test_openai_inlines_system_and_reads_text() -> None:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Try a wind-down routine."))],
        usage=None,
        model="gpt-4o-mini",
    )
    client, completions = _fake_client(response)
    provider = OpenAIProvider("sk-test", client=client)

    result = await provider.chat(
        messages=[{"role": "user", "content": "help"}],
        system="You are a sleep coach.",
        temperature=0.1,
        force_json=True,
    )

    assert result.text == "Try a wind-down routine."
    assert result.provider == "openai"
    payload = completions.payloads[0]
    assert payload["messages"][0] == {"role": "system", "content": "You are a sleep coach."}
    assert payload["temperature"] == 0.1
    assert payload["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_openai_status_errors_keep_their_status() -> None:
    error = openai.APIStatusError(
        "service unavailable",
        response=httpx.Response(503, request=httpx.Request("POST", _OPENAI_URL)),
        body=None,
    )
    client, _ = _fake_client(error)
    provider = OpenAIProvider("sk-test", client=client)

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.status == 503
    assert excinfo.value.transient is True


@pytest.mark.asyncio
async def test_openai_timeout_is_transient() -> None:
    client, _ = _fake_client(openai.APITimeoutError(request=httpx.Request("POST", _OPENAI_URL)))
    provider = OpenAIProvider("sk-test", client=client)

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.transient is True
    assert excinfo.value.status == 408


@pytest.mark.asyncio
async def test_openai_without_key_is_not_configured() -> None:
    provider = OpenAIProvider(None)

    with pytest.raises(ProviderNotConfiguredError):
        await provider.chat(messages=[{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_gemini_sends_system_instruction_separately() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "friend"}]}}],
                "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 3},
            },
        )

    provider = GeminiProvider("g-key", transport=httpx.MockTransport(handler))
    result = await provider.chat(
        messages=[{"role": "user", "content": "hi"}, {"role": "model", "content": "hey"}],
        system="Be kind.",
        force_json=True,
    )

    assert result.text == "Hello friend"
    assert result.usage == {"prompt_tokens": 12, "completion_tokens": 3}
    assert seen["path"].endswith("/models/gemini-1.5-flash:generateContent")
    assert seen["key"] == "g-key"
    assert seen["body"]["systemInstruction"] == {"parts": [{"text": "Be kind."}]}
    assert [entry["role"] for entry in seen["body"]["contents"]] == ["user", "model"]
    assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, transient", [(503, True), (429, True), (400, False), (403, False)])
async def test_gemini_http_errors_are_classified(status: int, transient: bool) -> None:
    provider = GeminiProvider(
        "g-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(status, text="nope")),
    )

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.status == status
    assert excinfo.value.transient is transient


@pytest.mark.asyncio
async def test_gemini_network_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    provider = GeminiProvider("g-key", transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.transient is True


@pytest.mark.asyncio
async def test_gemini_without_key_is_not_configured() -> None:
    with pytest.raises(ProviderNotConfiguredError):
        await GeminiProvider(None).chat(messages=[{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_openai_empty_completion_is_a_permanent_error() -> None:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=""), finish_reason="content_filter")],
        usage=None,
        model="gpt-4o-mini",
    )
    client, _ = _fake_client(response)
    provider = OpenAIProvider("sk-test", client=client)

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.transient is False
    assert "content_filter" in str(excinfo.value)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, reason",
    [
        ({"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}}, "SAFETY"),
        ({"candidates": [{"content": {"parts": []}, "finishReason": "RECITATION"}]}, "RECITATION"),
        ({}, "no candidates"),
    ],
)
async def test_gemini_blocked_or_empty_reply_is_a_permanent_error(body, reason) -> None:
    provider = GeminiProvider(
        "g-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )

    with pytest.raises(ProviderError) as excinfo:
        await provider.chat(messages=[{"role": "user", "content": "hi"}])

    assert excinfo.value.transient is False
    assert reason in str(excinfo.value)
