import pytest

from northstar.libs.llm_router import AllProvidersFailedError, ModelRouter, TaskClass
from northstar.libs.resilience import ProviderError


@pytest.mark.asyncio
async def test_inline_provider_gets_system_as_first_message(scripted, make_router) -> None:
    openai = scripted("openai", "hello")
    router = make_router(openai=openai)

    result = await router.route(
        TaskClass.DEEP_REASONING,
        "You are a coach.",
        "How do I sleep better?",
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hey"}],
    )

    assert result.provider_used == "openai"
    assert result.text == "hello"
    assert result.fallback_used is False
    call = openai.calls[0]
    assert call["system"] is None
    assert call["messages"] == [
        {"role": "system", "content": "You are a coach."},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hey"},
        {"role": "user", "content": "How do I sleep better?"},
    ]


@pytest.mark.asyncio
async def test_separate_provider_gets_system_parameter_and_model_role(scripted, make_router) -> None:
    gemini = scripted("gemini", "hi there", separate=True)
    router = make_router(gemini=gemini)

    await router.route(
        TaskClass.CONVERSATIONAL,
        "Be warm.",
        "I feel lonely",
        [
            {"role": "system", "content": "User prefers short replies."},
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi!"},
        ],
        temperature=0.2,
    )

    call = gemini.calls[0]
    assert call["system"] == "Be warm.\n\nUser prefers short replies."
    assert [message["role"] for message in call["messages"]] == ["user", "model", "user"]
    assert call["kwargs"]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_transient_failure_falls_back_after_retries(scripted, make_router) -> None:
    openai = scripted("openai", ProviderError("overloaded", provider="openai", status=503))
    gemini = scripted("gemini", "from gemini", separate=True)
    router = make_router(openai=openai, gemini=gemini)

    result = await router.route(TaskClass.DEEP_REASONING, "sys", "plan my budget")

    assert result.provider_used == "gemini"
    assert result.fallback_used is True
    assert "openai" in result.failures
    assert len(openai.calls) == 3
    assert router.resilience.breaker("openai:deep_reasoning").failure_count == 3


@pytest.mark.asyncio
async def test_permanent_failure_falls_back_without_retry(scripted, make_router) -> None:
    openai = scripted("openai", ProviderError("bad request", provider="openai", status=400))
    gemini = scripted("gemini", "fine", separate=True)
    router = make_router(openai=openai, gemini=gemini)

    result = await router.route(TaskClass.CLASSIFICATION, "sys", "text")

    assert result.provider_used == "gemini"
    assert len(openai.calls) == 1
    assert router.resilience.breaker("openai:classification").failure_count == 0


@pytest.mark.asyncio
async def test_empty_completion_falls_back_to_next_provider(scripted, make_router) -> None:
    gemini = scripted("gemini", "", separate=True)
    openai = scripted("openai", "fallback answer")
    router = make_router(openai=openai, gemini=gemini)

    result = await router.route(TaskClass.CONVERSATIONAL, "sys", "hi")

    assert result.provider_used == "openai"
    assert result.text == "fallback answer"
    assert result.fallback_used is True
    assert "empty completion" in result.failures["gemini"]
    assert len(gemini.calls) == 1
    assert router.resilience.breaker("gemini:conversational").failure_count == 0


@pytest.mark.asyncio
async def test_conversational_prefers_gemini(scripted, make_router) -> None:
    openai = scripted("openai", "openai reply")
    gemini = scripted("gemini", "gemini reply", separate=True)
    router = make_router(openai=openai, gemini=gemini)

    result = await router.route(TaskClass.CONVERSATIONAL, "sys", "hi")

    assert result.provider_used == "gemini"
    assert openai.calls == []


@pytest.mark.asyncio
async def test_missing_provider_counts_as_not_configured(scripted, make_router) -> None:
    openai = scripted("openai", "only me")
    router = make_router(openai=openai)

    result = await router.route(TaskClass.MIXED, "sys", "hi")

    assert result.provider_used == "openai"
    assert result.failures == {"gemini": "not configured"}


@pytest.mark.asyncio
async def test_all_providers_failed_names_each_reason(scripted, make_router) -> None:
    openai = scripted("openai", ProviderError("invalid key", provider="openai", status=401))
    router = make_router(openai=openai)

    with pytest.raises(AllProvidersFailedError) as excinfo:
        await router.route(TaskClass.DEEP_REASONING, "sys", "hi")

    failures = excinfo.value.failures
    assert set(failures) == {"openai", "gemini"}
    assert "invalid key" in failures["openai"]
    assert failures["gemini"] == "not configured"


@pytest.mark.asyncio
async def test_open_breaker_skips_straight_to_fallback(scripted, make_router) -> None:
    openai = scripted("openai", ProviderError("down", provider="openai", status=500))
    gemini = scripted("gemini", "backup", separate=True)
    router = make_router(openai=openai, gemini=gemini)

    await router.route(TaskClass.DEEP_REASONING, "sys", "one")
    await router.route(TaskClass.DEEP_REASONING, "sys", "two")
    calls_before = len(openai.calls)
    result = await router.route(TaskClass.DEEP_REASONING, "sys", "three")

    assert len(openai.calls) == calls_before == 5
    assert result.provider_used == "gemini"
    assert result.failures["openai"].startswith("circuit open")


def test_policy_helpers(scripted) -> None:
    router = ModelRouter()
    assert router.has_provider_for(TaskClass.CLASSIFICATION) is False
    router.register_provider("gemini", scripted("gemini", separate=True))
    assert router.has_provider_for(TaskClass.CLASSIFICATION) is True

    router.set_policy(TaskClass.CLASSIFICATION, ["gemini", "gemini"])
    assert router.candidates(TaskClass.CLASSIFICATION) == ("gemini",)
    with pytest.raises(ValueError):
        router.set_policy(TaskClass.MIXED, [])
