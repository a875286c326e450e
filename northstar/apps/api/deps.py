"""Build the shared pipeline objects from settings."""

from __future__ import annotations

import logging
from functools import lru_cache

from northstar.libs.agents import build_default_registry
from northstar.libs.llm_router import ModelRouter
from northstar.libs.llm_router.gemini_provider import make_gemini_provider
from northstar.libs.llm_router.openai_provider import make_openai_provider
from northstar.libs.memory import MemoryStore, build_backend
from northstar.libs.resilience import ResilienceWrapper
from northstar.libs.routing import TopicClassifier
from northstar.libs.safety import CrisisGate
from northstar.libs.schemas.settings import AppSettings, get_settings

from .services.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


def build_router(settings: AppSettings, resilience: ResilienceWrapper | None = None) -> ModelRouter:
    router = ModelRouter(resilience or ResilienceWrapper())
    for key, factory in (("openai", make_openai_provider), ("gemini", make_gemini_provider)):
        provider = factory(settings)
        if provider is None:
            logger.warning("provider_not_configured", extra={"provider": key})
            continue
        router.register_provider(key, provider)
    return router


def build_orchestrator(
    settings: AppSettings,
    *,
    router: ModelRouter | None = None,
    store: MemoryStore | None = None,
) -> Orchestrator:
    router = router or build_router(settings)
    store = store or MemoryStore(build_backend(settings.memory_backend, directory=settings.memory_dir))
    return Orchestrator(
        crisis_gate=CrisisGate.with_model(router, country=settings.crisis_country),
        classifier=TopicClassifier(router),
        registry=build_default_registry(router),
        store=store,
        router=router,
        force_provider_failure=settings.forced_failure_enabled,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    return build_orchestrator(get_settings())


__all__ = ["build_orchestrator", "build_router", "get_orchestrator"]
