"""Task-class routing across text-generation providers."""

from .base import BaseProvider
from .gemini_provider import GEMINI_DEFAULT_BASE_URL, GeminiProvider
from .openai_provider import OpenAIProvider
from .router import AllProvidersFailedError, ModelRouteConfig, ModelRouter
from .types import LLMResponse, RouteResult, SystemStyle, TaskClass

__all__ = [
    "AllProvidersFailedError",
    "BaseProvider",
    "GEMINI_DEFAULT_BASE_URL",
    "GeminiProvider",
    "LLMResponse",
    "ModelRouteConfig",
    "ModelRouter",
    "OpenAIProvider",
    "RouteResult",
    "SystemStyle",
    "TaskClass",
]
