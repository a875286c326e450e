"""Abstract provider interfaces for the LLM router."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from .types import LLMResponse, SystemStyle


class BaseProvider(ABC):
    """Common interface all LLM providers must implement."""

    system_style: SystemStyle = SystemStyle.INLINE
    role_map: Mapping[str, str] = {}

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def chat(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        system: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Perform a chat completion request.

        ``messages`` are already normalised to this provider's role names; when
        ``system_style`` is SEPARATE the system instruction arrives in ``system``.
        Failures must surface as ``ProviderError`` so the resilience layer can
        classify them.
        """


__all__ = ["BaseProvider"]
