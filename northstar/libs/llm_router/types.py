"""Shared type utilities for the LLM router."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class TaskClass(str, Enum):
    """Closed set of task classifications the router knows how to place."""

    DEEP_REASONING = "deep_reasoning"
    CONVERSATIONAL = "conversational"
    MIXED = "mixed"
    CLASSIFICATION = "classification"


class SystemStyle(str, Enum):
    """How a provider expects the system instruction to be delivered."""

    INLINE = "inline"
    SEPARATE = "separate"


@dataclass(slots=True)
class LLMResponse:
    """Normalised LLM response payload returned by providers."""

    model: str
    text: str
    provider: str | None = None
    usage: Mapping[str, Any] | None = None
    raw: Mapping[str, Any] | None = None


@dataclass(slots=True)
class RouteResult:
    """What the router hands back to specialist handlers."""

    provider_used: str
    text: str
    model: str
    task_class: TaskClass
    fallback_used: bool = False
    failures: dict[str, str] = field(default_factory=dict)


__all__ = ["LLMResponse", "RouteResult", "SystemStyle", "TaskClass"]
