"""Topic to specialist lookup."""

from __future__ import annotations

from typing import Dict, Iterable

from northstar.libs.llm_router import ModelRouter, TaskClass
from northstar.libs.routing.pillars import DEFAULT_TOPIC
from northstar.libs.schemas.memory import TOPIC_KEYS

from .base import AgentHandler, SpecialistAgent

# Analytical pillars go to the reasoning-preferred provider, coaching
# conversations to the conversational one.
AGENT_TASK_CLASSES: Dict[str, TaskClass] = {
    "sleep": TaskClass.DEEP_REASONING,
    "nutrition": TaskClass.DEEP_REASONING,
    "finances": TaskClass.DEEP_REASONING,
    "physical_health": TaskClass.DEEP_REASONING,
    "fitness": TaskClass.CONVERSATIONAL,
    "mental_health": TaskClass.CONVERSATIONAL,
    "social": TaskClass.CONVERSATIONAL,
    "spirituality": TaskClass.CONVERSATIONAL,
}


class AgentRegistry:
    """Maps a topic key to the handler that answers it."""

    def __init__(self, default_topic: str = DEFAULT_TOPIC) -> None:
        self._handlers: Dict[str, AgentHandler] = {}
        self._default_topic = default_topic

    def register(self, topic: str, handler: AgentHandler) -> None:
        self._handlers[topic] = handler

    def get(self, topic: str) -> AgentHandler:
        handler = self._handlers.get(topic) or self._handlers.get(self._default_topic)
        if handler is None:
            raise KeyError(f"No specialist registered for topic '{topic}'")
        return handler

    def topics(self) -> Iterable[str]:
        return tuple(self._handlers)

    def __contains__(self, topic: object) -> bool:
        return topic in self._handlers


def build_default_registry(router: ModelRouter) -> AgentRegistry:
    registry = AgentRegistry()
    for topic in TOPIC_KEYS:
        registry.register(
            topic,
            SpecialistAgent(topic, router, task_class=AGENT_TASK_CLASSES.get(topic, TaskClass.MIXED)),
        )
    return registry


__all__ = ["AGENT_TASK_CLASSES", "AgentRegistry", "build_default_registry"]
