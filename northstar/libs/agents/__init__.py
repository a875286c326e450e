"""Pillar specialists and the registry the orchestrator dispatches through."""

from .base import AgentContext, AgentReply, SpecialistAgent, build_message_history
from .registry import AGENT_TASK_CLASSES, AgentRegistry, build_default_registry

__all__ = [
    "AGENT_TASK_CLASSES",
    "AgentContext",
    "AgentRegistry",
    "AgentReply",
    "SpecialistAgent",
    "build_default_registry",
    "build_message_history",
]
