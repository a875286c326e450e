"""Shared plumbing for pillar specialists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Sequence

from northstar.libs.llm_router import ModelRouter, TaskClass
from northstar.libs.memory.mutations import covered_subjects, recent_turns
from northstar.libs.routing.pillars import PILLAR_NAMES
from northstar.libs.schemas.memory import UserMemory

from .prompts import DEGRADED_REPLY, SPECIALIST_PROMPTS, TAGGING_INSTRUCTIONS

HISTORY_LIMIT = 5
_ITEMS_IN_CONTEXT = 8


@dataclass
class AgentContext:
    """Everything a specialist may read for one turn."""

    user_id: str
    topic: str
    memory: UserMemory
    history: List[Dict[str, str]] | None = None
    task_class: TaskClass | None = None
    extra_notes: str = ""


@dataclass
class AgentReply:
    text: str
    provider_used: str | None = None
    model: str | None = None
    fallback_used: bool = False
    degraded: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


class AgentHandler(Protocol):
    name: str
    topic: str

    async def handle(self, context: AgentContext, message: str) -> AgentReply:
        ...

    def degraded_reply(self, reason: str | None = None) -> AgentReply:
        ...


def _memory_summary(memory: UserMemory, topic: str) -> str:
    slot = memory.pillars.get(topic)
    if slot is None:
        return ""
    lines: List[str] = []
    tracked = [item for item in slot.items if item.type != "log"][-_ITEMS_IN_CONTEXT:]
    if tracked:
        lines.append("Tracked items:")
        lines.extend(f"- {item.type}: {item.title}" for item in tracked)
    if slot.last_artifact is not None:
        lines.append(f"Most recent {slot.last_artifact.type}: {slot.last_artifact.title}")
    if slot.preferences:
        prefs = ", ".join(f"{key}={value}" for key, value in sorted(slot.preferences.items()))
        lines.append(f"Preferences: {prefs}")
    return "\n".join(lines)


def build_message_history(
    context: AgentContext,
    agent_system_prompt: str,
    last_messages: Sequence[Mapping[str, Any]] | None = None,
    extra_notes: str = "",
) -> tuple[str, List[Dict[str, str]]]:
    """Assemble the system prompt and the recent history sent with a turn.

    History is capped at the last five non-system messages; covered subjects
    from the last 30 days are listed so the model does not repeat itself.
    """

    if not context.user_id or not context.topic:
        raise ValueError("build_message_history requires a context with user_id and topic")
    if not agent_system_prompt or not isinstance(agent_system_prompt, str):
        raise ValueError("build_message_history requires a non-empty agent system prompt")

    parts = [
        "=== NORTHSTAR WELLNESS COACHING SYSTEM ===",
        "",
        "You are an AI coach within NorthStar, a holistic wellness application that helps users",
        "improve their lives across 8 core pillars:",
        *(f"- {name}" for name in PILLAR_NAMES.values()),
        "",
        f"CURRENT FOCUS: {PILLAR_NAMES.get(context.topic, context.topic)} pillar",
        "",
    ]

    summary = _memory_summary(context.memory, context.topic)
    if summary:
        parts.extend(["=== USER MEMORY ===", summary, ""])

    parts.extend(["=== YOUR ROLE AND INSTRUCTIONS ===", "", agent_system_prompt, "", TAGGING_INSTRUCTIONS])

    notes: List[str] = []
    covered = covered_subjects(context.memory, context.topic)
    if covered:
        notes.append("Already covered recently (do not repeat unless asked): " + ", ".join(covered[-10:]))
    for note in (extra_notes, context.extra_notes):
        if note and note.strip():
            notes.append(note.strip())
    if notes:
        parts.extend(["", "=== ADDITIONAL CONTEXT ===", "", *notes])

    history = [
        {"role": str(msg["role"]), "content": str(msg["content"])}
        for msg in list(last_messages or [])[-HISTORY_LIMIT:]
        if msg and msg.get("role") in ("user", "assistant") and msg.get("content")
    ]
    return "\n".join(parts), history


class SpecialistAgent:
    """One pillar specialist backed by the model router."""

    def __init__(
        self,
        topic: str,
        router: ModelRouter,
        *,
        task_class: TaskClass = TaskClass.CONVERSATIONAL,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> None:
        self.topic = topic
        self.name = PILLAR_NAMES.get(topic, topic)
        self.task_class = task_class
        self.system_prompt = system_prompt or SPECIALIST_PROMPTS[topic]
        self._router = router
        self._temperature = temperature
        self._max_tokens = max_tokens

    def stored_history(self, context: AgentContext) -> List[Dict[str, str]]:
        return [
            {"role": turn.role, "content": turn.text}
            for turn in recent_turns(context.memory, context.topic, HISTORY_LIMIT)
        ]

    async def handle(self, context: AgentContext, message: str) -> AgentReply:
        """Generate a reply; :class:`AllProvidersFailedError` propagates to the caller."""

        last_messages = context.history if context.history is not None else self.stored_history(context)
        system_prompt, history = build_message_history(context, self.system_prompt, last_messages)
        result = await self._router.route(
            context.task_class or self.task_class,
            system_prompt,
            message,
            history,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return AgentReply(
            text=result.text,
            provider_used=result.provider_used,
            model=result.model,
            fallback_used=result.fallback_used,
            meta={"task_class": result.task_class.value, "provider_failures": result.failures},
        )

    def degraded_reply(self, reason: str | None = None) -> AgentReply:
        return AgentReply(
            text=DEGRADED_REPLY,
            degraded=True,
            meta={"reason": reason} if reason else {},
        )


__all__ = [
    "AgentContext",
    "AgentHandler",
    "AgentReply",
    "HISTORY_LIMIT",
    "SpecialistAgent",
    "build_message_history",
]
