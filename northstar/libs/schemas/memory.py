"""Durable per-user conversational memory records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TOPIC_KEYS: tuple[str, ...] = (
    "sleep",
    "mental_health",
    "nutrition",
    "fitness",
    "physical_health",
    "finances",
    "social",
    "spirituality",
)

ItemType = Literal["log", "habit", "goal", "plan", "screening"]
ITEM_TYPES: tuple[str, ...] = ("log", "habit", "goal", "plan", "screening")

TURN_CAP = 20
ITEM_CAP = 20
COVERED_CAP = 50
GLOBAL_WINDOW_CAP = 50
COVERED_RECENCY_DAYS = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_item_id() -> str:
    return uuid.uuid4().hex


class ConversationTurn(BaseModel):
    """One message in a conversation window; never edited after creation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class TrackedItem(BaseModel):
    """Structured artifact inferred from a specialist's output."""

    id: str = Field(default_factory=new_item_id)
    type: ItemType
    title: str
    topic: str
    content: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CoveredTopic(BaseModel):
    """Subject already delivered to the user, kept for anti-repetition."""

    subject: str
    covered_at: datetime = Field(default_factory=utcnow)


class PillarMemory(BaseModel):
    """Per-topic slice of a user's memory."""

    turns: list[ConversationTurn] = Field(default_factory=list)
    items: list[TrackedItem] = Field(default_factory=list)
    covered_topics: list[CoveredTopic] = Field(default_factory=list)
    last_artifact: TrackedItem | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)


def _empty_pillars() -> dict[str, PillarMemory]:
    return {key: PillarMemory() for key in TOPIC_KEYS}


class UserMemory(BaseModel):
    """Root record, one per user."""

    user_id: str = Field(min_length=1)
    last_updated: datetime = Field(default_factory=utcnow)
    version: int = 0
    global_window: list[ConversationTurn] = Field(default_factory=list)
    pillars: dict[str, PillarMemory] = Field(default_factory=_empty_pillars)

    @classmethod
    def empty(cls, user_id: str) -> "UserMemory":
        return cls(user_id=user_id)

    def pillar(self, topic: str) -> PillarMemory:
        """Return the topic slice, creating it when the key is unseen."""

        slot = self.pillars.get(topic)
        if slot is None:
            slot = PillarMemory()
            self.pillars[topic] = slot
        return slot

    def active_topics(self) -> list[str]:
        return [key for key, slot in self.pillars.items() if slot.turns or slot.items]

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = [
    "COVERED_CAP",
    "COVERED_RECENCY_DAYS",
    "ConversationTurn",
    "CoveredTopic",
    "GLOBAL_WINDOW_CAP",
    "ITEM_CAP",
    "ITEM_TYPES",
    "ItemType",
    "PillarMemory",
    "TOPIC_KEYS",
    "TURN_CAP",
    "TrackedItem",
    "UserMemory",
    "new_item_id",
    "utcnow",
]
