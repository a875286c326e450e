"""In-memory mutations on a loaded :class:`UserMemory`.

Every helper enforces the caps on the slice it touches, so a record is never
persisted over-length regardless of which helper changed it last.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any, Mapping

from northstar.libs.schemas.memory import (
    COVERED_CAP,
    COVERED_RECENCY_DAYS,
    GLOBAL_WINDOW_CAP,
    ITEM_CAP,
    TURN_CAP,
    ConversationTurn,
    CoveredTopic,
    PillarMemory,
    TrackedItem,
    UserMemory,
    utcnow,
)

_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    return _WHITESPACE.sub(" ", (title or "").strip().lower())


def _trim_turns(turns: list[ConversationTurn], cap: int) -> None:
    if len(turns) > cap:
        del turns[: len(turns) - cap]


def _trim_items(slot: PillarMemory) -> None:
    overflow = len(slot.items) - ITEM_CAP
    if overflow <= 0:
        return
    # Oldest logs go first so habits and goals survive a long run of chat logs.
    log_indexes = [index for index, item in enumerate(slot.items) if item.type == "log"]
    drop = set(log_indexes[:overflow])
    remaining = overflow - len(drop)
    if remaining > 0:
        others = [index for index in range(len(slot.items)) if index not in drop]
        drop.update(others[:remaining])
    slot.items = [item for index, item in enumerate(slot.items) if index not in drop]


def append_turn(
    memory: UserMemory,
    topic: str,
    role: str,
    text: str,
    *,
    timestamp: datetime | None = None,
) -> ConversationTurn:
    turn = ConversationTurn(role=role, text=text, timestamp=timestamp or utcnow())
    slot = memory.pillar(topic)
    slot.turns.append(turn)
    _trim_turns(slot.turns, TURN_CAP)
    return turn


def append_exchange(memory: UserMemory, topic: str, user_text: str, assistant_text: str) -> None:
    """Record one user/assistant pair in the topic history."""

    now = utcnow()
    append_turn(memory, topic, "user", user_text, timestamp=now)
    append_turn(memory, topic, "assistant", assistant_text, timestamp=now)


def append_global_exchange(memory: UserMemory, user_text: str, assistant_text: str) -> None:
    now = utcnow()
    memory.global_window.append(ConversationTurn(role="user", text=user_text, timestamp=now))
    memory.global_window.append(ConversationTurn(role="assistant", text=assistant_text, timestamp=now))
    _trim_turns(memory.global_window, GLOBAL_WINDOW_CAP)


def recent_turns(memory: UserMemory, topic: str, limit: int = TURN_CAP) -> list[ConversationTurn]:
    slot = memory.pillars.get(topic)
    if slot is None or limit <= 0:
        return []
    return list(slot.turns[-limit:])


def add_item(
    memory: UserMemory,
    topic: str,
    item_type: str,
    title: str,
    content: Mapping[str, Any] | None = None,
) -> TrackedItem:
    """Append an item without deduplication (used for interaction logs)."""

    item = TrackedItem(type=item_type, title=title, topic=topic, content=dict(content or {}))
    slot = memory.pillar(topic)
    slot.items.append(item)
    _trim_items(slot)
    return item


def find_item(memory: UserMemory, topic: str, item_type: str, title: str) -> TrackedItem | None:
    slot = memory.pillars.get(topic)
    if slot is None:
        return None
    wanted = normalize_title(title)
    for item in slot.items:
        if item.type == item_type and normalize_title(item.title) == wanted:
            return item
    return None


def upsert_item(
    memory: UserMemory,
    topic: str,
    item_type: str,
    title: str,
    content: Mapping[str, Any] | None = None,
) -> tuple[TrackedItem, bool]:
    """Create or update the item keyed by ``(item_type, normalized title)``.

    Returns the stored item and ``True`` when it was newly created.
    """

    if item_type == "log":
        return add_item(memory, topic, item_type, title, content), True

    existing = find_item(memory, topic, item_type, title)
    if existing is None:
        return add_item(memory, topic, item_type, title, content), True

    existing.content.update(dict(content or {}))
    existing.updated_at = utcnow()
    return existing, False


def covered_subject(item: TrackedItem) -> str:
    return f"{item.type}:{normalize_title(item.title)}"


def is_covered(
    memory: UserMemory,
    topic: str,
    subject: str,
    *,
    now: datetime | None = None,
) -> bool:
    slot = memory.pillars.get(topic)
    if slot is None:
        return False
    cutoff = (now or utcnow()) - timedelta(days=COVERED_RECENCY_DAYS)
    return any(entry.subject == subject and entry.covered_at > cutoff for entry in slot.covered_topics)


def mark_covered(
    memory: UserMemory,
    topic: str,
    subject: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Record ``subject`` as covered; returns False when it already was."""

    now = now or utcnow()
    if is_covered(memory, topic, subject, now=now):
        return False
    slot = memory.pillar(topic)
    slot.covered_topics = [entry for entry in slot.covered_topics if entry.subject != subject]
    slot.covered_topics.append(CoveredTopic(subject=subject, covered_at=now))
    if len(slot.covered_topics) > COVERED_CAP:
        slot.covered_topics = slot.covered_topics[-COVERED_CAP:]
    return True


def covered_subjects(memory: UserMemory, topic: str, *, now: datetime | None = None) -> list[str]:
    slot = memory.pillars.get(topic)
    if slot is None:
        return []
    cutoff = (now or utcnow()) - timedelta(days=COVERED_RECENCY_DAYS)
    return [entry.subject for entry in slot.covered_topics if entry.covered_at > cutoff]


def set_last_artifact(memory: UserMemory, topic: str, item: TrackedItem) -> None:
    memory.pillar(topic).last_artifact = item.model_copy(deep=True)


def set_preference(memory: UserMemory, topic: str, key: str, value: Any) -> None:
    memory.pillar(topic).preferences[key] = value


__all__ = [
    "add_item",
    "append_exchange",
    "append_global_exchange",
    "append_turn",
    "covered_subject",
    "covered_subjects",
    "find_item",
    "is_covered",
    "mark_covered",
    "normalize_title",
    "recent_turns",
    "set_last_artifact",
    "set_preference",
    "upsert_item",
]
