"""Persistence gate: nothing advice-shaped is delivered before it is saved.

Every specialist reply passes through :meth:`PersistenceGate.persist`. The
gate records an interaction log plus any tagged items (``Habit: "..."``,
``Goal: ...``) the reply mentions, writes the record, and only then appends a
save confirmation. If the write fails the reply is withheld when it looks like
advice, and the user is told that saving failed instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from northstar.libs.memory import MemoryStore
from northstar.libs.memory.mutations import (
    add_item,
    append_exchange,
    append_global_exchange,
    covered_subject,
    mark_covered,
    set_last_artifact,
    upsert_item,
)
from northstar.libs.schemas.memory import UserMemory

logger = logging.getLogger(__name__)

DEFAULT_AGENT_NAME = "NorthStar AI"
USER_TEXT_LIMIT = 2000
ASSISTANT_TEXT_LIMIT = 4000

TAG_PATTERN = re.compile(
    r"^(habit|smartgoal|smart\s*goal|goal|lifeplan|life\s*plan|plan|screening|assessment|protocol)\s*:\s*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)
_LIST_MARKER = re.compile(r"^\s*([-*]|\d+\.)\s+", re.MULTILINE)
_IMPERATIVE = re.compile(
    r"\b(try|do|start|stop|avoid|focus|aim|plan|practice|track|schedule)\b",
    re.IGNORECASE,
)
_QUOTES = "\"'“”‘’"

_TYPE_ALIASES = {
    "habit": "habit",
    "goal": "goal",
    "smartgoal": "goal",
    "plan": "plan",
    "lifeplan": "plan",
    "protocol": "plan",
    "screening": "screening",
    "assessment": "screening",
}

ARTIFACT_TYPES = frozenset({"plan", "screening"})


def normalize_item_type(raw: str) -> str | None:
    key = re.sub(r"[\s_]+", "", (raw or "").strip().lower())
    return _TYPE_ALIASES.get(key)


@dataclass(frozen=True)
class TaggedItem:
    type: str
    title: str


def extract_tagged_items(text: str) -> List[TaggedItem]:
    """Find ``Type: title`` lines in ``text``, in order of appearance."""

    items: List[TaggedItem] = []
    for match in TAG_PATTERN.finditer(text or ""):
        item_type = normalize_item_type(match.group(1))
        title = match.group(2).strip().strip(_QUOTES).strip()
        if item_type and title:
            items.append(TaggedItem(type=item_type, title=title))
    return items


def looks_like_advice(text: str) -> bool:
    """Heuristic for advice: list markers, imperative verbs, or anything over 40 chars."""

    stripped = (text or "").strip()
    if not stripped:
        return False
    if _LIST_MARKER.search(stripped):
        return True
    if _IMPERATIVE.search(stripped):
        return True
    return len(stripped) > 40


@dataclass
class SaveSummary:
    saved: bool
    items: List[Dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {"saved": self.saved, "items": list(self.items), "error": self.error}


@dataclass
class PersistResult:
    ok: bool
    text: str
    save_summary: SaveSummary


def build_save_confirmation(summary: SaveSummary) -> str:
    if not summary.saved:
        return (
            "\n\nI couldn't save this to your account/session right now. "
            "I'm pausing coaching advice until saving works, please retry in a moment."
        )
    tagged = [item for item in summary.items if item.get("type") != "log"]
    if not tagged:
        return "\n\nSaved: coaching log."
    labels = ", ".join(f'{item["action"]} {item["type"]} "{item["title"]}"' for item in tagged)
    return f"\n\nSaved: coaching log; {labels}."


class PersistenceGate:
    """Write the interaction and its tagged items, then decide what the user sees."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def persist(
        self,
        memory: UserMemory,
        topic: str,
        user_text: str,
        assistant_text: str,
        *,
        agent_name: str = DEFAULT_AGENT_NAME,
    ) -> PersistResult:
        text = (assistant_text or "").strip()
        user_text = user_text or ""

        try:
            append_global_exchange(memory, user_text, text)

            log_item = add_item(
                memory,
                topic,
                "log",
                f"{agent_name or DEFAULT_AGENT_NAME} coaching log",
                {
                    "user_message": user_text[:USER_TEXT_LIMIT],
                    "assistant_text": text[:ASSISTANT_TEXT_LIMIT],
                },
            )
            saved_items: List[Dict[str, Any]] = [
                {"type": "log", "id": log_item.id, "topic": topic, "action": "created", "title": log_item.title}
            ]

            for tagged in extract_tagged_items(text):
                item, created = upsert_item(
                    memory,
                    topic,
                    tagged.type,
                    tagged.title,
                    {"title": tagged.title, "extracted_from": "assistant_text"},
                )
                mark_covered(memory, topic, covered_subject(item))
                if item.type in ARTIFACT_TYPES:
                    set_last_artifact(memory, topic, item)
                saved_items.append(
                    {
                        "type": item.type,
                        "id": item.id,
                        "topic": topic,
                        "action": "created" if created else "updated",
                        "title": item.title,
                    }
                )

            summary = SaveSummary(saved=True, items=saved_items)
            final_text = f"{text}{build_save_confirmation(summary)}"
            append_exchange(memory, topic, user_text, final_text)

            await self._store.save(memory.user_id, memory)
        except Exception as exc:
            logger.error(
                "persistence_gate_save_failed",
                extra={"user_id": memory.user_id, "topic": topic, "error": str(exc)},
            )
            summary = SaveSummary(saved=False, error=str(exc) or type(exc).__name__)
            notice = build_save_confirmation(summary)
            delivered = notice if looks_like_advice(text) else f"{text}{notice}"
            return PersistResult(ok=False, text=delivered.strip(), save_summary=summary)

        logger.info(
            "persistence_gate_saved",
            extra={"user_id": memory.user_id, "topic": topic, "items": len(saved_items)},
        )
        return PersistResult(ok=True, text=final_text, save_summary=summary)


__all__ = [
    "PersistResult",
    "PersistenceGate",
    "SaveSummary",
    "TaggedItem",
    "build_save_confirmation",
    "extract_tagged_items",
    "looks_like_advice",
    "normalize_item_type",
]
