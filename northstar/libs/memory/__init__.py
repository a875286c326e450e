"""Durable per-user, per-topic conversational memory."""

from .backends import FileMemoryBackend, InMemoryBackend, PostgresMemoryBackend, build_backend
from .errors import MemoryConflictError, MemoryStoreError
from .mutations import (
    add_item,
    append_exchange,
    append_global_exchange,
    append_turn,
    is_covered,
    mark_covered,
    normalize_title,
    recent_turns,
    set_last_artifact,
    upsert_item,
)
from .store import MemoryStore

__all__ = [
    "FileMemoryBackend",
    "InMemoryBackend",
    "MemoryConflictError",
    "MemoryStore",
    "MemoryStoreError",
    "PostgresMemoryBackend",
    "add_item",
    "append_exchange",
    "append_global_exchange",
    "append_turn",
    "build_backend",
    "is_covered",
    "mark_covered",
    "normalize_title",
    "recent_turns",
    "set_last_artifact",
    "upsert_item",
]
