"""Pydantic models and schema utilities."""

from .db import close_async_pool, get_async_pool
from .memory import (
    ConversationTurn,
    CoveredTopic,
    PillarMemory,
    TOPIC_KEYS,
    TrackedItem,
    UserMemory,
)
from .settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "ConversationTurn",
    "CoveredTopic",
    "PillarMemory",
    "TOPIC_KEYS",
    "TrackedItem",
    "UserMemory",
    "close_async_pool",
    "get_async_pool",
    "get_settings",
]
