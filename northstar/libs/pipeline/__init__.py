"""Post-generation pipeline stages."""

from .persistence_gate import (
    PersistResult,
    PersistenceGate,
    SaveSummary,
    build_save_confirmation,
    extract_tagged_items,
    looks_like_advice,
    normalize_item_type,
)

__all__ = [
    "PersistResult",
    "PersistenceGate",
    "SaveSummary",
    "build_save_confirmation",
    "extract_tagged_items",
    "looks_like_advice",
    "normalize_item_type",
]
