"""Errors raised by the memory store and its backends."""

from __future__ import annotations


class MemoryStoreError(RuntimeError):
    """Backend I/O failed; the record may not have been persisted."""


class MemoryConflictError(MemoryStoreError):
    """Another writer saved the record after it was loaded."""

    def __init__(self, user_id: str, *, expected: int, found: int | None) -> None:
        self.user_id = user_id
        self.expected = expected
        self.found = found
        super().__init__(
            f"Memory for {user_id} changed concurrently (expected version {expected}, found {found})"
        )


__all__ = ["MemoryConflictError", "MemoryStoreError"]
