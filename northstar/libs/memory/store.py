"""Load/save facade over a memory backend."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from pydantic import ValidationError

from northstar.libs.schemas.memory import UserMemory, utcnow

from .backends import InMemoryBackend, MemoryBackend, StoredRecord
from .errors import MemoryConflictError, MemoryStoreError

logger = logging.getLogger(__name__)


class MemoryStore:
    """Per-user memory records with optimistic concurrency.

    ``save`` overwrites the whole record and only succeeds if nobody saved
    since ``load``. Callers that load, mutate and save without holding
    :meth:`lock` can still lose to a concurrent writer; they will see a
    :class:`MemoryConflictError` instead of silently overwriting it.
    """

    def __init__(self, backend: MemoryBackend | None = None) -> None:
        self.backend = backend or InMemoryBackend()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        """Serialise load-mutate-save cycles for one user within this process."""

        # Entries live only while someone holds or waits for the lock.
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def load(self, user_id: str) -> UserMemory:
        if not user_id:
            raise ValueError("load requires a user_id")
        record = await self.backend.read(user_id)
        if record is None:
            return UserMemory.empty(user_id)
        return self._parse(user_id, record)

    async def save(self, user_id: str, memory: UserMemory) -> UserMemory:
        """Write ``memory`` back, bumping its version on success."""

        if not user_id:
            raise ValueError("save requires a user_id")
        if memory.user_id != user_id:
            raise ValueError(f"Memory belongs to {memory.user_id!r}, not {user_id!r}")

        expected = memory.version
        stamped = memory.model_copy(update={"version": expected + 1, "last_updated": utcnow()})
        await self.backend.write(user_id, stamped.as_payload(), expected_version=expected)
        memory.version = stamped.version
        memory.last_updated = stamped.last_updated
        logger.debug("memory_saved", extra={"user_id": user_id, "version": memory.version})
        return memory

    async def reset(self, user_id: str) -> bool:
        """Delete the stored record; the next load starts fresh."""

        deleted = await self.backend.delete(user_id)
        logger.info("memory_reset", extra={"user_id": user_id, "deleted": deleted})
        return deleted

    def _parse(self, user_id: str, record: StoredRecord) -> UserMemory:
        payload = record.payload
        try:
            if isinstance(payload, (str, bytes)):
                payload = json.loads(payload)
            memory = UserMemory.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            logger.warning(
                "memory_record_unreadable",
                extra={"user_id": user_id, "error": str(exc)},
            )
            fresh = UserMemory.empty(user_id)
            fresh.version = record.version
            return fresh
        if memory.user_id != user_id:
            logger.warning(
                "memory_record_mismatch",
                extra={"user_id": user_id, "stored_user_id": memory.user_id},
            )
            fresh = UserMemory.empty(user_id)
            fresh.version = record.version
            return fresh
        memory.version = record.version
        return memory


__all__ = ["MemoryConflictError", "MemoryStore", "MemoryStoreError"]
