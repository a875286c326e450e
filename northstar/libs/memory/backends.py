"""Storage backends holding one serialised memory record per user."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Protocol
from urllib.parse import quote

import asyncpg

from northstar.libs.schemas.db import get_async_pool

from .errors import MemoryConflictError, MemoryStoreError

logger = logging.getLogger(__name__)


@dataclass
class StoredRecord:
    """Raw record as the backend holds it; ``payload`` may be a dict or JSON text."""

    payload: Any
    version: int = 0


class MemoryBackend(Protocol):
    async def read(self, user_id: str) -> StoredRecord | None:
        ...

    async def write(self, user_id: str, payload: Dict[str, Any], *, expected_version: int) -> None:
        """Persist ``payload`` only if the stored version still equals ``expected_version``."""
        ...

    async def delete(self, user_id: str) -> bool:
        ...


class InMemoryBackend:
    """Dict-backed store for tests and local development."""

    def __init__(self) -> None:
        self._records: Dict[str, StoredRecord] = {}

    async def read(self, user_id: str) -> StoredRecord | None:
        record = self._records.get(user_id)
        if record is None:
            return None
        return StoredRecord(payload=json.loads(json.dumps(record.payload)), version=record.version)

    async def write(self, user_id: str, payload: Dict[str, Any], *, expected_version: int) -> None:
        current = self._records.get(user_id)
        current_version = current.version if current is not None else 0
        if current_version != expected_version:
            raise MemoryConflictError(user_id, expected=expected_version, found=current_version)
        self._records[user_id] = StoredRecord(
            payload=json.loads(json.dumps(payload)),
            version=int(payload.get("version", expected_version + 1)),
        )

    async def delete(self, user_id: str) -> bool:
        return self._records.pop(user_id, None) is not None


class FileMemoryBackend:
    """One JSON file per user, replaced atomically on every write."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def path_for(self, user_id: str) -> Path:
        return self.directory / f"{quote(user_id, safe='')}.json"

    async def read(self, user_id: str) -> StoredRecord | None:
        return await asyncio.to_thread(self._read_sync, user_id)

    async def write(self, user_id: str, payload: Dict[str, Any], *, expected_version: int) -> None:
        await asyncio.to_thread(self._write_sync, user_id, payload, expected_version)

    async def delete(self, user_id: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, user_id)

    def _read_sync(self, user_id: str) -> StoredRecord | None:
        path = self.path_for(user_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise MemoryStoreError(f"Failed to read memory for {user_id}: {exc}") from exc
        return StoredRecord(payload=text, version=_version_of(text))

    def _write_sync(self, user_id: str, payload: Dict[str, Any], expected_version: int) -> None:
        current = self._read_sync(user_id)
        current_version = current.version if current is not None else 0
        if current_version != expected_version:
            raise MemoryConflictError(user_id, expected=expected_version, found=current_version)

        path = self.path_for(user_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, ensure_ascii=False, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise MemoryStoreError(f"Failed to write memory for {user_id}: {exc}") from exc

    def _delete_sync(self, user_id: str) -> bool:
        try:
            self.path_for(user_id).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise MemoryStoreError(f"Failed to delete memory for {user_id}: {exc}") from exc
        return True


def _version_of(text: str) -> int:
    """Stored version of a file record; unreadable content counts as version 0."""

    try:
        data = json.loads(text)
    except ValueError:
        return 0
    if not isinstance(data, dict):
        return 0
    try:
        return int(data.get("version", 0))
    except (TypeError, ValueError):
        return 0


_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresMemoryBackend:
    """``user_memory`` JSONB table with a version column for conditional updates."""

    def __init__(self, pool_factory: Callable[[], Awaitable[Any]] | None = None) -> None:
        self._pool_factory = pool_factory

    async def _pool(self) -> Any:
        if self._pool_factory is not None:
            return await self._pool_factory()
        return await get_async_pool()

    async def read(self, user_id: str) -> StoredRecord | None:
        try:
            pool = await self._pool()
            async with pool.acquire() as connection:
                row = await connection.fetchrow(
                    "SELECT payload, version FROM user_memory WHERE user_id = $1",
                    user_id,
                )
        except _DB_ERRORS as exc:
            raise MemoryStoreError(f"Failed to read memory for {user_id}: {exc}") from exc
        if row is None:
            return None
        return StoredRecord(payload=row["payload"], version=int(row["version"]))

    async def write(self, user_id: str, payload: Dict[str, Any], *, expected_version: int) -> None:
        body = json.dumps(payload, ensure_ascii=False)
        new_version = int(payload.get("version", expected_version + 1))
        try:
            pool = await self._pool()
            async with pool.acquire() as connection:
                status = await connection.execute(
                    """
                    UPDATE user_memory
                       SET payload = $2::jsonb, version = $3, updated_at = now()
                     WHERE user_id = $1 AND version = $4
                    """,
                    user_id,
                    body,
                    new_version,
                    expected_version,
                )
                if _affected(status):
                    return
                if expected_version == 0:
                    status = await connection.execute(
                        """
                        INSERT INTO user_memory (user_id, payload, version, updated_at)
                        VALUES ($1, $2::jsonb, $3, now())
                        ON CONFLICT (user_id) DO NOTHING
                        """,
                        user_id,
                        body,
                        new_version,
                    )
                    if _affected(status):
                        return
                found = await connection.fetchval(
                    "SELECT version FROM user_memory WHERE user_id = $1",
                    user_id,
                )
        except _DB_ERRORS as exc:
            raise MemoryStoreError(f"Failed to write memory for {user_id}: {exc}") from exc
        raise MemoryConflictError(user_id, expected=expected_version, found=found)

    async def delete(self, user_id: str) -> bool:
        try:
            pool = await self._pool()
            async with pool.acquire() as connection:
                status = await connection.execute("DELETE FROM user_memory WHERE user_id = $1", user_id)
        except _DB_ERRORS as exc:
            raise MemoryStoreError(f"Failed to delete memory for {user_id}: {exc}") from exc
        return _affected(status)


def _affected(status: str | None) -> bool:
    """True when an asyncpg command tag such as ``UPDATE 1`` reports rows."""

    if not status:
        return False
    try:
        return int(str(status).rsplit(" ", 1)[-1]) > 0
    except ValueError:
        return False


def build_backend(kind: str, *, directory: str | os.PathLike[str] = "data/memory") -> MemoryBackend:
    kind = (kind or "file").strip().lower()
    if kind == "memory":
        return InMemoryBackend()
    if kind == "file":
        return FileMemoryBackend(directory)
    if kind == "postgres":
        return PostgresMemoryBackend()
    raise ValueError(f"Unknown memory backend '{kind}'")


__all__ = [
    "FileMemoryBackend",
    "InMemoryBackend",
    "MemoryBackend",
    "PostgresMemoryBackend",
    "StoredRecord",
    "build_backend",
]
