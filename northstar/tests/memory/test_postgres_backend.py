import json

import pytest

from northstar.libs.memory import (
    MemoryConflictError,
    MemoryStore,
    MemoryStoreError,
    PostgresMemoryBackend,
)


class _FakeConnection:
    def __init__(self, statuses=(), row=None, version=None) -> None:
        self.statuses = list(statuses)
        self.row = row
        self.version = version
        self.executed = []

    async def execute(self, query, *args):
        self.executed.append((" ".join(query.split()), args))
        return self.statuses.pop(0) if self.statuses else "UPDATE 0"

    async def fetchrow(self, query, *args):
        return self.row

    async def fetchval(self, query, *args):
        return self.version


class _AcquireCtx:
    def __init__(self, connection) -> None:
        self._connection = connection

    async def __aenter__(self):
        return self._connection

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakePool:
    def __init__(self, connection) -> None:
        self.connection = connection

    def acquire(self):
        return _AcquireCtx(self.connection)


def _backend(connection) -> PostgresMemoryBackend:
    pool = _FakePool(connection)

    async def _factory():
        return pool

    return PostgresMemoryBackend(pool_factory=_factory)


@pytest.mark.asyncio
async def test_read_parses_jsonb_text() -> None:
    payload = {"user_id": "u1", "version": 3, "pillars": {}}
    connection = _FakeConnection(row={"payload": json.dumps(payload), "version": 3})

    memory = await MemoryStore(_backend(connection)).load("u1")

    assert memory.user_id == "u1"
    assert memory.version == 3


@pytest.mark.asyncio
async def test_conditional_update_succeeds() -> None:
    connection = _FakeConnection(statuses=["UPDATE 1"])

    await _backend(connection).write("u1", {"user_id": "u1", "version": 4}, expected_version=3)

    query, args = connection.executed[0]
    assert query.startswith("UPDATE user_memory")
    assert args[0] == "u1"
    assert args[2:] == (4, 3)
    assert len(connection.executed) == 1


@pytest.mark.asyncio
async def test_first_write_inserts_row() -> None:
    connection = _FakeConnection(statuses=["UPDATE 0", "INSERT 0 1"])

    await _backend(connection).write("u1", {"user_id": "u1", "version": 1}, expected_version=0)

    assert connection.executed[1][0].startswith("INSERT INTO user_memory")


@pytest.mark.asyncio
async def test_stale_version_raises_conflict() -> None:
    connection = _FakeConnection(statuses=["UPDATE 0"], version=7)

    with pytest.raises(MemoryConflictError) as excinfo:
        await _backend(connection).write("u1", {"user_id": "u1", "version": 3}, expected_version=2)

    assert excinfo.value.found == 7


@pytest.mark.asyncio
async def test_connection_failure_becomes_store_error() -> None:
    async def _refuse():
        raise ConnectionRefusedError("db down")

    backend = PostgresMemoryBackend(pool_factory=_refuse)

    with pytest.raises(MemoryStoreError):
        await backend.read("u1")
    with pytest.raises(MemoryStoreError):
        await backend.write("u1", {"user_id": "u1", "version": 1}, expected_version=0)


@pytest.mark.asyncio
async def test_delete_reports_affected_rows() -> None:
    assert await _backend(_FakeConnection(statuses=["DELETE 1"])).delete("u1") is True
    assert await _backend(_FakeConnection(statuses=["DELETE 0"])).delete("u1") is False
