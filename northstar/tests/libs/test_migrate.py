import pytest

from northstar.infra.scripts import migrate


def test_split_sql_drops_comments_and_blank_statements():
    sql = """
    -- leading comment
    CREATE TABLE a (id int);
    /* block
       comment */
    CREATE INDEX a_idx ON a (id);
    ;
    """

    assert migrate.split_sql(sql) == ["CREATE TABLE a (id int)", "CREATE INDEX a_idx ON a (id)"]


def test_shipped_migration_creates_user_memory_table():
    paths = migrate.migration_paths()
    assert [path.name for path in paths][0] == "0001_user_memory.sql"

    statements = migrate.split_sql(paths[0].read_text(encoding="utf-8"))
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS user_memory")
    assert len(statements) == 2


@pytest.mark.asyncio
async def test_apply_migrations_runs_each_file_in_a_transaction(tmp_path, monkeypatch):
    (tmp_path / "0001_a.sql").write_text("CREATE TABLE a (id int);", encoding="utf-8")
    (tmp_path / "0002_b.sql").write_text("-- nothing\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    executed = []
    transactions = []

    class _Txn:
        async def __aenter__(self):
            transactions.append("begin")
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

    class _FakeConnection:
        def transaction(self):
            return _Txn()

        async def execute(self, statement):
            executed.append(statement)

    class _AcquireCtx:
        async def __aenter__(self):
            return _FakeConnection()

        async def __aexit__(self, exc_type, exc, tb):
            return False

    class _FakePool:
        def acquire(self):
            return _AcquireCtx()

    async def _fake_get_pool():
        return _FakePool()

    monkeypatch.setattr("northstar.infra.scripts.migrate.get_async_pool", _fake_get_pool)

    applied = await migrate.apply_migrations(tmp_path)

    assert applied == 1
    assert executed == ["CREATE TABLE a (id int)"]
    assert transactions == ["begin"]
