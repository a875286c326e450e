"""Apply SQL migrations in filename order over the shared asyncpg pool."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from northstar.libs.logging_utils import configure_logging
from northstar.libs.schemas import get_async_pool

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
_COMMENT_RE = re.compile(r"--.*?$|/\*.*?\*/", re.MULTILINE | re.DOTALL)

logger = logging.getLogger(__name__)


def split_sql(sql: str) -> list[str]:
    """Return the statements in ``sql`` with comments and blank chunks removed."""

    cleaned = _COMMENT_RE.sub("", sql)
    return [chunk.strip() for chunk in cleaned.split(";") if chunk.strip()]


def migration_paths(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    if not directory.exists():
        return []
    return sorted(path for path in directory.iterdir() if path.suffix == ".sql")


async def apply_migrations(directory: Path = MIGRATIONS_DIR) -> int:
    """Run every migration inside its own transaction; returns the file count."""

    paths = migration_paths(directory)
    if not paths:
        return 0

    pool = await get_async_pool()
    applied = 0
    async with pool.acquire() as connection:
        for path in paths:
            statements = split_sql(path.read_text(encoding="utf-8"))
            if not statements:
                continue
            async with connection.transaction():
                for statement in statements:
                    await connection.execute(statement)
            applied += 1
            logger.info("migration_applied", extra={"migration": path.name, "statements": len(statements)})
    return applied


def main() -> None:  # pragma: no cover - CLI entrypoint
    configure_logging()
    asyncio.run(apply_migrations())


if __name__ == "__main__":  # pragma: no cover
    main()
