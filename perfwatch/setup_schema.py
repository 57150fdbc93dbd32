"""
Create the PerfWatch tables in Postgres.

Applies perfwatch/storage/schema.sql one statement at a time. Every statement
is `IF NOT EXISTS`, so the script can be rerun against an existing database.

Usage:
    uv run python -m perfwatch.setup_schema
"""

import asyncio
import sys

import asyncpg

from perfwatch.config import settings
from perfwatch.connectors.postgres_pool import PostgresConnectionPool
from perfwatch.storage.postgres import SCHEMA_FILE

RULE = "-" * 72


def read_schema_sql() -> str:
    if not SCHEMA_FILE.is_file():
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")
    return SCHEMA_FILE.read_text()


def split_sql_statements(sql_content: str) -> list[str]:
    """Split DDL on trailing `;`, dropping blank lines and `--` comments."""
    statements: list[str] = []
    pending: list[str] = []
    for line in sql_content.splitlines():
        text = line.strip()
        if text and not text.startswith("--"):
            pending.append(line)
            if text.endswith(";"):
                statements.append("\n".join(pending))
                pending = []
    return statements


async def execute_sql_statements(pool: PostgresConnectionPool, sql_content: str) -> None:
    statements = split_sql_statements(sql_content)
    print(f"📋 {len(statements)} statements in {SCHEMA_FILE.name}")

    for number, statement in enumerate(statements, 1):
        headline = statement.lstrip().splitlines()[0][:72]
        try:
            result = await pool.execute(statement)
        except asyncpg.exceptions.DuplicateObjectError as e:
            print(f"  [{number}] skipped, {e}")
            continue
        print(f"  [{number}] {headline} -> {result}")


async def setup_schema() -> None:
    print(RULE)
    print(f"🏗️  PerfWatch schema setup on {settings.POSTGRES_USER}@"
          f"{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DATABASE}")
    print(RULE)

    pool = PostgresConnectionPool(
        host=settings.POSTGRES_HOST,
        port=settings.POSTGRES_PORT,
        database=settings.POSTGRES_DATABASE,
        user=settings.POSTGRES_USER,
        password=settings.POSTGRES_PASSWORD,
        min_size=1,
        max_size=1,
        pool_name="schema",
    )
    try:
        await pool.initialize()
        await execute_sql_statements(pool, read_schema_sql())
        tables = await pool.fetch_val(
            "SELECT count(*) FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE'"
        )
    except (OSError, asyncpg.PostgresError) as e:
        print(f"❌ Schema setup failed: {e}")
        sys.exit(1)
    finally:
        await pool.close()

    print(RULE)
    print(f"✅ Schema ready ({tables} tables)")


if __name__ == "__main__":
    asyncio.run(setup_schema())
