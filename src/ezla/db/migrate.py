"""
Schema migrations for the e-ZLA store.

Files in ``ezla/db/migrations/`` are applied in name order, each in its own
transaction, and recorded in ``schema_migrations`` so a restart skips them.
"""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    name       TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


def migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(directory.glob("*.sql"))


async def run_migrations(pool: asyncpg.Pool, directory: Path = MIGRATIONS_DIR) -> list[str]:
    """Applies every migration not yet in the ledger; returns the applied names."""
    files = migration_files(directory)
    if not files:
        logger.info("Schema: no migration files in %s", directory)
        return []

    newly_applied: list[str] = []
    async with pool.acquire() as conn:
        await conn.execute(_LEDGER_DDL)
        done = {r["name"] for r in await conn.fetch("SELECT name FROM schema_migrations")}

        for path in files:
            if path.name in done:
                continue
            async with conn.transaction():
                await conn.execute(path.read_text(encoding="utf-8"))
                await conn.execute("INSERT INTO schema_migrations (name) VALUES ($1)", path.name)
            logger.info("Schema: applied %s", path.name)
            newly_applied.append(path.name)

    logger.info("Schema up to date (%d new of %d)", len(newly_applied), len(files))
    return newly_applied
