"""
apiscaffold/infra/postgres.py
PostgreSQL connection pool lifecycle component (asyncpg).
"""

from typing import Optional, Set

from ..api.lifespan.base import BaseLifecycleComponent, ComponentState
from ..core.config import Settings
from .migrations import SQLMigrationRunner

CREATE_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


class PostgresComponent(BaseLifecycleComponent):
    """
    Owns the asyncpg pool.

    Startup connects and applies pending migrations from
    ``<MIGRATIONS_DIR>/postgres``; applied versions are kept in
    ``schema_migrations``. Repositories get the pool via ``self.pool``.
    """

    name = "postgres"
    startup_timeout = 60  # migrations run inside startup
    shutdown_timeout = 10

    def __init__(self, settings: Settings, run_migrations: bool = True):
        super().__init__()
        self.settings = settings
        self.run_migrations = run_migrations
        self.pool = None

    async def startup(self) -> None:
        import asyncpg

        self.safe_log(
            "connecting_to_postgres",
            host=self.settings.POSTGRES_HOST,
            port=self.settings.POSTGRES_PORT,
            database=self.settings.POSTGRES_DBNAME,
        )
        self.pool = await asyncpg.create_pool(
            dsn=self.settings.postgres_dsn,
            min_size=self.settings.POSTGRES_POOL_MIN_SIZE,
            max_size=self.settings.POSTGRES_POOL_MAX_SIZE,
        )
        self.metadata.update({
            "host": self.settings.POSTGRES_HOST,
            "database": self.settings.POSTGRES_DBNAME,
            "pool_max_size": self.settings.POSTGRES_POOL_MAX_SIZE,
        })
        self.safe_log("connected_to_postgres")

        if self.run_migrations:
            applied = await self.migrate()
            self.metadata["migrations_applied"] = len(applied)

    async def migrate(self):
        runner = SQLMigrationRunner(
            self.settings.MIGRATIONS_DIR / "postgres", self._apply, name="postgres"
        )
        async with self.pool.acquire() as conn:
            await conn.execute(CREATE_VERSION_TABLE)
            rows = await conn.fetch("SELECT version FROM schema_migrations")
        done: Set[str] = {row["version"] for row in rows}
        return await runner.run(applied=done)

    async def _apply(self, version: str, script: str) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if script:
                    await conn.execute(script)
                await conn.execute(
                    "INSERT INTO schema_migrations (version) VALUES ($1)", version
                )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        self.safe_log("disconnected_from_postgres")

    async def health_check(self) -> bool:
        if self.pool is None or self.state != ComponentState.RUNNING:
            return False
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except Exception as e:
            self.log_error("health_check_failed", e)
            return False
