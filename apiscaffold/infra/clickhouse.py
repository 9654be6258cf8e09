"""
apiscaffold/infra/clickhouse.py
ClickHouse client lifecycle component (clickhouse-connect).
"""

import asyncio

from ..api.lifespan.base import BaseLifecycleComponent, ComponentState
from ..core.config import Settings
from .migrations import SQLMigrationRunner, split_statements


class ClickHouseComponent(BaseLifecycleComponent):
    """
    Owns a clickhouse-connect client.

    The client is synchronous; calls go through ``asyncio.to_thread``.
    There is no version table: every file in ``<MIGRATIONS_DIR>/clickhouse``
    runs on each start, so scripts must be idempotent
    (``CREATE TABLE IF NOT EXISTS`` and the like).
    """

    name = "clickhouse"
    startup_timeout = 60
    shutdown_timeout = 10

    def __init__(self, settings: Settings, run_migrations: bool = True):
        super().__init__()
        self.settings = settings
        self.run_migrations = run_migrations
        self.client = None

    async def startup(self) -> None:
        import clickhouse_connect

        s = self.settings
        self.safe_log("connecting_to_clickhouse", host=s.CLICKHOUSE_HOST, port=s.CLICKHOUSE_PORT)
        self.client = await asyncio.to_thread(
            clickhouse_connect.get_client,
            host=s.CLICKHOUSE_HOST,
            port=s.CLICKHOUSE_PORT,
            username=s.CLICKHOUSE_USER,
            password=s.CLICKHOUSE_PASSWORD,
            database=s.CLICKHOUSE_DBNAME,
            connect_timeout=s.CLICKHOUSE_CONNECT_TIMEOUT,
            settings={"max_execution_time": s.CLICKHOUSE_MAX_EXECUTION_TIME},
        )

        if not await asyncio.to_thread(self.client.ping):
            raise ConnectionError(f"ClickHouse at {s.CLICKHOUSE_HOST}:{s.CLICKHOUSE_PORT} did not answer ping")

        self.metadata.update({"host": s.CLICKHOUSE_HOST, "database": s.CLICKHOUSE_DBNAME})
        self.safe_log("connected_to_clickhouse")

        if self.run_migrations:
            runner = SQLMigrationRunner(
                s.MIGRATIONS_DIR / "clickhouse", self._apply, name="clickhouse"
            )
            applied = await runner.run()
            self.metadata["migrations_applied"] = len(applied)

    async def _apply(self, version: str, script: str) -> None:
        # one statement per request
        for statement in split_statements(script):
            await asyncio.to_thread(self.client.command, statement)

    async def command(self, sql: str, parameters=None):
        return await asyncio.to_thread(self.client.command, sql, parameters)

    async def query(self, sql: str, parameters=None):
        return await asyncio.to_thread(self.client.query, sql, parameters)

    async def shutdown(self) -> None:
        if self.client is None:
            return
        await asyncio.to_thread(self.client.close)
        self.client = None
        self.safe_log("disconnected_from_clickhouse")

    async def health_check(self) -> bool:
        if self.client is None or self.state != ComponentState.RUNNING:
            return False
        return await asyncio.to_thread(self.client.ping)
