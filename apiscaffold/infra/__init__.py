"""
Optional infrastructure components.

Each one imports its driver inside ``startup()``, so a disabled
subsystem never needs its library installed.
"""

from .clickhouse import ClickHouseComponent
from .kafka import KafkaComponent
from .migrations import SQLMigrationRunner
from .postgres import PostgresComponent
from .redis import RedisComponent

__all__ = [
    "PostgresComponent",
    "ClickHouseComponent",
    "RedisComponent",
    "KafkaComponent",
    "SQLMigrationRunner",
]
