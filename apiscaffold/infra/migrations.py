"""
apiscaffold/infra/migrations.py
SQL-file migrations.

Files are ``*.sql`` in one directory, applied in lexical order, so a
numeric prefix (``0001_create_users.sql``) decides the order. Files in
goose format have their ``-- +goose Down`` section ignored.
"""

import re
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List

import structlog

from ..core.exceptions import MigrationError

logger = structlog.get_logger("migrations")

# (version, script) -> awaitable
Executor = Callable[[str, str], Awaitable[object]]

_GOOSE_UP = re.compile(r"^\s*--\s*\+goose\s+Up\b.*$", re.IGNORECASE | re.MULTILINE)
_GOOSE_DOWN = re.compile(r"^\s*--\s*\+goose\s+Down\b.*$", re.IGNORECASE | re.MULTILINE)
_GOOSE_DIRECTIVE = re.compile(r"^\s*--\s*\+goose\b.*$", re.IGNORECASE | re.MULTILINE)


def up_section(sql: str) -> str:
    """The part of a migration to run when migrating up."""
    down = _GOOSE_DOWN.search(sql)
    if down:
        sql = sql[:down.start()]
    up = _GOOSE_UP.search(sql)
    if up:
        sql = sql[up.end():]
    return _GOOSE_DIRECTIVE.sub("", sql).strip()


def split_statements(sql: str) -> List[str]:
    """
    Split a script on ``;`` for drivers that take one statement per call.

    Comment lines are dropped first; semicolons inside string literals are
    not supported.
    """
    lines = [line for line in sql.splitlines() if not line.lstrip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def version_of(path: Path) -> str:
    return path.stem


class SQLMigrationRunner:
    """
    Applies every pending ``.sql`` file in ``directory`` through ``execute``.

    ``execute`` receives the version and the whole up script; it decides
    whether to record the version. Stops at the first failing file.
    """

    def __init__(self, directory: Path, execute: Executor, name: str = "sql"):
        self.directory = Path(directory)
        self.execute = execute
        self.name = name

    def discover(self) -> List[Path]:
        if not self.directory.is_dir():
            logger.error("migrations_directory_not_found", target=self.name, path=str(self.directory))
            raise MigrationError(str(self.directory), "migrations directory not found")
        return sorted(
            (p for p in self.directory.iterdir() if p.is_file() and p.suffix == ".sql"),
            key=lambda p: p.name,
        )

    async def run(self, applied: Iterable[str] = ()) -> List[str]:
        """
        Args:
            applied: versions already applied; their files are skipped

        Returns:
            Versions applied by this call, in order
        """
        logger.info("running_migrations", target=self.name, path=str(self.directory))
        done = set(applied)
        ran: List[str] = []

        for path in self.discover():
            version = version_of(path)
            if version in done:
                continue

            try:
                script = up_section(path.read_text(encoding="utf-8"))
            except OSError as e:
                logger.error("migration_read_failed", target=self.name, file=path.name, error=str(e))
                raise MigrationError(path.name, str(e)) from e

            try:
                await self.execute(version, script)
            except Exception as e:
                logger.error("migration_failed", target=self.name, file=path.name, error=str(e))
                raise MigrationError(path.name, str(e)) from e

            ran.append(version)
            logger.info("migration_applied", target=self.name, file=path.name)

        logger.info("migrations_completed", target=self.name, applied=len(ran))
        return ran


__all__ = ["SQLMigrationRunner", "up_section", "split_statements", "version_of"]
