"""SQLite file and schema for the durable session backend."""

import asyncio
import os
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

DB_FILENAME = "app.db"

SESSION_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS SESSION (
        session_id TEXT PRIMARY KEY,
        notes TEXT,
        selected_agent TEXT,
        conversation TEXT,
        report TEXT,
        created_at REAL NOT NULL,
        last_active_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_session_last_active ON SESSION(last_active_at)",
)


def resolve_database_dir(database_dir: Optional[Path | str] = None) -> Path:
    """Return a usable directory for the database, creating it when needed.

    Falls back to DATABASE_DIR. Raises RuntimeError when neither is set or the
    path cannot hold a database.
    """
    raw = str(database_dir) if database_dir is not None else (os.getenv("DATABASE_DIR") or "")
    if not raw.strip():
        raise RuntimeError("DATABASE_DIR must point to a writable directory for the session database.")

    path = Path(raw).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"DATABASE_DIR={raw!r} is a file; expected a directory.")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Cannot create database directory {path}") from exc
    return path


class AsyncDatabaseInitializer:
    """
    Own the session database file at <DATABASE_DIR>/app.db.

    The SESSION table and its activity index are created lazily on first
    use. Existing rows survive restarts; pass `reset=True` to start from an
    empty file.
    """

    def __init__(self, database_dir: Optional[Path | str] = None, *, reset: bool = False) -> None:
        self.db_dir = resolve_database_dir(database_dir)
        self.db_path = self.db_dir / DB_FILENAME
        self.reset = reset
        self._ready = False
        self._lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """Create the schema once per instance; later calls return immediately."""
        if self._ready:
            return
        async with self._lock:
            if self._ready:
                return
            if self.reset:
                self.db_path.unlink(missing_ok=True)

            for attempt in range(3):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        await db.execute("PRAGMA journal_mode=WAL")
                        for statement in SESSION_SCHEMA:
                            await db.execute(statement)
                        await db.commit()
                    break
                except sqlite3.OperationalError:
                    # another process may hold the write lock while creating the schema
                    if attempt == 2:
                        raise
                    await asyncio.sleep(0.1 * (attempt + 1))
            self._ready = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a fresh connection to the session database."""
        await self.ensure_database()
        async with aiosqlite.connect(self.db_path) as conn:
            yield conn
