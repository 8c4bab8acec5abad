"""
Battery Line MES - Database Connection Manager
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-05): Explicit transactions (BEGIN IMMEDIATE) for batch serial work;
                      sqlite errors translated into PersistenceError / RequestTimeoutError
v1.0.0 (2026-09-28): Initial database connection manager with async helpers

Provides centralized async SQLite connection management for all services.
Uses aiosqlite with WAL journal mode and foreign key enforcement. Connections
run in autocommit mode; multi-row work goes through transaction().
"""

import os
import logging
import aiosqlite
from contextlib import asynccontextmanager

from config import settings
from errors import ConflictError, PersistenceError, RequestTimeoutError

logger = logging.getLogger(__name__)


def get_db_path() -> str:
    """Resolve database path, create data directory if needed"""
    db_path = settings.SQLITE_DB_PATH
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return db_path


def _translate(exc: aiosqlite.Error) -> Exception:
    """Map a sqlite error onto the MES error taxonomy"""
    if isinstance(exc, aiosqlite.IntegrityError):
        return ConflictError(f"Constraint violation: {exc}")
    text = str(exc).lower()
    if isinstance(exc, aiosqlite.OperationalError) and ("locked" in text or "busy" in text):
        return RequestTimeoutError(f"Database busy: {exc}")
    return PersistenceError(f"Database error: {exc}")


@asynccontextmanager
async def get_db():
    """Async context manager yielding an aiosqlite connection with WAL + FK"""
    try:
        db = await aiosqlite.connect(
            get_db_path(),
            timeout=settings.DB_BUSY_TIMEOUT_S,
            isolation_level=None,
        )
    except aiosqlite.Error as e:
        raise _translate(e) from e

    db.row_factory = aiosqlite.Row
    try:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA foreign_keys=ON")
        yield db
    except aiosqlite.Error as e:
        logger.error(f"Database operation failed: {e}")
        raise _translate(e) from e
    finally:
        await db.close()


@asynccontextmanager
async def transaction(db):
    """All-or-nothing scope: commits on success, rolls back on any error"""
    await db.execute("BEGIN IMMEDIATE")
    try:
        yield db
    except BaseException:
        await db.rollback()
        raise
    else:
        await db.commit()


async def execute_one(db, sql: str, params=()) -> dict | None:
    """Execute query and return first row as dict, or None"""
    cursor = await db.execute(sql, params)
    row = await cursor.fetchone()
    return dict(row) if row else None


async def execute_all(db, sql: str, params=()) -> list[dict]:
    """Execute query and return all rows as list of dicts"""
    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]


async def execute_insert(db, sql: str, params=()) -> int:
    """Execute INSERT and return lastrowid"""
    cursor = await db.execute(sql, params)
    return cursor.lastrowid


async def execute_update(db, sql: str, params=()) -> int:
    """Execute UPDATE/DELETE and return rowcount"""
    cursor = await db.execute(sql, params)
    return cursor.rowcount
