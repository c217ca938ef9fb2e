"""
Database helper functions for common query patterns.
Every repository goes through these so psycopg errors surface as DatabaseError.
"""

import asyncio
import functools
from typing import Any

import psycopg

from zlatko.db.pool import get_db_connection
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Raised when a store operation fails."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def _run_cursor(query: str, params: tuple, conn: psycopg.AsyncConnection, mode: str) -> Any:
    async with conn.cursor() as cur:
        await cur.execute(query, params)
        if mode == "all":
            return await cur.fetchall()
        if mode == "rowcount":
            return cur.rowcount
        row = await cur.fetchone()
        if mode == "val":
            return list(row.values())[0] if row else None
        return row if row else None


async def _run(query: str, params: tuple, connection: psycopg.AsyncConnection | None, mode: str):
    try:
        if connection:
            return await _run_cursor(query, params, connection, mode)
        async with await get_db_connection() as conn:
            return await _run_cursor(query, params, conn, mode)

    except psycopg.Error as e:
        operation = {"one": "fetch_one", "all": "fetch_all", "val": "fetch_val"}.get(mode, "execute")
        logger.error(f"Database {operation} error", query=query[:100], error=str(e))
        recoverable = not isinstance(e, psycopg.IntegrityError | psycopg.DataError)
        raise DatabaseError(
            f"Query failed: {e}", operation=operation, recoverable=recoverable
        ) from e


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Dict with row data or None if no results
    """
    return await _run(query, params, connection, "one")


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """Execute query and return all rows as list of dicts."""
    return await _run(query, params, connection, "all")


async def fetch_val(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> Any:
    """Execute query and return the first column of the first row."""
    return await _run(query, params, connection, "val")


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """
    Execute query and return number of affected rows.

    Returns:
        Number of affected rows (0 when ON CONFLICT DO NOTHING suppressed an insert)
    """
    return await _run(query, params, connection, "rowcount")


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry store operations on temporary failures.

    Only connection-level problems are retried; a DatabaseError produced by the
    helpers above is retried when it wraps an OperationalError.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except (psycopg.OperationalError, DatabaseError) as e:
                    cause = e.__cause__ if isinstance(e, DatabaseError) else e
                    if not isinstance(cause, psycopg.OperationalError):
                        raise

                    if attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Database operation failed, retrying",
                            operation=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=delay,
                            error=str(cause),
                        )
                        await asyncio.sleep(delay)
                        continue

                    logger.error(
                        "Database operation failed after all retries",
                        operation=func.__name__,
                        attempts=max_retries + 1,
                        error=str(cause),
                    )
                    raise DatabaseError(
                        f"Operation failed after {max_retries} retries: {cause}",
                        operation=func.__name__,
                        recoverable=False,
                    ) from cause

        return wrapper

    return decorator
