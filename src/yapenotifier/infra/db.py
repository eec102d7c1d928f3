"""Database access layer using psycopg2.

Provides:
- get_conn(): Connection from DATABASE_URL (DB_PASSWORD fallback)
- txn(): Context manager for short, safe transactions
- for_update(): SELECT ... FOR UPDATE helper
"""

import os
import re
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlsplit

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

_KEYWORD_PASSWORD = re.compile(r"(^|\s)password\s*=")


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return urlsplit(dsn).password is not None
    return bool(_KEYWORD_PASSWORD.search(dsn))


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    When the DSN carries no password and DB_PASSWORD is set (secret
    mounted separately), the password is passed as a keyword.

    Returns:
        psycopg2 connection object.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    password = os.environ.get("DB_PASSWORD")
    if password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Example:
        with txn() as cur:
            cur.execute("UPDATE devices SET last_seen_at = now() WHERE id = %s", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute SELECT ... FOR UPDATE and fetch one row.

    Use within a transaction to lock the selected row until commit/rollback.
    Concurrent callers block until the holder finishes.
    """
    full_query = query.rstrip().rstrip(";") + " FOR UPDATE"
    cur.execute(full_query, params)
    return cur.fetchone()
