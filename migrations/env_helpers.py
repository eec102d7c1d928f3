"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an Alembic context.
The backend accepts DATABASE_URL either as a URL or as a libpq
key=value DSN; SQLAlchemy only takes URLs.
"""

from __future__ import annotations

import os
import shlex
from urllib.parse import quote_plus, urlsplit, urlunsplit

_DRIVER_PREFIX = "postgresql+psycopg2://"


def parse_keyword_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq key=value DSN (single-quoted values allowed)."""
    lexer = shlex.shlex(dsn, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    lexer.quotes = "'"
    lexer.escape = "\\"
    lexer.escapedquotes = "'"
    tokens: dict[str, str] = {}
    for item in lexer:
        key, sep, value = item.partition("=")
        if sep:
            tokens[key.strip()] = value
    return tokens


def keyword_dsn_to_url(dsn: str) -> str:
    """Convert a libpq DSN to a SQLAlchemy URL.

    A host starting with "/" is a Unix socket directory and goes to the
    query string. DB_PASSWORD fills in a missing password.
    """
    tokens = parse_keyword_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    user = quote_plus(tokens.get("user", ""))
    secret = quote_plus(password)
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")
    port = tokens.get("port", "5432")

    if host.startswith("/"):
        return f"{_DRIVER_PREFIX}{user}:{secret}@/{dbname}?host={quote_plus(host)}"
    return f"{_DRIVER_PREFIX}{user}:{secret}@{host}:{port}/{dbname}"


def _normalize_url(url: str) -> str:
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = _DRIVER_PREFIX + url[len(prefix):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parts = urlsplit(url)
    if db_password and not parts.password and parts.hostname:
        netloc = f"{quote_plus(parts.username or '')}:{quote_plus(db_password)}@{parts.hostname}"
        if parts.port:
            netloc += f":{parts.port}"
        url = urlunsplit(parts._replace(netloc=netloc))
    return url


def get_database_url() -> str:
    """SQLAlchemy URL from DATABASE_URL (URL or keyword DSN)."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return _normalize_url(url)
    return keyword_dsn_to_url(url)
