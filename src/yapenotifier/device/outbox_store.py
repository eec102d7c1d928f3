"""Durable local outbox of captured notifications (SQLite).

One row per captured OS notification. Status transitions:

    PENDING -> SENT      (delivered; terminal)
    PENDING -> FAILED    (rejected by the classifier or delivery failed)
    FAILED  -> PENDING   (reset_failed only)

Every status change is a single guarded UPDATE, so the capture callback
and the delivery worker can use the store concurrently from different
threads or processes. Each operation opens its own short transaction.
"""

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from yapenotifier.domain.events import FAILED, PENDING, SENT, CapturedRecord
from yapenotifier.infra.time import now_ms

_SCHEMA = """
CREATE TABLE IF NOT EXISTS captured_notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_name TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    captured_at_ms INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK (status IN ('PENDING', 'SENT', 'FAILED')),
    android_user_id INTEGER,
    android_uid INTEGER,
    posted_at_ms INTEGER,
    attempt_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    updated_at_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_captured_status_time
    ON captured_notifications (status, captured_at_ms, id);
"""

_COLUMNS = (
    "id, package_name, title, body, captured_at_ms, status, android_user_id, "
    "android_uid, posted_at_ms, attempt_count, last_error, updated_at_ms"
)

# Column width of last_error; longer messages are truncated
MAX_ERROR_LENGTH = 500


def _row_to_record(row: tuple) -> CapturedRecord:
    return CapturedRecord(
        id=row[0],
        package_name=row[1],
        title=row[2],
        body=row[3],
        captured_at_ms=row[4],
        status=row[5],
        android_user_id=row[6],
        android_uid=row[7],
        posted_at_ms=row[8],
        attempt_count=row[9],
        last_error=row[10],
        updated_at_ms=row[11],
    )


class OutboxStore:
    """SQLite-backed outbox. Safe to share between threads."""

    def __init__(self, path: str, *, busy_timeout_seconds: float = 30.0):
        self._path = path
        self._busy_timeout = busy_timeout_seconds
        self._ensure_schema()

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def _txn(self) -> Iterator[sqlite3.Cursor]:
        """Short transaction: commit on success, rollback on error."""
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout)
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout)
        try:
            # WAL lets the delivery worker read while a capture writes
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def insert_captured(
        self,
        *,
        package_name: str,
        title: str,
        body: str,
        captured_at_ms: int,
        android_user_id: int | None = None,
        android_uid: int | None = None,
        posted_at_ms: int | None = None,
    ) -> CapturedRecord:
        """Durably record one captured notification as PENDING."""
        with self._txn() as cur:
            cur.execute(
                """
                INSERT INTO captured_notifications (
                    package_name, title, body, captured_at_ms, status,
                    android_user_id, android_uid, posted_at_ms, updated_at_ms
                )
                VALUES (?, ?, ?, ?, 'PENDING', ?, ?, ?, ?)
                """,
                (
                    package_name,
                    title or "",
                    body or "",
                    captured_at_ms,
                    android_user_id,
                    android_uid,
                    posted_at_ms,
                    now_ms(),
                ),
            )
            record_id = cur.lastrowid
            cur.execute(
                f"SELECT {_COLUMNS} FROM captured_notifications WHERE id = ?",
                (record_id,),
            )
            return _row_to_record(cur.fetchone())

    def get(self, record_id: int) -> CapturedRecord | None:
        with self._txn() as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM captured_notifications WHERE id = ?",
                (record_id,),
            )
            row = cur.fetchone()
        return _row_to_record(row) if row else None

    def pending(self, limit: int | None = None) -> list[CapturedRecord]:
        """PENDING rows in capture order (oldest first)."""
        query = (
            f"SELECT {_COLUMNS} FROM captured_notifications "
            "WHERE status = 'PENDING' ORDER BY captured_at_ms ASC, id ASC"
        )
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._txn() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def mark_sent(self, record_id: int) -> bool:
        """PENDING -> SENT. Returns False if the row was not PENDING."""
        with self._txn() as cur:
            cur.execute(
                """
                UPDATE captured_notifications
                SET status = ?, attempt_count = attempt_count + 1,
                    last_error = NULL, updated_at_ms = ?
                WHERE id = ? AND status = ?
                """,
                (SENT, now_ms(), record_id, PENDING),
            )
            return cur.rowcount == 1

    def mark_failed(self, record_id: int, error: str) -> bool:
        """PENDING -> FAILED. Returns False if the row was not PENDING."""
        with self._txn() as cur:
            cur.execute(
                """
                UPDATE captured_notifications
                SET status = ?, attempt_count = attempt_count + 1,
                    last_error = ?, updated_at_ms = ?
                WHERE id = ? AND status = ?
                """,
                (FAILED, (error or "")[:MAX_ERROR_LENGTH], now_ms(), record_id, PENDING),
            )
            return cur.rowcount == 1

    def reset_failed(self) -> int:
        """FAILED -> PENDING for every failed row. Returns rows reset."""
        with self._txn() as cur:
            cur.execute(
                """
                UPDATE captured_notifications
                SET status = ?, updated_at_ms = ?
                WHERE status = ?
                """,
                (PENDING, now_ms(), FAILED),
            )
            return cur.rowcount

    def trim(self, keep: int) -> int:
        """Delete all but the `keep` most recently captured rows.

        Applies regardless of status: under a full cap the oldest rows go
        first. Returns rows deleted.
        """
        if keep < 0:
            raise ValueError("keep must be >= 0")
        with self._txn() as cur:
            cur.execute(
                """
                DELETE FROM captured_notifications
                WHERE id NOT IN (
                    SELECT id FROM captured_notifications
                    ORDER BY captured_at_ms DESC, id DESC
                    LIMIT ?
                )
                """,
                (keep,),
            )
            return cur.rowcount

    def counts(self) -> dict[str, int]:
        """Row count per status (every status present, zero if none)."""
        result = {PENDING: 0, SENT: 0, FAILED: 0}
        with self._txn() as cur:
            cur.execute(
                "SELECT status, COUNT(*) FROM captured_notifications GROUP BY status"
            )
            for status, count in cur.fetchall():
                result[status] = count
        return result

    def latest(self, limit: int = 50) -> list[CapturedRecord]:
        """Most recently captured rows, newest first."""
        with self._txn() as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM captured_notifications "
                "ORDER BY captured_at_ms DESC, id DESC LIMIT ?",
                (limit,),
            )
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def last_sent(self) -> CapturedRecord | None:
        with self._txn() as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM captured_notifications "
                "WHERE status = 'SENT' ORDER BY updated_at_ms DESC, id DESC LIMIT 1"
            )
            row = cur.fetchone()
        return _row_to_record(row) if row else None
