"""Capture callback: the synchronous path run for every OS notification.

Only a durable write happens here. No classification, no network; the
delivery worker does both later, so a process killed right after the
write loses nothing.
"""

import sqlite3
from typing import Callable

from yapenotifier.device.allowlist import MonitoredPackages
from yapenotifier.device.outbox_store import OutboxStore
from yapenotifier.domain.events import CapturedRecord, RawNotification
from yapenotifier.infra.time import now_ms
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_RETENTION = 500


class CaptureHandler:
    """Writes allowlisted notifications to the outbox as PENDING.

    Args:
        store: Local outbox.
        allowlist: Packages to capture.
        retention: Rows kept after each capture (oldest trimmed first).
        on_captured: Optional wake-up hook, e.g. DeliveryScheduler.kick.
        clock_ms: Capture clock (tests inject a fixed one).
    """

    def __init__(
        self,
        store: OutboxStore,
        allowlist: MonitoredPackages,
        *,
        retention: int = DEFAULT_RETENTION,
        on_captured: Callable[[], None] | None = None,
        clock_ms: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.allowlist = allowlist
        self.retention = retention
        self.on_captured = on_captured
        self.clock_ms = clock_ms

    def on_notification_posted(self, raw: RawNotification) -> CapturedRecord | None:
        """Handle one OS notification.

        Returns:
            The stored record, or None when the package is not monitored or
            the local store failed.
        """
        if raw.package_name not in self.allowlist:
            return None

        try:
            record = self.store.insert_captured(
                package_name=raw.package_name,
                title=raw.title or "",
                body=raw.text or "",
                captured_at_ms=self.clock_ms(),
                android_user_id=raw.android_user_id,
                android_uid=raw.android_uid,
                posted_at_ms=raw.posted_at_ms,
            )
        except sqlite3.Error:
            # Never crash the listener
            logger.exception(
                "failed to store captured notification",
                extra={
                    "extra_fields": safe_log_context(
                        package_name=raw.package_name,
                        title=raw.title,
                        text=raw.text,
                    )
                },
            )
            return None

        try:
            self.store.trim(self.retention)
        except sqlite3.Error:
            logger.exception("outbox retention trim failed")

        logger.info(
            "notification captured",
            extra={
                "extra_fields": safe_log_context(
                    record_id=record.id,
                    package_name=record.package_name,
                    android_user_id=record.android_user_id,
                    body=record.body,
                )
            },
        )

        if self.on_captured is not None:
            self.on_captured()
        return record
