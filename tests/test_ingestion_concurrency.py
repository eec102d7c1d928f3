"""Concurrent ingestion: exactly one of N simultaneous submissions is original.

The device row lock serialises the duplicate check and the insert.
"""

import os
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from yapenotifier.domain.ingestion import create_notification
from yapenotifier.infra.db import txn

pytestmark = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB tests",
)

YAPE_PKG = "com.bcp.innovacxion.yapeapp"
N_THREADS = 8


@pytest.fixture
def linked_device():
    device_uuid = str(uuid.uuid4())
    with txn() as cur:
        cur.execute("INSERT INTO commerces (name) VALUES (%s) RETURNING id", ("Concurrency",))
        commerce_id = cur.fetchone()[0]
        cur.execute(
            "INSERT INTO devices (uuid, commerce_id) VALUES (%s, %s) RETURNING id",
            (device_uuid, commerce_id),
        )
        device_id = cur.fetchone()[0]
    yield device_uuid, device_id, commerce_id
    with txn() as cur:
        cur.execute("DELETE FROM commerces WHERE id = %s", (commerce_id,))
        cur.execute("DELETE FROM devices WHERE id = %s", (device_id,))


def _submission(device_uuid, android_user_id=0):
    return {
        "device_id": device_uuid,
        "source_app": "yape",
        "package_name": YAPE_PKG,
        "android_user_id": android_user_id,
        "title": "Yape",
        "body": "JUAN PEREZ te envió un pago por S/ 50",
        "amount": Decimal("50"),
        "received_at": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    }


class TestConcurrentIngestion:
    def _run_concurrently(self, submissions):
        results = []
        errors = []
        barrier = threading.Barrier(len(submissions))

        def worker(submission):
            try:
                barrier.wait()
                results.append(create_notification(submission, window_seconds=5, match_fields=()))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(s,)) for s in submissions]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_single_original(self, linked_device):
        device_uuid, device_id, _ = linked_device

        results, errors = self._run_concurrently([_submission(device_uuid)] * N_THREADS)

        assert errors == []
        assert len(results) == N_THREADS
        assert sum(1 for r in results if not r["is_duplicate"]) == 1
        assert len({r["app_instance_id"] for r in results}) == 1

    def test_dual_app_mirror_flagged(self, linked_device):
        device_uuid, _, _ = linked_device

        results, errors = self._run_concurrently(
            [_submission(device_uuid, android_user_id=0), _submission(device_uuid, android_user_id=10)]
        )

        assert errors == []
        assert sorted(r["is_duplicate"] for r in results) == [False, True]
        assert len({r["app_instance_id"] for r in results}) == 2

    def test_one_outbox_event_per_record(self, linked_device):
        device_uuid, _, commerce_id = linked_device

        results, _ = self._run_concurrently([_submission(device_uuid)] * 4)

        with txn() as cur:
            cur.execute(
                "SELECT count(*) FROM outbox_events WHERE commerce_id = %s AND event_type = %s",
                (commerce_id, "NOTIFICATION_CREATED"),
            )
            assert cur.fetchone()[0] == len(results)
