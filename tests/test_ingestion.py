"""Tests for notification ingestion with the repositories mocked out."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import DEFAULT, MagicMock, patch

import pytest

from yapenotifier.domain.events import AppInstance
from yapenotifier.domain.ingestion import (
    CommerceRequiredError,
    DeviceInactiveError,
    DeviceNotFoundError,
    NotificationNotFoundError,
    create_notification,
    set_notification_status,
)

DEVICE_UUID = "7d3c1f5e-8a2b-4c6d-9e0f-112233445566"
YAPE_PKG = "com.bcp.innovacxion.yapeapp"
POSTED_AT = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
DEVICE = {"id": 7, "uuid": DEVICE_UUID, "commerce_id": 3, "name": None, "is_active": True, "last_seen_at": None}


def _submission(**overrides):
    submission = {
        "device_id": DEVICE_UUID,
        "source_app": "yape",
        "package_name": YAPE_PKG,
        "android_user_id": 0,
        "android_uid": 10123,
        "title": "Yape",
        "body": "JUAN PEREZ te envió un pago por S/ 50",
        "amount": Decimal("50"),
        "currency": "PEN",
        "payer_name": "JUAN PEREZ",
        "posted_at": POSTED_AT,
        "received_at": POSTED_AT + timedelta(seconds=1),
        "raw_json": {"package_name": YAPE_PKG},
        "status": None,
    }
    submission.update(overrides)
    return submission


def _fake_insert(cur, **kwargs):
    return {"id": 99, **kwargs}


@pytest.fixture
def repos():
    with patch.multiple(
        "yapenotifier.domain.ingestion",
        lock_device_by_uuid=DEFAULT,
        resolve=DEFAULT,
        find_recent_notifications=DEFAULT,
        insert_notification=DEFAULT,
        touch_last_seen=DEFAULT,
        emit_notification_created=DEFAULT,
    ) as mocks:
        mocks["lock_device_by_uuid"].return_value = dict(DEVICE)
        mocks["resolve"].return_value = AppInstance(11, 3, 7, YAPE_PKG, 0)
        mocks["find_recent_notifications"].return_value = []
        mocks["insert_notification"].side_effect = _fake_insert
        yield mocks


def _create(submission, **kwargs):
    kwargs.setdefault("window_seconds", 5)
    kwargs.setdefault("match_fields", ())
    kwargs.setdefault("max_amount", Decimal("1000000"))
    return create_notification(submission, cur=MagicMock(), **kwargs)


class TestDeviceChecks:
    def test_unknown_device(self, repos):
        repos["lock_device_by_uuid"].return_value = None

        with pytest.raises(DeviceNotFoundError):
            _create(_submission())
        repos["insert_notification"].assert_not_called()

    def test_inactive_device(self, repos):
        repos["lock_device_by_uuid"].return_value = {**DEVICE, "is_active": False}

        with pytest.raises(DeviceInactiveError):
            _create(_submission())
        repos["insert_notification"].assert_not_called()

    def test_device_without_commerce(self, repos):
        repos["lock_device_by_uuid"].return_value = {**DEVICE, "commerce_id": None}

        with pytest.raises(CommerceRequiredError):
            _create(_submission())
        repos["insert_notification"].assert_not_called()


class TestCreateNotification:
    def test_happy_path(self, repos):
        record = _create(_submission(), correlation_id="cid-1")

        assert record["id"] == 99
        assert record["status"] == "pending"
        assert record["is_duplicate"] is False
        assert record["app_instance_id"] == 11
        assert record["commerce_id"] == 3
        repos["touch_last_seen"].assert_called_once()
        assert repos["touch_last_seen"].call_args.kwargs == {"device_id": 7}
        emitted = repos["emit_notification_created"].call_args.kwargs
        assert emitted["notification_id"] == 99
        assert emitted["correlation_id"] == "cid-1"
        assert emitted["is_duplicate"] is False

    def test_validator_failure_stored_inconsistent(self, repos):
        record = _create(_submission(body="Hasta 50% dscto. Solo hoy te envió"))

        assert record["status"] == "inconsistent"
        repos["insert_notification"].assert_called_once()

    def test_explicit_status_wins(self, repos):
        record = _create(_submission(body="Oferta y sorteo", status="validated"))

        assert record["status"] == "validated"

    def test_currency_defaults_to_pen(self, repos):
        record = _create(_submission(currency=None))

        assert record["currency"] == "PEN"

    def test_received_at_defaults_to_now(self, repos):
        before = datetime.now(timezone.utc)
        record = _create(_submission(received_at=None))

        assert record["received_at"] >= before

    def test_naive_times_treated_as_utc(self, repos):
        record = _create(_submission(posted_at=datetime(2026, 3, 1, 12, 0, 0)))

        assert record["posted_at"] == POSTED_AT

    def test_no_instance_without_user_id(self, repos):
        repos["resolve"].return_value = None

        record = _create(_submission(android_user_id=None))

        assert record["app_instance_id"] is None
        assert record["android_user_id"] is None

    def test_duplicate_flagged_not_rejected(self, repos):
        repos["find_recent_notifications"].return_value = [
            {
                "device_id": 7,
                "package_name": YAPE_PKG,
                "source_app": "yape",
                "posted_at": POSTED_AT - timedelta(seconds=2),
                "received_at": POSTED_AT,
            }
        ]

        record = _create(_submission())

        assert record["is_duplicate"] is True
        assert repos["emit_notification_created"].call_args.kwargs["is_duplicate"] is True

    def test_duplicate_lookup_uses_reference_time(self, repos):
        _create(_submission(), window_seconds=30)

        kwargs = repos["find_recent_notifications"].call_args.kwargs
        assert kwargs["reference_time"] == POSTED_AT
        assert kwargs["window_seconds"] == 30
        assert kwargs["device_id"] == 7
        assert kwargs["package_name"] == YAPE_PKG

    def test_match_fields_tighten(self, repos):
        repos["find_recent_notifications"].return_value = [
            {
                "device_id": 7,
                "package_name": YAPE_PKG,
                "source_app": "yape",
                "posted_at": POSTED_AT,
                "amount": Decimal("51"),
            }
        ]

        record = _create(_submission(), match_fields=("amount",))

        assert record["is_duplicate"] is False

    def test_config_defaults_read_from_env(self, repos, monkeypatch):
        monkeypatch.setenv("DUPLICATE_WINDOW_SECONDS", "12")

        create_notification(_submission(), cur=MagicMock())

        assert repos["find_recent_notifications"].call_args.kwargs["window_seconds"] == 12


class TestSetNotificationStatus:
    def test_updates(self):
        with patch("yapenotifier.domain.ingestion.update_status", return_value={"id": 5, "status": "validated"}) as update:
            record = set_notification_status(commerce_id=3, notification_id=5, status="validated", cur=MagicMock())

        assert record["status"] == "validated"
        assert update.call_args.kwargs == {"commerce_id": 3, "notification_id": 5, "status": "validated"}

    def test_not_found(self):
        with patch("yapenotifier.domain.ingestion.update_status", return_value=None):
            with pytest.raises(NotificationNotFoundError):
                set_notification_status(commerce_id=3, notification_id=5, status="validated", cur=MagicMock())
