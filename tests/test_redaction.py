"""Zero PII in logs: payer names and notification text never reach a log line.

Loggers do not propagate, so each test attaches a capturing handler to the
module logger under test.
"""

import io
import logging
from unittest.mock import MagicMock

import pytest

from yapenotifier.device.allowlist import MonitoredPackages
from yapenotifier.device.capture import CaptureHandler
from yapenotifier.device.delivery_worker import DeliveryWorker
from yapenotifier.device.ingestion_client import DeliveryError
from yapenotifier.domain.events import RawNotification
from yapenotifier.observability.logging import JsonFormatter

YAPE_PKG = "com.bcp.innovacxion.yapeapp"
PAYER = "ROSA QUISPE"
TEXT = f"{PAYER} te envió un pago por S/ 80"


@pytest.fixture
def captured_logs():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    loggers = [
        logging.getLogger("yapenotifier.device.capture"),
        logging.getLogger("yapenotifier.device.delivery_worker"),
    ]
    previous = [lg.level for lg in loggers]
    for lg in loggers:
        lg.addHandler(handler)
        lg.setLevel(logging.DEBUG)
    yield stream
    for lg, level in zip(loggers, previous):
        lg.removeHandler(handler)
        lg.setLevel(level)


class TestDeviceLogsAreRedacted:
    def test_capture_and_delivery_logs_are_clean(self, outbox_store, captured_logs):
        handler = CaptureHandler(outbox_store, MonitoredPackages([YAPE_PKG]))
        handler.on_notification_posted(RawNotification(YAPE_PKG, "Yape", TEXT))

        client = MagicMock()
        client.submit.return_value = {"id": 1, "is_duplicate": False}
        DeliveryWorker(outbox_store, client, device_uuid="dev-1").run()

        output = captured_logs.getvalue()
        assert output, "Expected log output"
        assert PAYER not in output
        assert "te envió" not in output

    def test_failure_logs_are_clean(self, outbox_store, captured_logs):
        outbox_store.insert_captured(
            package_name=YAPE_PKG, title="Yape", body=TEXT, captured_at_ms=1
        )
        client = MagicMock()
        client.submit.side_effect = DeliveryError(500, "POST /notifications returned 500")

        DeliveryWorker(outbox_store, client, device_uuid="dev-1").run()

        output = captured_logs.getvalue()
        assert "delivery failed" in output
        assert PAYER not in output
