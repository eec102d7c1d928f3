"""Tests for the monitored-package allowlist."""

from yapenotifier.device.allowlist import MonitoredPackages
from yapenotifier.device.ingestion_client import DeliveryError


class TestMonitoredPackages:
    def test_membership_case_insensitive(self):
        allowlist = MonitoredPackages(["com.yape.android"])

        assert "com.yape.android" in allowlist
        assert "COM.YAPE.ANDROID" in allowlist
        assert "com.whatsapp" not in allowlist
        assert None not in allowlist

    def test_blank_entries_dropped(self):
        allowlist = MonitoredPackages(["com.yape.android", "  ", ""])

        assert allowlist.snapshot() == frozenset({"com.yape.android"})

    def test_refresh_replaces(self):
        allowlist = MonitoredPackages(["com.yape.android"])

        assert allowlist.refresh(lambda: ["pe.com.interbank.mobilebanking"]) is True
        assert "pe.com.interbank.mobilebanking" in allowlist
        assert "com.yape.android" not in allowlist

    def test_refresh_failure_keeps_previous(self):
        allowlist = MonitoredPackages(["com.yape.android"])

        def fail():
            raise DeliveryError(503, "unavailable")

        assert allowlist.refresh(fail) is False
        assert "com.yape.android" in allowlist

    def test_empty_refresh_keeps_previous(self):
        allowlist = MonitoredPackages(["com.yape.android"])

        assert allowlist.refresh(lambda: []) is False
        assert "com.yape.android" in allowlist
