"""Tests for device agent wiring."""

from unittest.mock import patch

from yapenotifier.device.agent import build_agent
from yapenotifier.device.settings import DeviceSettings
from yapenotifier.domain.events import SENT, RawNotification

YAPE_PKG = "com.bcp.innovacxion.yapeapp"


def _settings(tmp_path, **overrides):
    values = {"outbox_path": str(tmp_path / "outbox.db"), "device_uuid": "dev-1"}
    values.update(overrides)
    return DeviceSettings(**values)


class TestBuildAgent:
    def test_capture_kicks_scheduler(self, tmp_path):
        agent = build_agent(_settings(tmp_path))

        assert agent.capture.on_captured == agent.scheduler.kick

    def test_housekeeping_jobs_registered(self, tmp_path):
        agent = build_agent(_settings(tmp_path))

        names = [job.name for job in agent.scheduler._jobs]
        assert names == ["reset_failed", "refresh_allowlist", "report_health"]

    def test_settings_flow_through(self, tmp_path):
        probe = lambda: {"battery_level": 90}  # noqa: E731
        agent = build_agent(
            _settings(tmp_path, api_base_url="http://api.local", http_timeout_seconds=3),
            health_probe=probe,
            is_connected=lambda: False,
        )

        assert agent.client.base_url == "http://api.local"
        assert agent.client.timeout == 3
        assert agent.health.probe is probe
        assert agent.scheduler.run_cycle() is None

    def test_capture_to_delivery(self, tmp_path):
        agent = build_agent(_settings(tmp_path))

        record = agent.capture.on_notification_posted(
            RawNotification(
                package_name=YAPE_PKG,
                title="Yape",
                text="JOHN DOE te envió un pago por S/ 50",
                android_user_id=0,
            )
        )
        with patch.object(agent.client, "submit", return_value={"id": 1}) as submit:
            report = agent.worker.run()

        assert report.sent == 1
        assert submit.call_args.args[0]["android_user_id"] == 0
        assert agent.store.get(record.id).status == SENT
