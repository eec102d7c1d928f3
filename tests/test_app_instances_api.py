"""Tests for app instance, device health, outbox and settings endpoints (no DB)."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from yapenotifier.api.factory import create_app
from yapenotifier.domain.events import AppInstance

DEVICE_UUID = "7d3c1f5e-8a2b-4c6d-9e0f-112233445566"
YAPE_PKG = "com.bcp.innovacxion.yapeapp"
SCOPE = {"X-Commerce-Id": "3"}
INSTANCES = "yapenotifier.api.routes.app_instances"
HEALTH = "yapenotifier.api.routes.device_health"


@pytest.fixture
def client():
    return TestClient(create_app())


class TestListInstances:
    def test_list_for_commerce(self, client):
        instances = [AppInstance(1, 3, 7, YAPE_PKG, 0), AppInstance(2, 3, 7, YAPE_PKG, 10, "Caja 2")]
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.app_instances_repository.list_instances", return_value=instances) as list_mock:
            response = client.get("/app-instances", headers=SCOPE)

        assert response.status_code == 200
        data = response.json()["instances"]
        assert [i["display_name"] for i in data] == [f"{YAPE_PKG} (User 0)", "Caja 2"]
        assert list_mock.call_args.kwargs == {"commerce_id": 3}

    def test_requires_scope(self, client):
        assert client.get("/app-instances").status_code == 403

    def test_device_of_other_commerce_404(self, client):
        device = {"id": 7, "uuid": DEVICE_UUID, "commerce_id": 99}
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.get_device_by_uuid", return_value=device):
            response = client.get(f"/devices/{DEVICE_UUID}/app-instances", headers=SCOPE)

        assert response.status_code == 404

    def test_device_instances(self, client):
        device = {"id": 7, "uuid": DEVICE_UUID, "commerce_id": 3}
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.get_device_by_uuid", return_value=device), \
             patch(f"{INSTANCES}.app_instances_repository.list_instances", return_value=[]) as list_mock:
            response = client.get(f"/devices/{DEVICE_UUID}/app-instances", headers=SCOPE)

        assert response.status_code == 200
        assert list_mock.call_args.kwargs == {"commerce_id": 3, "device_id": 7}


class TestUpdateLabel:
    def test_set_label(self, client):
        updated = AppInstance(2, 3, 7, YAPE_PKG, 10, "Caja 2")
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.app_instances_repository.update_label", return_value=updated) as update:
            response = client.patch("/app-instances/2/label", json={"instance_label": "  Caja 2 "}, headers=SCOPE)

        assert response.status_code == 200
        assert response.json()["display_name"] == "Caja 2"
        assert update.call_args.kwargs["instance_label"] == "Caja 2"

    def test_blank_label_cleared(self, client):
        updated = AppInstance(2, 3, 7, YAPE_PKG, 10)
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.app_instances_repository.update_label", return_value=updated) as update:
            client.patch("/app-instances/2/label", json={"instance_label": "   "}, headers=SCOPE)

        assert update.call_args.kwargs["instance_label"] is None

    def test_not_found(self, client):
        with patch(f"{INSTANCES}.txn"), \
             patch(f"{INSTANCES}.app_instances_repository.update_label", return_value=None):
            response = client.patch("/app-instances/2/label", json={"instance_label": "x"}, headers=SCOPE)

        assert response.status_code == 404

    def test_label_too_long(self, client):
        response = client.patch("/app-instances/2/label", json={"instance_label": "x" * 101}, headers=SCOPE)

        assert response.status_code == 422


class TestDeviceHealth:
    def test_unknown_device(self, client):
        with patch(f"{HEALTH}.txn"), patch(f"{HEALTH}.lock_device_by_uuid", return_value=None):
            response = client.post(f"/devices/{DEVICE_UUID}/health", json={"battery_level": 50})

        assert response.status_code == 404

    def test_recorded(self, client):
        with patch(f"{HEALTH}.txn"), \
             patch(f"{HEALTH}.lock_device_by_uuid", return_value={"id": 7}), \
             patch(f"{HEALTH}.update_health") as update:
            response = client.post(
                f"/devices/{DEVICE_UUID}/health",
                json={"battery_level": 50, "notification_permission_enabled": True},
            )

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "device_id": DEVICE_UUID}
        kwargs = update.call_args.kwargs
        assert kwargs["device_id"] == 7
        assert kwargs["battery_level"] == 50
        assert kwargs["battery_optimization_disabled"] is None

    def test_battery_out_of_range(self, client):
        response = client.post(f"/devices/{DEVICE_UUID}/health", json={"battery_level": 150})

        assert response.status_code == 422


class TestOutboxAndSettings:
    def test_outbox_scoped(self, client):
        rows = [
            {
                "id": 1,
                "event_type": "NOTIFICATION_CREATED",
                "aggregate_type": "notification",
                "aggregate_id": "5",
                "payload": {"notification_id": 5},
                "correlation_id": "cid",
                "occurred_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
            }
        ]
        with patch("yapenotifier.api.routes.outbox.txn"), \
             patch("yapenotifier.api.routes.outbox.list_events", return_value=rows) as list_mock:
            response = client.get("/outbox", params={"aggregate_type": "notification"}, headers=SCOPE)

        assert response.status_code == 200
        assert response.json()["events"][0]["occurred_at"].startswith("2026-03-01")
        assert list_mock.call_args.kwargs["commerce_id"] == 3

    def test_outbox_requires_scope(self, client):
        assert client.get("/outbox").status_code == 403

    def test_monitored_packages(self, client):
        with patch("yapenotifier.api.routers.public.txn"), \
             patch("yapenotifier.api.routers.public.list_active_packages", return_value=[YAPE_PKG]):
            response = client.get("/settings/monitored-packages")

        assert response.status_code == 200
        assert response.json() == {"packages": [YAPE_PKG]}
