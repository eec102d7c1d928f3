"""Wiring of the device-side components from DeviceSettings."""

from dataclasses import dataclass

from yapenotifier.device.allowlist import MonitoredPackages
from yapenotifier.device.capture import CaptureHandler
from yapenotifier.device.delivery_worker import DeliveryWorker
from yapenotifier.device.health_reporter import HealthReporter
from yapenotifier.device.ingestion_client import IngestionClient
from yapenotifier.device.outbox_store import OutboxStore
from yapenotifier.device.scheduler import DeliveryScheduler
from yapenotifier.device.settings import DeviceSettings

# Cadence of the allowlist pull and the health report
ALLOWLIST_REFRESH_SECONDS = 3600
HEALTH_REPORT_SECONDS = 900


@dataclass
class DeviceAgent:
    settings: DeviceSettings
    store: OutboxStore
    client: IngestionClient
    allowlist: MonitoredPackages
    capture: CaptureHandler
    worker: DeliveryWorker
    scheduler: DeliveryScheduler
    health: HealthReporter


def _no_health_probe() -> dict:
    # Battery and permission state are only known on the phone itself
    return {}


def build_agent(settings: DeviceSettings, *, health_probe=None, is_connected=None) -> DeviceAgent:
    """Assemble store, client, capture path, worker and scheduler.

    The capture handler kicks the scheduler so a fresh capture is
    delivered without waiting for the next interval.
    """
    store = OutboxStore(settings.outbox_path)
    client = IngestionClient(
        settings.api_base_url,
        api_token=settings.api_token,
        timeout=settings.http_timeout_seconds,
    )
    allowlist = MonitoredPackages(settings.monitored_packages)
    worker = DeliveryWorker(store, client, device_uuid=settings.device_uuid)

    scheduler_kwargs = {}
    if is_connected is not None:
        scheduler_kwargs["is_connected"] = is_connected
    scheduler = DeliveryScheduler(
        worker,
        interval_seconds=settings.delivery_interval_seconds,
        reset_failed_interval_seconds=settings.reset_failed_interval_seconds,
        **scheduler_kwargs,
    )

    capture = CaptureHandler(
        store,
        allowlist,
        retention=settings.outbox_retention,
        on_captured=scheduler.kick,
    )
    health = HealthReporter(client, settings.device_uuid, health_probe or _no_health_probe)

    scheduler.add_periodic(
        "refresh_allowlist",
        ALLOWLIST_REFRESH_SECONDS,
        lambda: allowlist.refresh(client.fetch_monitored_packages),
    )
    scheduler.add_periodic("report_health", HEALTH_REPORT_SECONDS, health.report)

    return DeviceAgent(
        settings=settings,
        store=store,
        client=client,
        allowlist=allowlist,
        capture=capture,
        worker=worker,
        scheduler=scheduler,
        health=health,
    )
