"""Best-effort device health reporting."""

from typing import Callable

from yapenotifier.device.ingestion_client import DeliveryError, IngestionClient
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)


class HealthReporter:
    """Posts battery and permission flags to the backend.

    Args:
        client: Backend client.
        device_uuid: Device UUID; reports are skipped when unset.
        probe: Returns the current health fields (battery_level,
            battery_optimization_disabled, notification_permission_enabled).
    """

    def __init__(
        self,
        client: IngestionClient,
        device_uuid: str | None,
        probe: Callable[[], dict],
    ):
        self.client = client
        self.device_uuid = device_uuid
        self.probe = probe

    def report(self) -> bool:
        """Send one report. Backend failures are logged, not raised."""
        if not self.device_uuid:
            return False
        data = self.probe()
        try:
            self.client.report_health(self.device_uuid, data)
        except DeliveryError as e:
            logger.warning(
                "device health report failed",
                extra={"extra_fields": safe_log_context(status_code=e.status_code, error=str(e))},
            )
            return False
        return True
