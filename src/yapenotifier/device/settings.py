"""Device agent configuration.

Loaded from environment variables, the way the backend reads its own.
"""

import os
from dataclasses import dataclass, field

DEFAULT_MONITORED_PACKAGES: tuple[str, ...] = (
    "com.bcp.innovacxion.yapeapp",
    "com.yape.android",
    "com.bcp.innovacxion.yape.movil",
    "com.plin.android",
    "pe.com.interbank.mobilebanking",
    "com.bcp.bancadigital",
    "com.bbva.bbvacontinental",
    "com.scotiabank.mobile",
)


@dataclass(frozen=True)
class DeviceSettings:
    """Runtime settings of one capture device.

    Attributes:
        api_base_url: Backend base URL (no trailing slash).
        device_uuid: Client-generated device UUID; None means not linked.
        api_token: Optional bearer token for the backend.
        outbox_path: SQLite file of the local outbox.
        delivery_interval_seconds: Base cadence of delivery runs.
        http_timeout_seconds: Bound on every backend call.
        outbox_retention: Rows kept by the retention trim.
        monitored_packages: Initial allowlist, refreshed from the backend.
        reset_failed_interval_seconds: Cadence of the FAILED → PENDING reset.
    """

    api_base_url: str = "http://localhost:8000"
    device_uuid: str | None = None
    api_token: str | None = None
    outbox_path: str = "yapenotifier_outbox.db"
    delivery_interval_seconds: int = 900
    http_timeout_seconds: int = 10
    outbox_retention: int = 500
    monitored_packages: tuple[str, ...] = field(default=DEFAULT_MONITORED_PACKAGES)
    reset_failed_interval_seconds: int = 6 * 3600


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def load_device_settings() -> DeviceSettings:
    """Build DeviceSettings from the environment.

    Raises:
        ValueError: On malformed numeric values.
    """
    packages_raw = os.environ.get("MONITORED_PACKAGES", "")
    packages = tuple(p.strip() for p in packages_raw.split(",") if p.strip())

    return DeviceSettings(
        api_base_url=os.environ.get("API_BASE_URL", "http://localhost:8000").rstrip("/"),
        device_uuid=os.environ.get("DEVICE_UUID") or None,
        api_token=os.environ.get("API_TOKEN") or None,
        outbox_path=os.environ.get("OUTBOX_PATH", "yapenotifier_outbox.db"),
        delivery_interval_seconds=_int_env("DELIVERY_INTERVAL_SECONDS", 900),
        http_timeout_seconds=_int_env("HTTP_TIMEOUT_SECONDS", 10),
        outbox_retention=_int_env("OUTBOX_RETENTION", 500),
        monitored_packages=packages or DEFAULT_MONITORED_PACKAGES,
        reset_failed_interval_seconds=_int_env("RESET_FAILED_INTERVAL_SECONDS", 6 * 3600),
    )
