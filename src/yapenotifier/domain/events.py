"""Notification and payment event models shared by device and backend.

Plain dataclasses, no persistence logic.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

SourceApp = Literal["yape", "plin", "bcp", "interbank", "bbva", "scotiabank"]

SOURCE_APPS: tuple[str, ...] = ("yape", "plin", "bcp", "interbank", "bbva", "scotiabank")

# Device-side outbox states
CaptureStatus = Literal["PENDING", "SENT", "FAILED"]
PENDING: CaptureStatus = "PENDING"
SENT: CaptureStatus = "SENT"
FAILED: CaptureStatus = "FAILED"

# Backend record states (independent of the duplicate flag)
NotificationStatus = Literal["pending", "validated", "inconsistent"]
NOTIFICATION_STATUSES: tuple[str, ...] = ("pending", "validated", "inconsistent")


@dataclass(frozen=True)
class RawNotification:
    """A notification as posted by the OS. Never persisted as-is."""

    package_name: str
    title: str
    text: str
    posted_at_ms: int | None = None
    android_user_id: int | None = None
    android_uid: int | None = None


@dataclass(frozen=True)
class CapturedRecord:
    """One durable outbox row per captured OS notification."""

    id: int
    package_name: str
    title: str
    body: str
    captured_at_ms: int
    status: CaptureStatus
    android_user_id: int | None = None
    android_uid: int | None = None
    posted_at_ms: int | None = None
    attempt_count: int = 0
    last_error: str | None = None
    updated_at_ms: int | None = None


@dataclass(frozen=True)
class PaymentEvent:
    """A text judged to be a genuine received-payment notification.

    amount and payer_name are optional: extraction may fail on a text that
    is still a payment.
    """

    source_app: str
    title: str
    body: str
    amount: Decimal | None = None
    currency: str | None = None
    payer_name: str | None = None
    received_at: str | None = None
    raw_json: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Rejected:
    """Classification rejection. Expected and frequent, not an error."""

    reason: str
    detail: str = ""


@dataclass(frozen=True)
class AppInstance:
    """One logical account of a monitored package on one device."""

    id: int
    commerce_id: int
    device_id: int
    package_name: str
    android_user_id: int
    instance_label: str | None = None

    @property
    def display_name(self) -> str:
        if self.instance_label:
            return self.instance_label
        return f"{self.package_name} (User {self.android_user_id})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "commerce_id": self.commerce_id,
            "device_id": self.device_id,
            "package_name": self.package_name,
            "android_user_id": self.android_user_id,
            "instance_label": self.instance_label,
            "display_name": self.display_name,
        }


@dataclass(frozen=True)
class Device:
    """Backend view of a registered capture device."""

    id: int
    uuid: str
    commerce_id: int | None
    is_active: bool = True
    name: str | None = None
