"""Monitored-package allowlist used by the capture callback.

The classifier's package mapping does not depend on this list; a stale
allowlist only narrows what gets captured.
"""

import threading
from typing import Callable, Iterable

from yapenotifier.device.ingestion_client import DeliveryError
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)


class MonitoredPackages:
    """Thread-safe set of package names to capture."""

    def __init__(self, packages: Iterable[str]):
        self._lock = threading.Lock()
        self._packages = frozenset(p.strip().lower() for p in packages if p.strip())

    def __contains__(self, package_name: object) -> bool:
        if not isinstance(package_name, str):
            return False
        with self._lock:
            return package_name.strip().lower() in self._packages

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return self._packages

    def refresh(self, fetch: Callable[[], list[str]]) -> bool:
        """Replace the set with the backend's list.

        A failed fetch or an empty list keeps the previous set.

        Returns:
            True if the set was replaced.
        """
        try:
            packages = fetch()
        except DeliveryError as e:
            logger.warning(
                "monitored packages refresh failed, keeping previous list",
                extra={"extra_fields": safe_log_context(status_code=e.status_code, error=str(e))},
            )
            return False

        normalized = frozenset(p.strip().lower() for p in packages if p.strip())
        if not normalized:
            logger.warning("monitored packages refresh returned no packages, keeping previous list")
            return False

        with self._lock:
            self._packages = normalized
        logger.info(
            "monitored packages refreshed",
            extra={"extra_fields": safe_log_context(count=len(normalized))},
        )
        return True
