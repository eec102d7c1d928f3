"""HTTP client for the backend, used only by the device agent.

Every call is bounded by a timeout. Transport failures, timeouts and
non-2xx responses all surface as DeliveryError so callers handle a single
exception type.
"""

from typing import Any

import requests

from yapenotifier.observability.correlation import CORRELATION_ID_HEADER, get_correlation_id
from yapenotifier.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class DeliveryError(Exception):
    """A backend call did not succeed.

    Attributes:
        status_code: HTTP status when the backend answered, else None.
    """

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code


class IngestionClient:
    """Thin requests wrapper around the backend endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        cid = get_correlation_id()
        if cid:
            headers[CORRELATION_ID_HEADER] = cid
        return headers

    def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise DeliveryError(status, f"{method} {path} returned {status}") from e
        except requests.Timeout as e:
            raise DeliveryError(None, f"{method} {path} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise DeliveryError(None, f"{method} {path} failed: {type(e).__name__}") from e
        except ValueError as e:
            raise DeliveryError(None, f"{method} {path} returned invalid JSON") from e

    def submit(self, payload: dict) -> dict:
        """POST /notifications. Returns the created record."""
        return self._request("POST", "/notifications", payload)

    def fetch_monitored_packages(self) -> list[str]:
        """GET /settings/monitored-packages."""
        data = self._request("GET", "/settings/monitored-packages")
        packages = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(packages, list):
            raise DeliveryError(None, "monitored-packages response has no package list")
        return [p for p in packages if isinstance(p, str) and p]

    def report_health(self, device_uuid: str, data: dict) -> dict:
        """POST /devices/{uuid}/health."""
        return self._request("POST", f"/devices/{device_uuid}/health", data)
