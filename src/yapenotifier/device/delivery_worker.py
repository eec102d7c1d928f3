"""Delivery worker: drains the local outbox towards the backend.

For every PENDING row, oldest capture first:
1. Re-classify (rules may have changed since capture)
2. Rejected -> FAILED with last_error "rejected:<reason>"
3. Accepted -> POST /notifications; 2xx -> SENT, any DeliveryError -> FAILED

A failed row never stops the batch. Delivery is at-least-once; the
backend's duplicate detector absorbs resubmissions.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from yapenotifier.device.ingestion_client import DeliveryError, IngestionClient
from yapenotifier.device.outbox_store import OutboxStore
from yapenotifier.domain.classifier import DEFAULT_MAX_AMOUNT, classify
from yapenotifier.domain.events import CapturedRecord, PaymentEvent, Rejected
from yapenotifier.infra.time import from_epoch_ms, to_iso
from yapenotifier.observability.correlation import (
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_RETRY = "retry"
OUTCOME_FAILURE = "failure"


@dataclass
class RunReport:
    """Result of one worker run, consumed by the scheduler.

    outcome is "success" when nothing ended FAILED, "retry" when anything
    did, "failure" when the run could not start (device not linked).
    """

    outcome: str = OUTCOME_SUCCESS
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    rejected: int = 0
    correlation_id: str | None = None
    errors: list[str] = field(default_factory=list)


def build_payload(
    record: CapturedRecord,
    event: PaymentEvent,
    *,
    device_uuid: str,
) -> dict[str, Any]:
    """Ingestion request body for one classified record.

    status is omitted so the backend runs its own validator.
    """
    raw_json: dict[str, Any] = dict(event.raw_json)
    raw_json.setdefault("package_name", record.package_name)
    raw_json.setdefault("original_timestamp", record.captured_at_ms)
    if record.android_user_id is not None:
        raw_json["android_user_id"] = record.android_user_id
    if record.android_uid is not None:
        raw_json["android_uid"] = record.android_uid
    if record.posted_at_ms is not None:
        raw_json["posted_at"] = record.posted_at_ms

    payload: dict[str, Any] = {
        "device_id": device_uuid,
        "source_app": event.source_app,
        "package_name": record.package_name,
        "title": event.title,
        "body": event.body,
        "received_at": event.received_at or to_iso(from_epoch_ms(record.captured_at_ms)),
        "raw_json": raw_json,
    }
    if record.android_user_id is not None:
        payload["android_user_id"] = record.android_user_id
    if record.android_uid is not None:
        payload["android_uid"] = record.android_uid
    if record.posted_at_ms is not None:
        payload["posted_at"] = to_iso(from_epoch_ms(record.posted_at_ms))
    if event.amount is not None:
        payload["amount"] = float(event.amount)
    if event.currency:
        payload["currency"] = event.currency
    if event.payer_name:
        payload["payer_name"] = event.payer_name
    return payload


class DeliveryWorker:
    """One pass over the outbox per run()."""

    def __init__(
        self,
        store: OutboxStore,
        client: IngestionClient,
        *,
        device_uuid: str | None,
        max_amount: Decimal = DEFAULT_MAX_AMOUNT,
    ):
        self.store = store
        self.client = client
        self.device_uuid = device_uuid
        self.max_amount = max_amount

    def run(self) -> RunReport:
        """Attempt every PENDING row once.

        Returns:
            RunReport for the scheduler.
        """
        cid = generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            return self._run(cid)
        finally:
            reset_correlation_id(token)

    def _run(self, cid: str) -> RunReport:
        report = RunReport(correlation_id=cid)

        if not self.device_uuid:
            logger.error("device UUID not configured, cannot deliver")
            report.outcome = OUTCOME_FAILURE
            return report

        pending = self.store.pending()
        if not pending:
            logger.debug("no pending notifications")
            return report

        logger.info(
            "delivery run started",
            extra={"extra_fields": safe_log_context(pending=len(pending))},
        )

        for record in pending:
            report.attempted += 1
            self._deliver_one(record, report)

        if report.failed or report.rejected:
            report.outcome = OUTCOME_RETRY

        logger.info(
            "delivery run finished",
            extra={
                "extra_fields": safe_log_context(
                    outcome=report.outcome,
                    attempted=report.attempted,
                    sent=report.sent,
                    failed=report.failed,
                    rejected=report.rejected,
                )
            },
        )
        return report

    def _deliver_one(self, record: CapturedRecord, report: RunReport) -> None:
        result = classify(
            record.package_name,
            record.title,
            record.body,
            captured_at_ms=record.captured_at_ms,
            max_amount=self.max_amount,
        )

        if isinstance(result, Rejected):
            self.store.mark_failed(record.id, f"rejected:{result.reason}")
            report.rejected += 1
            logger.info(
                "notification rejected by classifier",
                extra={
                    "extra_fields": safe_log_context(
                        record_id=record.id,
                        package_name=record.package_name,
                        reason=result.reason,
                    )
                },
            )
            return

        payload = build_payload(record, result, device_uuid=self.device_uuid)
        try:
            response = self.client.submit(payload)
        except DeliveryError as e:
            self.store.mark_failed(record.id, f"delivery:{e}")
            report.failed += 1
            report.errors.append(str(e))
            logger.warning(
                "notification delivery failed",
                extra={
                    "extra_fields": safe_log_context(
                        record_id=record.id,
                        status_code=e.status_code,
                        error=str(e),
                    )
                },
            )
            return

        self.store.mark_sent(record.id)
        report.sent += 1
        logger.info(
            "notification delivered",
            extra={
                "extra_fields": safe_log_context(
                    record_id=record.id,
                    source_app=result.source_app,
                    notification_id=response.get("id") if isinstance(response, dict) else None,
                    is_duplicate=response.get("is_duplicate") if isinstance(response, dict) else None,
                )
            },
        )
