"""Recurring runner for the delivery worker.

Runs the worker on a fixed cadence, skips runs while offline, backs off
exponentially after runs that left rows FAILED, and periodically resets
FAILED rows so nothing is given up on. Housekeeping jobs (allowlist
refresh, health reports) ride on the same loop.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable

from yapenotifier.device.delivery_worker import OUTCOME_SUCCESS, DeliveryWorker, RunReport
from yapenotifier.observability.logging import get_logger
from yapenotifier.observability.redaction import safe_log_context

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff after failed runs."""

    initial_seconds: float = 30
    max_seconds: float = 3600
    multiplier: float = 2

    def delay(self, consecutive_failures: int) -> float:
        if consecutive_failures <= 0:
            return 0
        delay = self.initial_seconds * (self.multiplier ** (consecutive_failures - 1))
        return min(delay, self.max_seconds)


@dataclass
class _PeriodicJob:
    name: str
    interval_seconds: float
    fn: Callable[[], object]
    last_run: float


class DeliveryScheduler:
    """Drives DeliveryWorker.run() from a background thread.

    Args:
        worker: The delivery worker.
        interval_seconds: Cadence while runs succeed.
        is_connected: Connectivity gate; runs are skipped while it is False.
        backoff: Delay policy after failed runs.
        reset_failed_interval_seconds: Cadence of the FAILED -> PENDING reset.
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        worker: DeliveryWorker,
        *,
        interval_seconds: float = 900,
        is_connected: Callable[[], bool] = lambda: True,
        backoff: BackoffPolicy | None = None,
        reset_failed_interval_seconds: float = 6 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.worker = worker
        self.interval_seconds = interval_seconds
        self.is_connected = is_connected
        self.backoff = backoff or BackoffPolicy()
        self.clock = clock

        self.consecutive_failures = 0
        self.last_report: RunReport | None = None

        self._jobs: list[_PeriodicJob] = []
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

        self.add_periodic("reset_failed", reset_failed_interval_seconds, self._reset_failed)

    def add_periodic(self, name: str, interval_seconds: float, fn: Callable[[], object]) -> None:
        """Register a housekeeping job run at most once per interval."""
        self._jobs.append(_PeriodicJob(name, interval_seconds, fn, last_run=self.clock()))

    def _reset_failed(self) -> int:
        count = self.worker.store.reset_failed()
        if count:
            logger.info(
                "failed notifications reset to pending",
                extra={"extra_fields": safe_log_context(count=count)},
            )
        return count

    def _run_due_jobs(self) -> None:
        now = self.clock()
        for job in self._jobs:
            if now - job.last_run < job.interval_seconds:
                continue
            job.last_run = now
            try:
                job.fn()
            except Exception:
                logger.exception(
                    "periodic job failed",
                    extra={"extra_fields": safe_log_context(job=job.name)},
                )

    def next_delay(self) -> float:
        """Seconds until the next run."""
        if self.consecutive_failures == 0:
            return self.interval_seconds
        return self.backoff.delay(self.consecutive_failures)

    def run_cycle(self) -> RunReport | None:
        """Run due jobs, then the worker if online.

        Returns:
            The worker's report, or None when the run was skipped offline.
        """
        self._run_due_jobs()

        if not self.is_connected():
            logger.info("offline, delivery run skipped")
            return None

        report = self.worker.run()
        self.last_report = report
        if report.outcome == OUTCOME_SUCCESS:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1
            logger.warning(
                "delivery run incomplete, backing off",
                extra={
                    "extra_fields": safe_log_context(
                        outcome=report.outcome,
                        consecutive_failures=self.consecutive_failures,
                        next_delay=self.next_delay(),
                    )
                },
            )
        return report

    def kick(self) -> None:
        """Request an early run (e.g. right after a capture)."""
        self._wake_event.set()

    def _loop(self) -> None:
        logger.info(
            "delivery scheduler started",
            extra={"extra_fields": safe_log_context(interval_seconds=self.interval_seconds)},
        )
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except Exception:
                logger.exception("delivery run crashed")
                self.consecutive_failures += 1

            self._wake_event.wait(timeout=self.next_delay())
            self._wake_event.clear()
        logger.info("delivery scheduler stopped")

    def start(self, daemon: bool = True) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("delivery scheduler already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="delivery-scheduler", daemon=daemon)
        self._thread.start()

    def stop(self, timeout: float | None = 10) -> None:
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_forever(self) -> None:
        """Run the loop in the calling thread until stop() is called."""
        self._stop_event.clear()
        self._loop()
