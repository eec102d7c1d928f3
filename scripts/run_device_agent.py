"""Run the device-side delivery agent.

Usage:
    DEVICE_UUID=... API_BASE_URL=... python scripts/run_device_agent.py            # loop forever
    python scripts/run_device_agent.py --once                                      # one delivery run
    python scripts/run_device_agent.py --reset-failed                              # FAILED -> PENDING
    python scripts/run_device_agent.py --status                                    # outbox counts
    python scripts/run_device_agent.py --capture-stdin < notifications.jsonl       # feed captures

--capture-stdin reads one JSON object per line
({"package_name", "title", "text", "posted_at_ms"?, "android_user_id"?, "android_uid"?})
and runs it through the capture path, as the OS listener would.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys


def _capture_stdin(agent) -> int:
    from yapenotifier.domain.events import RawNotification

    captured = 0
    for line_no, line in enumerate(sys.stdin, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
            raw = RawNotification(
                package_name=data["package_name"],
                title=data.get("title", ""),
                text=data.get("text", ""),
                posted_at_ms=data.get("posted_at_ms"),
                android_user_id=data.get("android_user_id"),
                android_uid=data.get("android_uid"),
            )
        except (ValueError, KeyError) as e:
            print(f"line {line_no}: skipped ({type(e).__name__})", file=sys.stderr)
            continue
        if agent.capture.on_notification_posted(raw) is not None:
            captured += 1
    return captured


def main() -> None:
    parser = argparse.ArgumentParser(description="Yape Notifier device delivery agent.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one delivery pass and exit")
    mode.add_argument("--reset-failed", action="store_true", help="Move FAILED rows back to PENDING")
    mode.add_argument("--status", action="store_true", help="Print outbox counts and exit")
    mode.add_argument("--capture-stdin", action="store_true", help="Capture JSON lines from stdin")
    args = parser.parse_args()

    from yapenotifier.device.agent import build_agent
    from yapenotifier.device.delivery_worker import OUTCOME_SUCCESS
    from yapenotifier.device.settings import load_device_settings

    try:
        settings = load_device_settings()
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)

    agent = build_agent(settings)

    if args.status:
        counts = agent.store.counts()
        last = agent.store.last_sent()
        print(f"outbox:   {settings.outbox_path}")
        for status, count in counts.items():
            print(f"  {status:<8} {count}")
        print(f"last sent: {last.updated_at_ms if last else '-'}")
        return

    if args.reset_failed:
        print(f"reset {agent.store.reset_failed()} failed notifications")
        return

    if args.capture_stdin:
        print(f"captured {_capture_stdin(agent)} notifications")
        return

    if args.once:
        report = agent.worker.run()
        print(
            f"outcome={report.outcome} attempted={report.attempted} sent={report.sent} "
            f"failed={report.failed} rejected={report.rejected}"
        )
        sys.exit(0 if report.outcome == OUTCOME_SUCCESS else 1)

    if not settings.device_uuid:
        print("ERROR: DEVICE_UUID not set")
        sys.exit(1)

    signal.signal(signal.SIGTERM, lambda *_: agent.scheduler.stop(timeout=0))
    try:
        agent.scheduler.run_forever()
    except KeyboardInterrupt:
        agent.scheduler.stop(timeout=0)


if __name__ == "__main__":
    main()
