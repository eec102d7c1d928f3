"""Shared pytest fixtures for Yape Notifier tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture
def outbox_store(tmp_path):
    """Fresh SQLite outbox in a temporary directory."""
    from yapenotifier.device.outbox_store import OutboxStore

    return OutboxStore(str(tmp_path / "outbox.db"))


@pytest.fixture(autouse=True)
def _clean_duplicate_config(monkeypatch):
    """Keep backend config env vars from leaking between tests."""
    for name in ("DUPLICATE_WINDOW_SECONDS", "DUPLICATE_MATCH_FIELDS", "MAX_PAYMENT_AMOUNT"):
        monkeypatch.delenv(name, raising=False)
    yield
