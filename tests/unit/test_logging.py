"""Tests for structured logging: context propagation and JSON output."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import pytest

from delayed_notifier.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("delayed_notifier.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestLogContext:
    def test_block_binding_is_restored(self):
        set_log_context(worker=1)

        with log_context(notification_id="abc"):
            assert get_log_context() == {"worker": 1, "notification_id": "abc"}

        assert get_log_context() == {"worker": 1}

    @pytest.mark.asyncio
    async def test_tasks_do_not_share_context(self):
        seen: dict[str, dict] = {}

        async def worker(name: str) -> None:
            set_log_context(worker=name)
            await asyncio.sleep(0.01)
            seen[name] = get_log_context()

        await asyncio.gather(worker("a"), worker("b"))

        assert seen == {"a": {"worker": "a"}, "b": {"worker": "b"}}
        assert get_log_context() == {}

    def test_filter_injects_without_overwriting(self):
        record = _record(notification_id="explicit")

        with log_context(notification_id="bound", worker=2):
            assert ContextInjectingFilter().filter(record)

        assert record.notification_id == "explicit"
        assert record.worker == 2


@pytest.mark.unit
class TestJSONFormatter:
    def test_one_json_object_per_record(self):
        formatter = JSONFormatter(static={"service": "delayed-notifier"})

        line = formatter.format(_record("sent", notification_id="abc", channel="email"))

        data = json.loads(line)
        assert data["message"] == "sent"
        assert data["level"] == "INFO"
        assert data["service"] == "delayed-notifier"
        assert data["notification_id"] == "abc"
        assert data["channel"] == "email"
        assert data["timestamp"].endswith("Z")
        assert "\n" not in line

    def test_exception_stays_on_one_line(self):
        formatter = JSONFormatter()
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        line = formatter.format(record)

        assert "\n" not in line
        assert "RuntimeError: boom" in json.loads(line)["exception"]
