"""Tests for application exception handlers."""

from __future__ import annotations

import json
from typing import Any

import pytest
from starlette.requests import Request

from delayed_notifier.app.exception_handlers import (
    app_exception_handler,
    generic_exception_handler,
    store_exception_handler,
)
from delayed_notifier.core.exceptions import (
    NotificationConflictError,
    NotificationNotFoundError,
    StoreError,
)


def _build_request(path: str = "/notify/abc") -> Request:
    """Create a minimal ASGI request for handler tests."""
    scope = {
        "type": "http",
        "method": "DELETE",
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": ("test", 1234),
        "server": ("test", 80),
    }
    return Request(scope, lambda: None)


@pytest.fixture
def tracked(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, int]]:
    calls: list[tuple[str, int]] = []

    def fake_track_error(error_type: str, status_code: int) -> None:
        calls.append((error_type, status_code))

    monkeypatch.setattr(
        "delayed_notifier.app.exception_handlers.tracking.track_error",
        fake_track_error,
    )
    return calls


@pytest.mark.unit
class TestProblemDetails:
    @pytest.mark.asyncio
    async def test_not_found_renders_problem_details(self, tracked):
        response = await app_exception_handler(_build_request(), NotificationNotFoundError("abc"))

        body: dict[str, Any] = json.loads(response.body)
        assert response.status_code == 404
        assert body["type"] == "notification-not-found"
        assert body["title"] == "Not Found"
        assert body["instance"] == "/notify/abc"
        assert body["notification_id"] == "abc"
        assert tracked == [("notification-not-found", 404)]

    @pytest.mark.asyncio
    async def test_conflict_carries_reason(self, tracked):
        exc = NotificationConflictError("abc", reason="is being dispatched")

        response = await app_exception_handler(_build_request(), exc)

        assert response.status_code == 409
        assert json.loads(response.body)["detail"] == "notification abc is being dispatched"

    @pytest.mark.asyncio
    async def test_store_error_is_503_without_internals(self, tracked):
        response = await store_exception_handler(_build_request(), StoreError("redis get failed: secret-host"))

        body = json.loads(response.body)
        assert response.status_code == 503
        assert "secret-host" not in body["detail"]
        assert tracked == [("store-unavailable", 503)]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, tracked):
        response = await generic_exception_handler(_build_request(), RuntimeError("boom"))

        body = json.loads(response.body)
        assert response.status_code == 500
        assert "boom" not in body["detail"]
        assert body["type"] == "internal-error"
