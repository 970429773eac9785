"""Tests for the notification sinks."""

import json

import httpx
import pytest

from dispatch.adapters.notifications.webhook_notifier import (
    LoggingNotificationSink,
    WebhookNotificationSink,
)


def _recording_client(status_code: int = 200):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(status_code)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


@pytest.mark.asyncio
async def test_assignment_posted_as_json():
    client, seen = _recording_client()
    async with client:
        sink = WebhookNotificationSink("https://hooks.example/dispatch", client=client)
        await sink.notify_assigned("t1", "a")
    assert seen == [{"event": "ticket_assigned", "ticket_id": "t1", "agent_id": "a"}]


@pytest.mark.asyncio
async def test_reassignment_tells_both_agents():
    client, seen = _recording_client()
    async with client:
        sink = WebhookNotificationSink("https://hooks.example/dispatch", client=client)
        await sink.notify_reassigned("t1", "a", "b")
    assert [(p["event"], p["agent_id"]) for p in seen] == [
        ("ticket_reassigned", "b"),
        ("ticket_unassigned", "a"),
    ]


@pytest.mark.asyncio
async def test_http_error_raised():
    client, _ = _recording_client(status_code=500)
    async with client:
        sink = WebhookNotificationSink("https://hooks.example/dispatch", client=client)
        with pytest.raises(httpx.HTTPStatusError):
            await sink.notify_assigned("t1", "a")


@pytest.mark.asyncio
async def test_logging_sink(caplog):
    caplog.set_level("INFO")
    sink = LoggingNotificationSink()
    await sink.notify_assigned("t1", "a")
    await sink.notify_reassigned("t1", "a", "b")
    assert "Ticket t1 assigned to agent a" in caplog.text
    assert "reassigned a → b" in caplog.text
