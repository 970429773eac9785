"""Notification sinks — webhook delivery over httpx, or plain log lines."""

from __future__ import annotations

import logging

import httpx

from dispatch.application.ports.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


class WebhookNotificationSink(NotificationSink):
    """POSTs one JSON document per event to a configured URL.

    Errors propagate; the outbox logs them and moves on.
    """

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        self._url = url
        self._timeout = timeout
        self._client = client

    async def notify_assigned(self, ticket_id: str, agent_id: str) -> None:
        await self._post({"event": "ticket_assigned", "ticket_id": ticket_id, "agent_id": agent_id})

    async def notify_reassigned(
        self, ticket_id: str, from_agent_id: str, to_agent_id: str
    ) -> None:
        # Both agents are told: the old one loses the ticket, the new one gains it.
        await self._post(
            {
                "event": "ticket_reassigned",
                "ticket_id": ticket_id,
                "agent_id": to_agent_id,
                "from_agent_id": from_agent_id,
                "to_agent_id": to_agent_id,
            }
        )
        await self._post(
            {
                "event": "ticket_unassigned",
                "ticket_id": ticket_id,
                "agent_id": from_agent_id,
                "from_agent_id": from_agent_id,
                "to_agent_id": to_agent_id,
            }
        )

    async def _post(self, payload: dict) -> None:
        if self._client is not None:
            response = await self._client.post(self._url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(self._url, json=payload, timeout=self._timeout)
        response.raise_for_status()
        logger.debug("Webhook delivered %s for ticket %s", payload["event"], payload["ticket_id"])


class LoggingNotificationSink(NotificationSink):
    """Fallback sink used when no webhook URL is configured."""

    async def notify_assigned(self, ticket_id: str, agent_id: str) -> None:
        logger.info("Ticket %s assigned to agent %s", ticket_id, agent_id)

    async def notify_reassigned(
        self, ticket_id: str, from_agent_id: str, to_agent_id: str
    ) -> None:
        logger.info("Ticket %s reassigned %s → %s", ticket_id, from_agent_id, to_agent_id)
