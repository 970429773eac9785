"""Notification outbox — assignment events delivered by a background worker.

The coordinator and the rebalancer only publish events after a successful
commit; delivery happens elsewhere, so a broken notification channel can
never fail or roll back an assignment.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from dispatch.application.ports.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketAssigned:
    ticket_id: str
    agent_id: str


@dataclass(frozen=True)
class TicketReassigned:
    ticket_id: str
    from_agent_id: str
    to_agent_id: str


NotificationEvent = TicketAssigned | TicketReassigned


class NotificationOutbox:
    def __init__(self, max_queue: int = 1000) -> None:
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=max_queue)
        self._worker: asyncio.Task | None = None

    # ── Publish ─────────────────────────────────────────────────────────

    def publish(self, event: NotificationEvent) -> None:
        """Non-blocking enqueue; a full outbox drops the event with an error log."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("Notification outbox full, dropping %s", event)

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    # ── Delivery ────────────────────────────────────────────────────────

    @staticmethod
    async def deliver(sink: NotificationSink, event: NotificationEvent) -> bool:
        try:
            if isinstance(event, TicketAssigned):
                await sink.notify_assigned(event.ticket_id, event.agent_id)
            else:
                await sink.notify_reassigned(
                    event.ticket_id, event.from_agent_id, event.to_agent_id
                )
            return True
        except Exception:
            logger.exception("Failed to deliver notification %s", event)
            return False

    async def flush(self, sink: NotificationSink) -> int:
        """Deliver everything queued right now; returns how many succeeded."""
        delivered = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                if await self.deliver(sink, event):
                    delivered += 1
            finally:
                self._queue.task_done()
        return delivered

    async def run(self, sink: NotificationSink) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(sink, event)
            finally:
                self._queue.task_done()

    # ── Worker lifecycle ────────────────────────────────────────────────

    def start(self, sink: NotificationSink) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self.run(sink), name="notification-outbox")
            logger.info("Notification worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
