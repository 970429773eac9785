"""Assignment worker pool — bounded set of coroutines draining assignment requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from dispatch.domain.entities.assignment import AssignmentResult

logger = logging.getLogger(__name__)

AssignHandler = Callable[[str, "str | None"], Awaitable[AssignmentResult]]


@dataclass
class AssignmentJob:
    ticket_id: str
    agent_id: str | None
    future: asyncio.Future


class AssignmentWorkerPool:
    """``submit()`` enqueues and returns a future; *n* workers run the handler.

    The handler's result (or exception) is set on the job's future, so a
    failing assignment never kills a worker.
    """

    def __init__(self, handler: AssignHandler, max_queue: int = 1000) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[AssignmentJob] = asyncio.Queue(maxsize=max_queue)
        self._workers: list[asyncio.Task] = []

    async def start(self, n: int = 4) -> None:
        for i in range(n):
            self._workers.append(asyncio.create_task(self._worker(i), name=f"assign-worker-{i}"))
        logger.info("Started %d assignment workers", n)

    async def stop(self) -> None:
        for t in self._workers:
            t.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    async def submit(self, ticket_id: str, agent_id: str | None = None) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(AssignmentJob(ticket_id=ticket_id, agent_id=agent_id, future=future))
        return future

    async def assign(self, ticket_id: str, agent_id: str | None = None) -> AssignmentResult:
        """Submit and wait for the result."""
        return await (await self.submit(ticket_id, agent_id))

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    async def _worker(self, worker_id: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                result = await self._handler(job.ticket_id, job.agent_id)
            except Exception as exc:
                logger.warning("Worker %d: assignment of ticket %s failed: %s", worker_id, job.ticket_id, exc)
                if not job.future.done():
                    job.future.set_exception(exc)
            else:
                if not job.future.done():
                    job.future.set_result(result)
            finally:
                self._queue.task_done()
