"""Rebalance scheduler — background asyncio loop firing rebalance passes on an interval."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from dispatch.domain.entities.rebalance import RebalanceResult

logger = logging.getLogger(__name__)


class RebalanceScheduler:
    """Runs *run_pass* every *interval_seconds* until stopped.

    A failing pass is logged and the loop keeps going; the pass itself
    decides whether it may run (a concurrent manual pass makes it return
    ``already_running``).
    """

    def __init__(
        self,
        run_pass: Callable[[], Awaitable[RebalanceResult]],
        interval_seconds: float,
    ):
        self._run_pass = run_pass
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def is_started(self) -> bool:
        return self._task is not None

    async def run_once(self) -> RebalanceResult | None:
        try:
            result = await self._run_pass()
        except Exception:
            logger.exception("Scheduled rebalance failed")
            return None
        logger.info(
            "Scheduled rebalance: %s (%d reassignments)", result.reason.value, result.reassignments
        )
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="rebalance-scheduler")
            logger.info("Rebalance scheduler started (every %.0f s)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Rebalance scheduler stopped")
