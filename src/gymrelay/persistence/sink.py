"""Persistence sink: bus target running each submission as a detached, supervised task."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from gymrelay.events import HardwareEvent
from gymrelay.persistence.client import PersistenceClient


class PersistenceSink:
    """Accepts HardwareEvent from the bus and persists it off the relay path.

    Tasks are tracked so shutdown can drain them; at most max_in_flight
    submissions talk to the store at once, the rest wait their turn. A
    task is never cancelled because its gym's connections went away.
    """

    def __init__(self, client: PersistenceClient, *, max_in_flight: int = 100) -> None:
        self._client = client
        self._limit = asyncio.Semaphore(max_in_flight)
        self._tasks: set[asyncio.Task] = set()
        self._accepting = True
        self.succeeded = 0
        self.failed = 0

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, HardwareEvent)

    def push_event(self, source: str, evt: object) -> None:
        if isinstance(evt, HardwareEvent):
            self.submit(evt.to_record())

    def submit(self, record: dict[str, Any]) -> asyncio.Task | None:
        """Schedule one record for persistence. Returns the task, or None once draining."""
        if not self._accepting:
            logger.warning("Persistence sink closed; dropping {} event for gym {}", record.get("type"), record.get("gymId"))
            return None
        task = asyncio.create_task(self._run(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, record: dict[str, Any]) -> None:
        async with self._limit:
            try:
                ok = await self._client.log_event(record)
            except Exception:
                logger.exception("Unexpected persistence error for gym {}", record.get("gymId"))
                ok = False
        if ok:
            self.succeeded += 1
        else:
            self.failed += 1

    def start(self) -> None:
        self._accepting = True

    async def drain(self, timeout: float = 10.0) -> int:
        """Stop accepting, wait for in-flight tasks, cancel what is left. Returns cancelled count."""
        self._accepting = False
        pending = set(self._tasks)
        if not pending:
            return 0
        logger.info("Draining {} persistence task(s) (timeout {}s)", len(pending), timeout)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled {} persistence task(s) at shutdown", len(still_running))
        return len(still_running)
