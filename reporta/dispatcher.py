"""Per-reporter event queues between the webhook and the conversation engine.

The webhook acknowledges immediately and hands events to `submit()`. Each
reporter gets its own queue drained by a single task, so events from one
reporter are handled strictly in arrival order while different reporters
proceed concurrently.
"""

from __future__ import annotations

from typing import Dict
import asyncio
import logging

from .events import InboundEvent
from .observability import conversation_events_total

logger = logging.getLogger("reporta.dispatcher")


class EventDispatcher:
    def __init__(self, engine) -> None:
        self._engine = engine
        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}

    def submit(self, event: InboundEvent) -> None:
        queue = self._queues.get(event.reporter_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[event.reporter_id] = queue
        queue.put_nowait(event)

        worker = self._workers.get(event.reporter_id)
        if worker is None or worker.done():
            self._workers[event.reporter_id] = asyncio.create_task(self._drain(event.reporter_id))

    async def _drain(self, reporter_id: str) -> None:
        queue = self._queues[reporter_id]
        while True:
            try:
                event = queue.get_nowait()
            except asyncio.QueueEmpty:
                # No await between the empty check and the cleanup, so no
                # event can slip in unseen.
                self._queues.pop(reporter_id, None)
                self._workers.pop(reporter_id, None)
                return
            try:
                await self._engine.handle(event)
            except Exception:
                conversation_events_total.labels(step="-", outcome="error").inc()
                logger.exception("Unhandled error processing event from %s", reporter_id)

    @property
    def busy_reporters(self) -> int:
        return len(self._workers)

    async def join(self) -> None:
        """Wait until every queued event has been processed."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
            for reporter_id, task in list(self._workers.items()):
                if task.done():
                    self._workers.pop(reporter_id, None)
