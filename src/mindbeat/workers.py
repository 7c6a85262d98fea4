"""Isolated analysis workers connected by bounded asyncio queues.

Each worker owns a private handler object (created fresh by a factory on
every start) and processes one request at a time, in arrival order.  The
orchestrator only ever talks to a worker through :meth:`Worker.submit`;
results come back through the ``on_result`` callback on the same event
loop.  Handler exceptions are logged and swallowed so a bad window can't
take the pipeline down.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from mindbeat.config import WORKER_QUEUE_SIZE

log = logging.getLogger(__name__)

_STOP = object()


class Worker:
    """One request/response actor.

    Args:
        name: Used in log messages and the asyncio task name.
        factory: Zero-argument callable returning the request handler.  The
            handler is any callable ``request -> result | None``.
        on_result: Called with every non-None result.
        maxsize: Queue bound.  When full, the oldest pending request is
            discarded in favour of the newest.
    """

    def __init__(
        self,
        name: str,
        factory: Callable[[], Callable[[Any], Any]],
        on_result: Callable[[Any], None],
        maxsize: int = WORKER_QUEUE_SIZE,
    ) -> None:
        self.name = name
        self.factory = factory
        self.on_result = on_result
        self.maxsize = maxsize
        self.handler = factory()
        self.dropped = 0
        self.processed = 0
        self._queue: asyncio.Queue | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the worker task with a fresh handler.  Needs a running loop."""
        if self.running:
            return
        self.handler = self.factory()
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._task = asyncio.create_task(self._run(), name=f"worker:{self.name}")
        log.debug("worker %s started", self.name)

    async def stop(self, drain: bool = True) -> None:
        """Stop the task.  With ``drain`` pending requests are processed first."""
        if not self.running or self._queue is None or self._task is None:
            return
        if not drain:
            self._discard_pending()
        await self._queue.put(_STOP)
        await self._task
        self._task = None
        self._queue = None
        log.debug("worker %s stopped (%d processed, %d dropped)",
                  self.name, self.processed, self.dropped)

    def reset(self) -> None:
        """Discard queued requests and replace the handler.

        Nothing from the previous connection reaches the fresh handler.
        """
        discarded = self._discard_pending()
        if discarded:
            log.debug("worker %s discarded %d stale requests", self.name, discarded)
        self.handler = self.factory()

    def _discard_pending(self) -> int:
        if self._queue is None:
            return 0
        n = 0
        stopping = False
        while not self._queue.empty():
            item = self._queue.get_nowait()
            self._queue.task_done()
            if item is _STOP:
                stopping = True
            else:
                n += 1
        if stopping:
            self._queue.put_nowait(_STOP)
        return n

    async def join(self) -> None:
        """Wait until every queued request has been handled."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def submit(self, request: Any) -> None:
        """Send a request.  Runs inline when the worker task isn't running."""
        if not self.running or self._queue is None:
            self._deliver(self.call(request))
            return
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
            log.debug("worker %s queue full, dropped oldest request", self.name)
        self._queue.put_nowait(request)

    def call(self, request: Any) -> Any:
        """Run the handler on one request, returning None on failure."""
        try:
            result = self.handler(request)
        except Exception:
            log.exception("worker %s failed on a request", self.name)
            return None
        self.processed += 1
        return result

    def _deliver(self, result: Any) -> None:
        if result is not None:
            self.on_result(result)

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            request = await queue.get()
            try:
                if request is _STOP:
                    return
                result = self.call(request)
                try:
                    self._deliver(result)
                except Exception:
                    log.exception("worker %s result listener failed", self.name)
            finally:
                queue.task_done()
