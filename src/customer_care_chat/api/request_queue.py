"""Per-session request queue.

Messages for one chat session are handled one at a time, in arrival order.
Different sessions run concurrently up to ``max_concurrent``.

A request that times out is cancelled. Work already running stops at its next
await and its result is discarded; changes it made before that point remain.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict
from uuid import UUID

import structlog

logger = structlog.get_logger()


@dataclass
class QueuedRequest:
    """A unit of work waiting for its session's worker."""

    session_id: UUID
    task: Callable[..., Awaitable[Any]]
    args: tuple
    kwargs: dict
    future: asyncio.Future


def _cancel_abandoned(runner: asyncio.Future, future: asyncio.Future) -> None:
    if future.cancelled():
        runner.cancel()


class RequestQueue:
    """Serializes work per chat session."""

    def __init__(self, max_concurrent: int = 10, queue_timeout: float = 30.0) -> None:
        self.max_concurrent = max_concurrent
        self.queue_timeout = queue_timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.queues: Dict[UUID, asyncio.Queue] = {}
        self._workers: Dict[UUID, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        logger.info("request_queue_initialized", max_concurrent=max_concurrent)

    async def _get_queue(self, session_id: UUID) -> asyncio.Queue:
        """Get or create the queue and worker for a session."""
        async with self._lock:
            if session_id not in self.queues:
                self.queues[session_id] = asyncio.Queue()
                self._workers[session_id] = asyncio.create_task(self._process_queue(session_id))
            return self.queues[session_id]

    async def _process_queue(self, session_id: UUID) -> None:
        queue = self.queues[session_id]
        try:
            while True:
                request = await queue.get()
                try:
                    async with self.semaphore:
                        if not request.future.done():
                            await self._run(request)
                finally:
                    queue.task_done()
        except asyncio.CancelledError:
            logger.info("queue_worker_cancelled", session_id=str(session_id))

    async def _run(self, request: QueuedRequest) -> None:
        """Run one request; cancelling its future cancels the work."""
        runner = asyncio.ensure_future(request.task(*request.args, **request.kwargs))
        request.future.add_done_callback(partial(_cancel_abandoned, runner))
        try:
            await asyncio.wait({runner})
        except asyncio.CancelledError:
            runner.cancel()
            raise

        if runner.cancelled():
            logger.warning("request_abandoned", session_id=str(request.session_id))
            return
        if request.future.done():
            return
        error = runner.exception()
        if error is not None:
            request.future.set_exception(error)
        else:
            request.future.set_result(runner.result())

    async def enqueue_request(
        self,
        session_id: UUID,
        task: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any
    ) -> Any:
        """Queue work behind the session's earlier requests and wait for it."""
        queue = await self._get_queue(session_id)
        future = asyncio.get_running_loop().create_future()
        await queue.put(QueuedRequest(session_id, task, args, kwargs, future))

        try:
            return await asyncio.wait_for(future, timeout=self.queue_timeout)
        except asyncio.TimeoutError:
            logger.error("request_timeout", session_id=str(session_id))
            raise TimeoutError("Request processing timed out")

    async def discard(self, session_id: UUID) -> None:
        """Stop the worker of a closed session."""
        async with self._lock:
            self.queues.pop(session_id, None)
            worker = self._workers.pop(session_id, None)
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    async def cleanup(self) -> None:
        """Cancel every worker."""
        async with self._lock:
            workers = list(self._workers.values())
            self.queues.clear()
            self._workers.clear()
        for worker in workers:
            if not worker.done():
                worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        logger.info("request_queue_cleaned_up")
