"""
Request Batcher - Priority-Ordered JSON-RPC Batching
====================================================

Coalesces individual calls that arrive within a batching window into a
single JSON-RPC batch and routes each response item back to its caller.

- add_request() enqueues and returns a pending future immediately
- One flusher task drains the queue every window while work is pending,
  so flushes never overlap
- Each batch is sorted by priority, ties keep arrival order
- A failed send rejects every request of the batch with the same error
"""

import asyncio
import itertools
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from rpc_gateway.errors import GatewayClosedError, RpcProtocolError
from rpc_gateway.models import Priority, QueuedRequest, RpcCall

logger = structlog.get_logger(__name__)

BatchSender = Callable[[List[Dict[str, Any]]], Awaitable[Any]]


def _item_id(item: Any) -> Optional[int]:
    if isinstance(item, dict):
        item_id = item.get("id")
        if isinstance(item_id, int) and not isinstance(item_id, bool):
            return item_id
    return None


class RequestBatcher:
    """Time-windowed, priority-ordered request coalescer.

    Args:
        sender: Coroutine function that delivers one batch payload and
            returns the decoded response
        window_ms: Batching window in milliseconds (default: 10)
    """

    def __init__(self, sender: BatchSender, window_ms: float = 10):
        self._sender = sender
        self.window = window_ms / 1000

        self._queue: List[QueuedRequest] = []
        self._sequence = itertools.count(1)
        self._flush_task: Optional[asyncio.Task] = None
        self._closed = False
        self._closing = asyncio.Event()

        self.batches_sent = 0
        self.requests_sent = 0
        self.batches_failed = 0
        self.last_batch_size = 0

    def add_request(self, call: RpcCall, priority: Priority = Priority.NORMAL) -> asyncio.Future:
        """Queue a call for the next batch.

        Returns:
            Future resolved with the raw response item for this call, or
            rejected with the batch send error
        """
        if self._closed:
            raise GatewayClosedError("batcher is closed")

        future = asyncio.get_running_loop().create_future()
        self._queue.append(QueuedRequest(
            priority=priority.value,
            sequence=next(self._sequence),
            call=call,
            future=future,
        ))
        self._ensure_flusher()
        return future

    def _ensure_flusher(self) -> None:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while self._queue:
            # close() cuts the window short
            try:
                await asyncio.wait_for(self._closing.wait(), timeout=self.window)
            except asyncio.TimeoutError:
                pass
            await self.flush()

    async def flush(self) -> None:
        """Send everything queued so far as one batch."""
        if not self._queue:
            return

        # Swap and sort before the first await so late arrivals go to the next batch.
        batch, self._queue = self._queue, []
        batch.sort()
        payload = [request.to_wire() for request in batch]
        self.last_batch_size = len(batch)

        try:
            response = await self._sender(payload)
        except Exception as e:
            self.batches_failed += 1
            logger.warning(
                "rpc_batch_failed",
                size=len(batch),
                error_type=type(e).__name__,
                error=str(e),
            )
            for request in batch:
                if not request.future.done():
                    request.future.set_exception(e)
            return

        self.batches_sent += 1
        self.requests_sent += len(batch)
        logger.debug("rpc_batch_sent", size=len(batch))
        self._demultiplex(batch, response)

    def _demultiplex(self, batch: List[QueuedRequest], response: Any) -> None:
        if not isinstance(response, list):
            error = RpcProtocolError(f"Expected a JSON array batch response, got {type(response).__name__}")
            for request in batch:
                if not request.future.done():
                    request.future.set_exception(error)
            return

        by_id = {request.sequence: request for request in batch}
        ids = [_item_id(item) for item in response]
        if all(i in by_id for i in ids) and len(set(ids)) == len(ids):
            matched = dict(zip(ids, response))
        elif len(response) == len(batch):
            matched = {request.sequence: item for request, item in zip(batch, response)}
        else:
            logger.warning(
                "rpc_batch_response_mismatch",
                expected=len(batch),
                received=len(response),
            )
            matched = {i: item for i, item in zip(ids, response) if i in by_id}

        for request in batch:
            if request.future.done():
                continue
            if request.sequence in matched:
                request.future.set_result(matched[request.sequence])
            else:
                request.future.set_exception(RpcProtocolError(
                    f"No response item for request id {request.sequence} ({request.call.method})"
                ))

    @property
    def queued(self) -> int:
        return len(self._queue)

    async def close(self) -> None:
        """Stop accepting work and wait until queued requests are sent."""
        self._closed = True
        self._closing.set()
        if self._flush_task is not None:
            await self._flush_task
            self._flush_task = None
        await self.flush()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'queued': len(self._queue),
            'batches_sent': self.batches_sent,
            'batches_failed': self.batches_failed,
            'requests_sent': self.requests_sent,
            'last_batch_size': self.last_batch_size,
        }
