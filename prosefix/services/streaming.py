"""
NDJSON Streaming Service

Bridges a producer coroutine (usually the dispatcher) to a FastAPI
StreamingResponse: the producer writes records into an NDJSONSink while the
response drains it line by line.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ..core.exceptions import StreamFault

logger = logging.getLogger(__name__)

_CLOSED = object()


class NDJSONSink:
    """Append-only channel of newline-delimited JSON records."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.lines_sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, record: dict[str, Any]) -> None:
        """Serialize one record as a single line."""
        if self._closed:
            raise RuntimeError("send() on a closed NDJSON sink")
        self._queue.put_nowait(json.dumps(record, ensure_ascii=False) + "\n")
        self.lines_sent += 1

    def close(self) -> None:
        """End the stream once buffered lines are drained. Idempotent."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "NDJSONSink":
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


Producer = Callable[[NDJSONSink], Awaitable[Any]]


async def stream_ndjson(producer: Producer, *, stream_id: str = "-") -> AsyncIterator[str]:
    """
    Run ``producer`` against a fresh sink and yield its lines.

    A fault inside the producer is logged and reported to the client as a
    final ``{"error": "stream_error"}`` line. If the consumer stops iterating
    (client disconnect) the producer task is cancelled.
    """
    sink = NDJSONSink()

    async def _run() -> None:
        try:
            await producer(sink)
        except Exception as e:
            fault = StreamFault(original_error=e)
            logger.error(
                f"Stream {stream_id} error: {e}",
                exc_info=True,
                extra={"request_id": stream_id},
            )
            await sink.send({"error": fault.error_code})
        finally:
            sink.close()

    task = asyncio.create_task(_run())
    try:
        async for line in sink:
            yield line
    finally:
        if not task.done():
            logger.info(
                f"Stream {stream_id} abandoned by client; cancelling work",
                extra={"request_id": stream_id},
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
