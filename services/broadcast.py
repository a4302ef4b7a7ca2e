"""
Latest-Value Broadcast Channel

A per-key pub/sub primitive built on asyncio queues. Each channel keeps the
most recently published value; every attached stream gets its own
asyncio.Queue, primed with that value at attach time, so a new consumer
immediately sees the current state and then every later publish in order.
"""

import asyncio
from typing import Generic, Optional, Set, TypeVar

from core.logging import get_logger


T = TypeVar("T")

_CLOSED = object()


class LatestValueChannel(Generic[T]):
    """
    Latest value cache plus fan-out to any number of streams.

    - publish() never blocks: a stream whose queue is full loses its oldest
      pending value, never the newest.
    - close() ends every attached stream.
    """

    def __init__(self, key: str, initial: T, max_queue_size: int = 100) -> None:
        self.key = key
        self._value: T = initial
        self._max_queue_size = max_queue_size
        self._queues: Set[asyncio.Queue] = set()
        self._closed = False
        self._logger = get_logger(__name__)

    @property
    def value(self) -> T:
        """Last published value (or the initial one)."""
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def attach(self) -> "ChannelStream[T]":
        """
        Attach a new stream. Its first item is the current value.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        queue.put_nowait(self._value)
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._queues.add(queue)
            self._logger.debug(f"Stream attached to '{self.key}'. total={len(self._queues)}")
        return ChannelStream(self, queue)

    def detach(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)
            self._logger.debug(f"Stream detached from '{self.key}'. total={len(self._queues)}")

    def publish(self, value: T) -> None:
        """Replace the cached value and deliver it to every attached stream."""
        if self._closed:
            return
        self._value = value
        for queue in list(self._queues):
            self._offer(queue, value)

    def close(self) -> None:
        """End all attached streams. Later publishes are ignored."""
        if self._closed:
            return
        self._closed = True
        for queue in list(self._queues):
            self._offer(queue, _CLOSED)
        self._queues.clear()

    def _offer(self, queue: asyncio.Queue, item: object) -> None:
        try:
            queue.put_nowait(item)
        except asyncio.QueueFull:
            queue.get_nowait()
            queue.put_nowait(item)
            self._logger.warning(f"Dropped oldest pending value for slow consumer on '{self.key}'")


class ChannelStream(Generic[T]):
    """
    Consumer handle for a LatestValueChannel.

    Usage:
        stream = manager.subscribe_ticker("BTCUSDT")
        print(stream.latest)            # synchronous read of the cache
        async for quote in stream:      # current value first, then updates
            ...
        stream.close()                  # stop receiving (the subscription keeps polling)
    """

    def __init__(self, channel: LatestValueChannel[T], queue: asyncio.Queue) -> None:
        self._channel = channel
        self._queue = queue

    @property
    def key(self) -> str:
        return self._channel.key

    @property
    def latest(self) -> T:
        """Current cached value of the underlying channel."""
        return self._channel.value

    async def get(self, timeout: Optional[float] = None) -> T:
        """
        Wait for the next item.

        Raises:
            StopAsyncIteration: If the channel was closed
            asyncio.TimeoutError: If `timeout` elapses first
        """
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            # Keep the sentinel so further reads also end
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Detach from the channel."""
        self._channel.detach(self._queue)

    def __aiter__(self) -> "ChannelStream[T]":
        return self

    async def __anext__(self) -> T:
        return await self.get()
