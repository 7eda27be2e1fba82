"""Брокер серверных уведомлений для SSE-потока HTTP-транспорта."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

logger = logging.getLogger("mcpr.transports.events")


class NotificationBroker:
    """Раздаёт JSON-RPC уведомления всем подписчикам SSE.

    `publish` можно звать из любого потока (хэндлеры работают в threadpool),
    доставка идёт через `call_soon_threadsafe` в цикл подписчика.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.append((asyncio.get_running_loop(), queue))
        logger.debug("SSE subscriber added (total=%d)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers = [entry for entry in self._subscribers if entry[1] is not queue]
        logger.debug("SSE subscriber removed (total=%d)", len(self._subscribers))

    def publish(self, message: Dict[str, Any]) -> None:
        for loop, queue in list(self._subscribers):
            if loop.is_closed():
                self.unsubscribe(queue)
                continue
            loop.call_soon_threadsafe(self._deliver, queue, message)

    @staticmethod
    def _deliver(queue: asyncio.Queue, message: Dict[str, Any]) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping notification %s: subscriber queue is full", message.get("method"))

    async def stream(
        self,
        queue: Optional[asyncio.Queue] = None,
        *,
        limit: Optional[int] = None,
    ) -> AsyncIterator[Dict[str, str]]:
        """Генератор SSE-событий для EventSourceResponse.

        Без `queue` подписка оформляется на первом шаге генератора, так что
        соединение, закрытое до начала потока, подписчика не оставляет.
        """
        if queue is None:
            queue = self.subscribe()
        sent = 0
        try:
            while limit is None or sent < limit:
                message = await queue.get()
                yield {"event": "message", "data": json.dumps(message, ensure_ascii=False)}
                sent += 1
        finally:
            self.unsubscribe(queue)


__all__ = ["NotificationBroker"]
