"""
Pub/sub subscription handles.

A subscription owns one redis-py PubSub connection and the worker that
drains it. Handlers never run on the caller's thread:

- Subscription: messages are delivered on a redis-py PubSubWorkerThread
  (daemon thread).
- AsyncSubscription: messages are delivered on an asyncio.Task running
  PubSub.run() in the loop that created the subscription.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import asyncio
import threading
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class Subscription:
    """
    Handle for a channel subscription on the synchronous client.

    Example:
        ```python
        sub = cache.subscribe("orders", lambda order: print(order))
        ...
        sub.unsubscribe()
        ```
    """

    def __init__(
        self,
        channel: str,
        pubsub: Any,
        thread: Any,
        join_timeout: float = 1.0,
        on_stop: Optional[Callable[["Subscription"], None]] = None,
    ) -> None:
        self.channel = channel
        self._pubsub = pubsub
        self._thread = thread
        self._join_timeout = join_timeout
        self._on_stop = on_stop
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """
        Stop the worker thread and release the PubSub connection.

        Idempotent. Safe to call from inside the handler itself.
        """
        if not self._active:
            return
        self._active = False

        # stop() makes the worker loop exit and close the PubSub connection
        self._thread.stop()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=self._join_timeout)
        if self._on_stop is not None:
            self._on_stop(self)

        logger.debug("subscription_stopped", channel=self.channel)

    def __repr__(self) -> str:
        return f"Subscription(channel={self.channel!r}, active={self._active})"


class AsyncSubscription:
    """Handle for a channel subscription on the asynchronous client."""

    def __init__(
        self,
        channel: str,
        pubsub: Any,
        task: "asyncio.Task[Any]",
        on_stop: Optional[Callable[["AsyncSubscription"], None]] = None,
    ) -> None:
        self.channel = channel
        self._pubsub = pubsub
        self._task = task
        self._on_stop = on_stop
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active and not self._task.done()

    async def unsubscribe(self) -> None:
        """Cancel the reader task and close the PubSub connection. Idempotent."""
        if not self._active:
            return
        self._active = False

        current: Optional[asyncio.Task[Any]] = asyncio.current_task()
        in_worker = current is self._task
        if not in_worker:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        await self._pubsub.aclose()

        # called from the handler: the reader exits at its next await
        if in_worker:
            self._task.cancel()
        if self._on_stop is not None:
            self._on_stop(self)

        logger.debug("subscription_stopped", channel=self.channel)

    def __repr__(self) -> str:
        return f"AsyncSubscription(channel={self.channel!r}, active={self.is_active})"
