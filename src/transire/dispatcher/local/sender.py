# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""In-process queue fan-out for the local dispatcher."""

from __future__ import annotations

import asyncio
import collections
import itertools
import logging
import time
from collections.abc import Mapping
from typing import Any

from transire.core.context import (
    DispatchContext,
    Message,
    QueueHandler,
    encode_payload,
    invoke_handler,
)
from transire.kernel.exceptions import QueueNotRegisteredException

logger = logging.getLogger(__name__)


class LocalQueueSender:
    """QueueSender that hands each message straight to its handler.

    A send appends the message to an in-memory backlog and returns without
    waiting for delivery. At most ``max_in_flight`` worker tasks exist at a
    time; each takes messages off the backlog until it is empty, so task
    count stays bounded however fast messages arrive. Handler failures are
    logged and never reach the sender.
    """

    def __init__(
        self,
        handlers: Mapping[str, QueueHandler],
        shutdown: asyncio.Event,
        max_in_flight: int = 64,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self._handlers = handlers
        self._shutdown = shutdown
        self._max_in_flight = max_in_flight
        self._backlog: collections.deque[tuple[QueueHandler, Message]] = collections.deque()
        self._workers: set[asyncio.Task[Any]] = set()
        self._active = 0
        self._seq = itertools.count(1)

    @property
    def pending(self) -> int:
        """Deliveries accepted but not yet finished."""
        return len(self._backlog) + self._active

    @property
    def workers(self) -> int:
        return len(self._workers)

    async def send(self, queue: str, payload: bytes | str) -> None:
        handler = self._handlers.get(queue)
        if handler is None:
            raise QueueNotRegisteredException(queue)
        message = Message(id=self._next_id(), queue=queue, body=encode_payload(payload))
        self._backlog.append((handler, message))
        if len(self._workers) < self._max_in_flight:
            task = asyncio.create_task(self._work(), name=f"transire-queue-{queue}")
            self._workers.add(task)

    async def drain(self, timeout: float) -> None:
        """Wait up to *timeout* seconds for pending deliveries, then cancel the rest."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        # Handlers may send while draining, so wait on the live worker set.
        while self._workers:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.wait(set(self._workers), timeout=remaining)
        if not self._workers:
            return
        workers = set(self._workers)
        logger.warning(
            "Cancelling %d queue deliveries still running after %.1fs (%d not started)",
            self._active,
            timeout,
            len(self._backlog),
        )
        self._backlog.clear()
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _work(self) -> None:
        try:
            while self._backlog:
                handler, message = self._backlog.popleft()
                self._active += 1
                try:
                    await self._deliver(handler, message)
                finally:
                    self._active -= 1
        finally:
            # Leave the set in the same step as the empty check so a send
            # never sees a worker that is about to exit.
            self._workers.discard(asyncio.current_task())

    async def _deliver(self, handler: QueueHandler, message: Message) -> None:
        ctx = DispatchContext(queues=self, shutdown=self._shutdown)
        try:
            await invoke_handler(handler, ctx, message)
        except Exception:
            logger.exception("Queue handler for %r failed on message %s", message.queue, message.id)

    def _next_id(self) -> str:
        return f"local-{time.monotonic_ns()}-{next(self._seq)}"
