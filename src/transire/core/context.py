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
"""Per-invocation dispatch context, queue messages, and the queue-sending port.

Every handler receives a :class:`DispatchContext` whatever dispatcher runs
it. HTTP endpoints get the same value through :func:`request_context`.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

_STATE_KEY = "transire_context"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class QueueSender(Protocol):
    """Port for enqueueing a payload on a named queue.

    Raises on failure; returning means the send was accepted by the
    dispatcher's transport.
    """

    async def send(self, queue: str, payload: bytes | str) -> None: ...


@dataclass(frozen=True)
class Message:
    """A queue message as seen by a queue handler."""

    id: str
    queue: str
    body: bytes
    attributes: dict[str, str] = field(default_factory=dict)
    delivery_count: int = 1
    enqueued_at: datetime = field(default_factory=utcnow)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


@dataclass(frozen=True)
class DispatchContext:
    """Value threaded through one handler invocation or one HTTP request."""

    queues: QueueSender
    shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    deadline: datetime | None = None

    async def send(self, queue: str, payload: bytes | str) -> None:
        """Shorthand for ``ctx.queues.send(queue, payload)``."""
        await self.queues.send(queue, payload)

    @property
    def cancelled(self) -> bool:
        """True once the dispatcher started shutting down."""
        return self.shutdown.is_set()

    def remaining(self) -> timedelta | None:
        """Time left before the invocation deadline, if there is one."""
        if self.deadline is None:
            return None
        return max(self.deadline - utcnow(), timedelta(0))


QueueHandler = Callable[[DispatchContext, Message], Awaitable[None] | None]
ScheduleHandler = Callable[[DispatchContext, datetime], Awaitable[None] | None]


def encode_payload(payload: bytes | str) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def _is_async(handler: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


async def invoke_handler(handler: Callable[..., Any], *args: Any) -> None:
    """Invoke a handler, handling both sync and async callables.

    Coroutine functions run on the event loop. Plain callables run in a
    worker thread so a blocking handler never stalls the loop; if one
    returns an awaitable anyway, it is awaited on the loop.
    """
    if _is_async(handler):
        await handler(*args)
        return
    result = await asyncio.to_thread(handler, *args)
    if inspect.isawaitable(result):
        await result


def lambda_deadline(lambda_context: Any) -> datetime | None:
    """Absolute deadline from a Lambda context object, if it exposes one."""
    remaining = getattr(lambda_context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return None
    return utcnow() + timedelta(milliseconds=remaining())


class DispatchContextMiddleware:
    """Pure ASGI middleware that exposes a :class:`DispatchContext` on each request."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        sender: QueueSender,
        shutdown: asyncio.Event | None = None,
    ) -> None:
        self.app = app
        self._sender = sender
        self._shutdown = shutdown

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] in ("http", "websocket"):
            ctx = DispatchContext(
                queues=self._sender,
                shutdown=self._shutdown if self._shutdown is not None else asyncio.Event(),
                deadline=lambda_deadline(scope.get("aws.context")),
            )
            scope.setdefault("state", {})[_STATE_KEY] = ctx
        await self.app(scope, receive, send)


def request_context(request: Request) -> DispatchContext | None:
    """Return the dispatch context attached to *request*, if any."""
    return request.scope.get("state", {}).get(_STATE_KEY)
