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
"""App — the handler registry every dispatcher runs.

Usage::

    app = App(dispatcher=select_dispatcher())

    @app.route("/hello")
    async def hello(request):
        await request_context(request).send("greetings", b"hi")
        return PlainTextResponse("queued")

    @app.queue_handler("greetings")
    async def greet(ctx: DispatchContext, msg: Message) -> None:
        ...

    @app.schedule_handler("heartbeat", timedelta(minutes=5))
    async def beat(ctx: DispatchContext, at: datetime) -> None:
        ...

    asyncio.run(app.run())

Registration call sites are read by static discovery at build time, so
queue names, schedule names, and intervals should be literals or
module-level constants.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import Mount, Router
from starlette.types import ASGIApp

from transire.core.context import QueueHandler, QueueSender, ScheduleHandler
from transire.kernel.exceptions import (
    HandlerAlreadyRegisteredException,
    NoDispatcherException,
    RegistrationException,
)
from transire.naming import ADMIN_PREFIX

if TYPE_CHECKING:
    from transire.dispatcher.ports import Dispatcher

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class Schedule:
    """A named handler that fires every ``every``."""

    name: str
    every: timedelta
    handler: ScheduleHandler | None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return self.every > timedelta(0)


def _as_interval(every: timedelta | int | float) -> timedelta:
    if isinstance(every, timedelta):
        return every
    if isinstance(every, bool) or not isinstance(every, (int, float)):
        raise TypeError(f"schedule interval must be a timedelta or seconds, got {type(every).__name__}")
    return timedelta(seconds=every)


def _check_name(kind: str, name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError(f"{kind} name must be a non-empty string")


class App:
    """Root container: HTTP routes and middleware, queue handlers, and schedules.

    The handler maps carry no lock; finish registering before :meth:`run`.
    """

    def __init__(
        self,
        *,
        dispatcher: Dispatcher | None = None,
        router: Router | None = None,
        queue_sender: QueueSender | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._router = router if router is not None else Router()
        self._queue_sender = queue_sender
        self._queue_handlers: dict[str, QueueHandler] = {}
        self._schedules: dict[str, Schedule] = {}
        self._middleware: list[Middleware] = []

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @property
    def router(self) -> Router:
        """The Starlette router; add middleware-free routes and mounts here."""
        return self._router

    def route(
        self, path: str, methods: list[str] | None = None, name: str | None = None
    ) -> Callable[[F], F]:
        """Decorator form of :meth:`add_route`."""

        def decorator(endpoint: F) -> F:
            self.add_route(path, endpoint, methods=methods, name=name)
            return endpoint

        return decorator

    def add_route(
        self,
        path: str,
        endpoint: Callable[..., Any],
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> None:
        self._check_path(path)
        self._router.add_route(path, endpoint, methods=methods, name=name)

    def mount(self, path: str, app: Any, name: str | None = None) -> None:
        """Mount an ASGI app (or a Starlette ``Router``) under *path*."""
        self._check_path(path)
        self._router.mount(path, app=app, name=name)

    @staticmethod
    def _check_path(path: str) -> None:
        if path == ADMIN_PREFIX or path.startswith(ADMIN_PREFIX + "/"):
            raise ValueError(f"paths under {ADMIN_PREFIX} are reserved")

    def use(self, middleware_class: type, *args: Any, **options: Any) -> None:
        """Wrap the application routes in an ASGI middleware.

        The first middleware added is the outermost. Admin routes are not
        wrapped. Add middleware before :meth:`run`; dispatchers compose the
        stack once at startup.
        """
        self._middleware.append(Middleware(middleware_class, *args, **options))

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        return tuple(self._middleware)

    def asgi(self) -> ASGIApp:
        """The router wrapped in the middleware added with :meth:`use`."""
        if not self._middleware:
            return self._router
        return Starlette(routes=[Mount("/", app=self._router)], middleware=list(self._middleware))

    # ------------------------------------------------------------------
    # Queues and schedules
    # ------------------------------------------------------------------

    def register_queue_handler(
        self, name: str, handler: QueueHandler, *, replace: bool = False
    ) -> None:
        """Bind *handler* to the queue *name*.

        A second registration for the same name raises
        :class:`HandlerAlreadyRegisteredException` unless ``replace=True``.
        """
        _check_name("queue", name)
        if name in self._queue_handlers and not replace:
            raise HandlerAlreadyRegisteredException("queue", name)
        self._queue_handlers[name] = handler

    def register_schedule_handler(
        self,
        name: str,
        every: timedelta | int | float,
        handler: ScheduleHandler | None,
        *,
        replace: bool = False,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Bind *handler* to run every *every* (a timedelta or seconds).

        Non-positive intervals are accepted but never fire.
        """
        _check_name("schedule", name)
        if name in self._schedules and not replace:
            raise HandlerAlreadyRegisteredException("schedule", name)
        self._schedules[name] = Schedule(
            name=name,
            every=_as_interval(every),
            handler=handler,
            metadata=dict(metadata or {}),
        )

    def queue_handler(self, name: str, *, replace: bool = False) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.register_queue_handler(name, func, replace=replace)
            return func

        return decorator

    def schedule_handler(
        self, name: str, every: timedelta | int | float, *, replace: bool = False
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.register_schedule_handler(name, every, func, replace=replace)
            return func

        return decorator

    def queue_handlers(self) -> Mapping[str, QueueHandler]:
        return MappingProxyType(self._queue_handlers)

    def schedules(self) -> Mapping[str, Schedule]:
        return MappingProxyType(self._schedules)

    # ------------------------------------------------------------------
    # Queue sender and dispatcher
    # ------------------------------------------------------------------

    @property
    def queue_sender(self) -> QueueSender | None:
        """Explicit sender override; dispatchers fall back to their own default."""
        return self._queue_sender

    def set_queue_sender(self, sender: QueueSender, *, replace: bool = False) -> None:
        if self._queue_sender is not None and not replace:
            raise RegistrationException("queue sender already set", code="QUEUE_SENDER_SET")
        self._queue_sender = sender

    @property
    def dispatcher(self) -> Dispatcher | None:
        return self._dispatcher

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Hand the app to its dispatcher; returns when the dispatcher stops."""
        if self._dispatcher is None:
            raise NoDispatcherException("no dispatcher configured", code="NO_DISPATCHER")
        await self._dispatcher.run(self, stop)
