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
"""Local dispatcher: one uvicorn server plus in-process queues and schedules."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import socket
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import Mount

from transire.config.properties.local import LocalDispatcherProperties
from transire.core.context import DispatchContextMiddleware, QueueSender
from transire.dispatcher.local.admin import AdminRouteBuilder
from transire.dispatcher.local.scheduler import ScheduleRunner
from transire.dispatcher.local.sender import LocalQueueSender
from transire.kernel.exceptions import ServerStartupException
from transire.naming import ADMIN_PREFIX

if TYPE_CHECKING:
    from transire.core.app import App

logger = logging.getLogger(__name__)


class DispatcherState(str, enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket, failing with :class:`ServerStartupException`."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise ServerStartupException(
            f"cannot listen on {host}:{port}: {exc.strerror or exc}",
            code="BIND_FAILED",
            context={"host": host, "port": port},
        ) from exc
    sock.set_inheritable(True)
    return sock


class LocalDispatcher:
    """Dispatcher for development machines.

    Serves the app router and the admin routes over HTTP, fans queue sends
    out to in-process tasks, and ticks schedules. Setting the ``stop`` event
    drains for ``graceful_timeout`` seconds before cancelling what is left.
    """

    name = "local"

    def __init__(
        self,
        properties: LocalDispatcherProperties | None = None,
        *,
        host: str | None = None,
        port: int | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._properties = properties or LocalDispatcherProperties()
        self._host = host
        self._port = port
        self._environ: Mapping[str, str] = os.environ if environ is None else environ
        self._state = DispatcherState.CREATED
        self._ready = asyncio.Event()
        self._bound_port: int | None = None

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def bound_port(self) -> int | None:
        """Port actually listened on; useful when binding port 0."""
        return self._bound_port

    async def wait_ready(self) -> None:
        """Block until the server accepts connections."""
        await self._ready.wait()

    def resolve_address(self) -> tuple[str, int]:
        host, port = self._properties.resolve_address(self._environ)
        return (self._host if self._host is not None else host, self._port if self._port is not None else port)

    def build_asgi(self, app: App, sender: QueueSender, shutdown: asyncio.Event) -> Starlette:
        """Compose admin routes and the app routes behind the context middleware.

        App middleware wraps the app routes only.
        """
        admin = AdminRouteBuilder(app=app, sender=sender, shutdown=shutdown)
        return Starlette(
            routes=[
                Mount(ADMIN_PREFIX, routes=admin.build_routes(), name="transire-admin"),
                Mount("/", app=app.asgi()),
            ],
            middleware=[Middleware(DispatchContextMiddleware, sender=sender, shutdown=shutdown)],
        )

    async def run(self, app: App, stop: asyncio.Event | None = None) -> None:
        if self._state is not DispatcherState.CREATED:
            raise RuntimeError("a LocalDispatcher can only run once")
        grace = float(self._properties.graceful_timeout)
        host, port = self.resolve_address()
        sock = bind_socket(host, port)
        self._bound_port = sock.getsockname()[1]

        shutdown = asyncio.Event()
        local_sender = LocalQueueSender(app.queue_handlers(), shutdown, self._properties.max_in_flight)
        sender: QueueSender = app.queue_sender or local_sender
        server = uvicorn.Server(
            uvicorn.Config(
                self.build_asgi(app, sender, shutdown),
                lifespan="off",
                log_level="warning",
                log_config=None,
                timeout_graceful_shutdown=grace,
            )
        )
        runner = ScheduleRunner(app.schedules(), sender, shutdown)

        self._state = DispatcherState.RUNNING
        started = runner.start()
        logger.info(
            "Local dispatcher listening on http://%s:%d (%d queue(s), %d schedule loop(s))",
            host,
            self._bound_port,
            len(app.queue_handlers()),
            started,
        )
        serve_task = asyncio.create_task(server.serve(sockets=[sock]), name="transire-http")
        watch_task = asyncio.create_task(self._watch_startup(server, serve_task))
        stop_task = asyncio.create_task((stop or asyncio.Event()).wait())
        try:
            await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._state = DispatcherState.DRAINING
            logger.info("Local dispatcher draining")
            shutdown.set()
            server.should_exit = True
            stop_task.cancel()
            watch_task.cancel()
            try:
                await serve_task
            finally:
                await local_sender.drain(grace)
                await runner.stop(grace)
                sock.close()
                self._state = DispatcherState.STOPPED
                logger.info("Local dispatcher stopped")

    async def _watch_startup(self, server: Any, serve_task: asyncio.Task[Any]) -> None:
        while not server.started and not serve_task.done():
            await asyncio.sleep(0.01)
        if server.started:
            self._ready.set()
