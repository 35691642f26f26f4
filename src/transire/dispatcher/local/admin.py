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
"""Admin routes for the local dispatcher, mounted under ``/_transire``.

``POST /queues/{name}`` delivers asynchronously, like a real queue.
``POST /schedules/{name}`` runs the handler before answering, so callers see
its failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from transire.core.context import DispatchContext, QueueSender, invoke_handler, utcnow
from transire.kernel.exceptions import QueueNotRegisteredException

if TYPE_CHECKING:
    from transire.core.app import App

logger = logging.getLogger(__name__)


class AdminRouteBuilder:
    """Builds the Starlette routes of the local admin surface."""

    def __init__(self, *, app: App, sender: QueueSender, shutdown: asyncio.Event) -> None:
        self._app = app
        self._sender = sender
        self._shutdown = shutdown

    def build_routes(self) -> list[Route]:
        """Routes relative to the admin mount point."""
        return [
            Route("/health", self._handle_health, methods=["GET"]),
            Route("/queues/{name}", self._handle_queue, methods=["POST"]),
            Route("/schedules/{name}", self._handle_schedule, methods=["POST"]),
        ]

    async def _handle_health(self, request: Request) -> Response:
        return PlainTextResponse("ok")

    async def _handle_queue(self, request: Request) -> Response:
        name = request.path_params["name"]
        try:
            body = await request.body()
        except ClientDisconnect:
            return PlainTextResponse("failed to read body", status_code=400)
        try:
            await self._sender.send(name, body)
        except QueueNotRegisteredException as exc:
            return PlainTextResponse(str(exc), status_code=400)
        except Exception:
            logger.exception("Manual delivery to queue %r failed", name)
        return PlainTextResponse("accepted", status_code=202)

    async def _handle_schedule(self, request: Request) -> Response:
        name = request.path_params["name"]
        schedule = self._app.schedules().get(name)
        if schedule is None:
            return PlainTextResponse(f"schedule {name!r} not registered", status_code=404)
        if schedule.handler is None:
            return PlainTextResponse("schedule handler missing", status_code=400)
        ctx = DispatchContext(queues=self._sender, shutdown=self._shutdown)
        try:
            await invoke_handler(schedule.handler, ctx, utcnow())
        except Exception as exc:
            logger.exception("Manual trigger of schedule %r failed", name)
            return PlainTextResponse(str(exc) or type(exc).__name__, status_code=500)
        return PlainTextResponse("accepted", status_code=202)
