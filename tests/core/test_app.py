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
"""Tests for the App handler registry."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse
from starlette.testclient import TestClient

from transire.core import App, Schedule
from transire.kernel.exceptions import (
    HandlerAlreadyRegisteredException,
    NoDispatcherException,
    RegistrationException,
)


async def _noop(ctx, payload) -> None:
    return None


class _RecordingDispatcher:
    name = "recording"

    def __init__(self) -> None:
        self.calls: list[tuple[App, asyncio.Event | None]] = []

    async def run(self, app: App, stop: asyncio.Event | None = None) -> None:
        self.calls.append((app, stop))


class _NullSender:
    async def send(self, queue: str, payload: bytes | str) -> None:
        return None


class TestQueueRegistration:
    def test_register_and_lookup(self):
        app = App()
        app.register_queue_handler("orders", _noop)
        assert app.queue_handlers()["orders"] is _noop

    def test_decorator_returns_function(self):
        app = App()

        @app.queue_handler("orders")
        async def handle(ctx, msg) -> None: ...

        assert app.queue_handlers()["orders"] is handle

    def test_duplicate_raises(self):
        app = App()
        app.register_queue_handler("orders", _noop)
        with pytest.raises(HandlerAlreadyRegisteredException) as exc_info:
            app.register_queue_handler("orders", _noop)
        assert exc_info.value.kind == "queue"
        assert exc_info.value.name == "orders"

    def test_replace_overrides(self):
        app = App()

        async def other(ctx, msg) -> None: ...

        app.register_queue_handler("orders", _noop)
        app.register_queue_handler("orders", other, replace=True)
        assert app.queue_handlers()["orders"] is other

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            App().register_queue_handler("", _noop)

    def test_view_is_read_only(self):
        app = App()
        app.register_queue_handler("orders", _noop)
        with pytest.raises(TypeError):
            app.queue_handlers()["other"] = _noop  # type: ignore[index]


class TestScheduleRegistration:
    def test_timedelta_interval(self):
        app = App()
        app.register_schedule_handler("report", timedelta(hours=1), _noop)
        schedule = app.schedules()["report"]
        assert isinstance(schedule, Schedule)
        assert schedule.every == timedelta(hours=1)
        assert schedule.enabled

    def test_seconds_interval(self):
        app = App()

        @app.schedule_handler("tick", 90)
        async def tick(ctx, at) -> None: ...

        assert app.schedules()["tick"].every == timedelta(seconds=90)
        assert app.schedules()["tick"].handler is tick

    def test_non_positive_interval_is_kept_but_disabled(self):
        app = App()
        app.register_schedule_handler("never", timedelta(0), _noop)
        app.register_schedule_handler("backwards", -5, _noop)
        assert not app.schedules()["never"].enabled
        assert not app.schedules()["backwards"].enabled

    def test_bool_interval_rejected(self):
        with pytest.raises(TypeError):
            App().register_schedule_handler("bad", True, _noop)

    def test_duplicate_raises(self):
        app = App()
        app.register_schedule_handler("report", 60, _noop)
        with pytest.raises(HandlerAlreadyRegisteredException):
            app.register_schedule_handler("report", 120, _noop)

    def test_metadata_is_copied(self):
        app = App()
        meta = {"owner": "ops"}
        app.register_schedule_handler("report", 60, _noop, metadata=meta)
        meta["owner"] = "changed"
        assert app.schedules()["report"].metadata == {"owner": "ops"}


class TestRoutes:
    def test_route_decorator_adds_route(self):
        app = App()

        @app.route("/hello", methods=["GET"])
        async def hello(request):
            return PlainTextResponse("hi")

        assert [route.path for route in app.router.routes] == ["/hello"]

    @pytest.mark.parametrize("path", ["/_transire", "/_transire/health", "/_transire/queues/x"])
    def test_admin_prefix_reserved(self, path: str):
        with pytest.raises(ValueError):
            App().add_route(path, lambda request: None)

    def test_similar_prefix_allowed(self):
        app = App()
        app.add_route("/_transire-docs", lambda request: None)
        assert len(app.router.routes) == 1


class _RecordingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, calls: list[str], tag: str) -> None:
        super().__init__(app)
        self.calls = calls
        self.tag = tag

    async def dispatch(self, request, call_next):
        self.calls.append(self.tag)
        response = await call_next(request)
        response.headers["x-" + self.tag] = "1"
        return response


class TestMiddleware:
    def test_router_served_directly_without_middleware(self):
        app = App()
        assert app.asgi() is app.router
        assert app.middleware == ()

    def test_first_middleware_is_outermost(self):
        calls: list[str] = []
        app = App()
        app.use(_RecordingMiddleware, calls=calls, tag="outer")
        app.use(_RecordingMiddleware, calls=calls, tag="inner")

        @app.route("/hello", methods=["GET"])
        async def hello(request):
            calls.append("endpoint")
            return PlainTextResponse("hi")

        assert len(app.middleware) == 2
        with TestClient(app.asgi()) as client:
            response = client.get("/hello")
        assert response.text == "hi"
        assert response.headers["x-outer"] == "1"
        assert response.headers["x-inner"] == "1"
        assert calls == ["outer", "inner", "endpoint"]


class TestQueueSenderAndRun:
    def test_sender_set_once(self):
        app = App()
        app.set_queue_sender(_NullSender())
        with pytest.raises(RegistrationException) as exc_info:
            app.set_queue_sender(_NullSender())
        assert exc_info.value.code == "QUEUE_SENDER_SET"

    def test_sender_replace(self):
        app = App()
        second = _NullSender()
        app.set_queue_sender(_NullSender())
        app.set_queue_sender(second, replace=True)
        assert app.queue_sender is second

    @pytest.mark.asyncio
    async def test_run_without_dispatcher(self):
        with pytest.raises(NoDispatcherException):
            await App().run()

    @pytest.mark.asyncio
    async def test_run_delegates_to_dispatcher(self):
        dispatcher = _RecordingDispatcher()
        app = App(dispatcher=dispatcher)
        stop = asyncio.Event()
        await app.run(stop)
        assert dispatcher.calls == [(app, stop)]
        assert app.dispatcher is dispatcher
