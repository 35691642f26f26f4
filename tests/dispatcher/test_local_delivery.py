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
"""Tests for the local queue sender and schedule runner."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta

import pytest

from transire.core import App, DispatchContext, Message
from transire.dispatcher.local import LocalQueueSender, ScheduleRunner
from transire.kernel.exceptions import QueueNotRegisteredException


class TestLocalQueueSender:
    @pytest.mark.asyncio
    async def test_delivers_exactly_once(self):
        received: list[Message] = []
        done = asyncio.Event()

        async def handler(ctx: DispatchContext, msg: Message) -> None:
            received.append(msg)
            done.set()

        sender = LocalQueueSender({"orders": handler}, asyncio.Event())
        await sender.send("orders", "hello")
        await asyncio.wait_for(done.wait(), timeout=1.0)
        await sender.drain(1.0)

        assert len(received) == 1
        assert received[0].queue == "orders"
        assert received[0].body == b"hello"
        assert received[0].id.startswith("local-")
        assert sender.pending == 0

    @pytest.mark.asyncio
    async def test_send_does_not_wait_for_handler(self):
        release = asyncio.Event()

        async def handler(ctx, msg) -> None:
            await release.wait()

        sender = LocalQueueSender({"slow": handler}, asyncio.Event())
        await asyncio.wait_for(sender.send("slow", b"x"), timeout=0.5)
        assert sender.pending == 1
        release.set()
        await sender.drain(1.0)
        assert sender.pending == 0

    @pytest.mark.asyncio
    async def test_unregistered_queue(self):
        sender = LocalQueueSender({}, asyncio.Event())
        with pytest.raises(QueueNotRegisteredException) as exc_info:
            await sender.send("missing", b"x")
        assert exc_info.value.queue == "missing"
        assert sender.pending == 0

    @pytest.mark.asyncio
    async def test_handler_failure_is_contained(self):
        calls: list[str] = []

        async def failing(ctx, msg) -> None:
            calls.append(msg.text)
            raise RuntimeError("boom")

        sender = LocalQueueSender({"q": failing}, asyncio.Event())
        await sender.send("q", b"a")
        await sender.send("q", b"b")
        await sender.drain(1.0)
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_handlers_can_chain_sends(self):
        seen: list[str] = []
        done = asyncio.Event()

        async def first(ctx: DispatchContext, msg: Message) -> None:
            await ctx.send("second", msg.body + b"!")

        async def second(ctx: DispatchContext, msg: Message) -> None:
            seen.append(msg.text)
            done.set()

        sender = LocalQueueSender({"first": first, "second": second}, asyncio.Event())
        await sender.send("first", b"hi")
        await asyncio.wait_for(done.wait(), timeout=1.0)
        assert seen == ["hi!"]

    @pytest.mark.asyncio
    async def test_max_in_flight_bounds_concurrency(self):
        active = 0
        peak = 0
        release = asyncio.Event()

        async def handler(ctx, msg) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1

        sender = LocalQueueSender({"q": handler}, asyncio.Event(), max_in_flight=2)
        for _ in range(5):
            await sender.send("q", b"x")
        await asyncio.sleep(0.05)
        assert peak == 2
        release.set()
        await sender.drain(1.0)
        assert peak == 2
        assert sender.pending == 0

    @pytest.mark.asyncio
    async def test_blocking_sync_handler_does_not_stall_the_loop(self):
        def handler(ctx, msg) -> None:
            time.sleep(0.3)

        sender = LocalQueueSender({"q": handler}, asyncio.Event())
        loop = asyncio.get_running_loop()
        started = loop.time()
        await sender.send("q", b"a")
        await sender.send("q", b"b")

        gaps: list[float] = []
        last = loop.time()
        while sender.pending:
            await asyncio.sleep(0.02)
            now = loop.time()
            gaps.append(now - last)
            last = now

        assert max(gaps) < 0.2
        assert loop.time() - started < 0.55

    @pytest.mark.asyncio
    async def test_worker_tasks_are_bounded(self):
        release = asyncio.Event()
        delivered = 0

        async def handler(ctx, msg) -> None:
            nonlocal delivered
            await release.wait()
            delivered += 1

        sender = LocalQueueSender({"q": handler}, asyncio.Event(), max_in_flight=3)
        for _ in range(50):
            await sender.send("q", b"x")
        assert sender.workers == 3
        assert sender.pending == 50
        release.set()
        await sender.drain(1.0)
        assert delivered == 50
        assert sender.workers == 0
        assert sender.pending == 0

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        cancelled = asyncio.Event()

        async def handler(ctx, msg) -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        sender = LocalQueueSender({"q": handler}, asyncio.Event())
        await sender.send("q", b"x")
        await asyncio.sleep(0)
        await sender.drain(0.05)
        assert cancelled.is_set()
        assert sender.pending == 0

    def test_max_in_flight_must_be_positive(self):
        with pytest.raises(ValueError):
            LocalQueueSender({}, asyncio.Event(), max_in_flight=0)


class _NullSender:
    async def send(self, queue: str, payload: bytes | str) -> None:
        return None


class TestScheduleRunner:
    @pytest.mark.asyncio
    async def test_fires_repeatedly(self):
        fired: list[datetime] = []
        app = App()

        @app.schedule_handler("tick", timedelta(milliseconds=20))
        async def tick(ctx: DispatchContext, at: datetime) -> None:
            fired.append(at)

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        assert runner.start() == 1
        await asyncio.sleep(0.15)
        shutdown.set()
        await runner.stop(timeout=1.0)

        assert len(fired) >= 2
        assert all(at.tzinfo is not None for at in fired)

    @pytest.mark.asyncio
    async def test_first_tick_waits_one_interval(self):
        fired: list[datetime] = []
        app = App()
        app.register_schedule_handler("slow", timedelta(seconds=5), lambda ctx, at: fired.append(at))

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        runner.start()
        await asyncio.sleep(0.05)
        shutdown.set()
        await runner.stop(timeout=1.0)
        assert fired == []

    @pytest.mark.asyncio
    async def test_non_positive_and_unbound_schedules_never_start(self):
        fired: list[str] = []
        app = App()
        app.register_schedule_handler("zero", 0, lambda ctx, at: fired.append("zero"))
        app.register_schedule_handler("negative", -1, lambda ctx, at: fired.append("negative"))
        app.register_schedule_handler("unbound", 0.01, None)

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        assert runner.start() == 0
        await asyncio.sleep(0.05)
        await runner.stop()
        assert fired == []

    @pytest.mark.asyncio
    async def test_overrunning_handler_skips_ticks(self):
        starts: list[float] = []
        loop = asyncio.get_running_loop()
        app = App()

        @app.schedule_handler("busy", timedelta(milliseconds=20))
        async def busy(ctx, at) -> None:
            starts.append(loop.time())
            await asyncio.sleep(0.07)

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        runner.start()
        await asyncio.sleep(0.25)
        shutdown.set()
        await runner.stop(timeout=1.0)

        assert 1 <= len(starts) <= 4
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= 0.06 for gap in gaps)

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_stop_the_loop(self):
        calls = 0
        app = App()

        @app.schedule_handler("flaky", timedelta(milliseconds=20))
        async def flaky(ctx, at) -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("nope")

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        runner.start()
        await asyncio.sleep(0.15)
        shutdown.set()
        await runner.stop(timeout=1.0)
        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_cancels_running_handler_after_timeout(self):
        started = asyncio.Event()
        cancelled = asyncio.Event()
        app = App()

        @app.schedule_handler("stuck", timedelta(milliseconds=10))
        async def stuck(ctx, at) -> None:
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        shutdown = asyncio.Event()
        runner = ScheduleRunner(app.schedules(), _NullSender(), shutdown)
        runner.start()
        await asyncio.wait_for(started.wait(), timeout=1.0)
        shutdown.set()
        await runner.stop(timeout=0.05)
        assert cancelled.is_set()
