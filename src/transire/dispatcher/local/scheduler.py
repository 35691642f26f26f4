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
"""Schedule loops for the local dispatcher."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from transire.core.app import Schedule
from transire.core.context import DispatchContext, QueueSender, invoke_handler, utcnow

logger = logging.getLogger(__name__)


class ScheduleRunner:
    """Runs one ticking loop per schedule with a positive interval.

    The first tick fires one interval after :meth:`start`. A loop awaits its
    handler, so a tick that falls due while the previous run is still going
    is skipped rather than queued.

    Usage::

        runner = ScheduleRunner(app.schedules(), sender, shutdown)
        runner.start()
        # ... dispatcher runs ...
        shutdown.set()
        await runner.stop(timeout=5.0)
    """

    def __init__(
        self,
        schedules: Mapping[str, Schedule],
        sender: QueueSender,
        shutdown: asyncio.Event,
    ) -> None:
        self._schedules = schedules
        self._sender = sender
        self._shutdown = shutdown
        self._loop_tasks: list[asyncio.Task[Any]] = []

    def start(self) -> int:
        """Start the loops. Return how many were started."""
        for schedule in self._schedules.values():
            if schedule.handler is None:
                logger.warning("Schedule %r has no handler; skipping", schedule.name)
                continue
            if not schedule.enabled:
                logger.warning("Schedule %r has non-positive interval %s; it will never fire", schedule.name, schedule.every)
                continue
            task = asyncio.create_task(self._run_loop(schedule), name=f"transire-schedule-{schedule.name}")
            task.add_done_callback(self._loop_done_callback)
            self._loop_tasks.append(task)
        return len(self._loop_tasks)

    async def stop(self, timeout: float = 0.0) -> None:
        """Give loops *timeout* seconds to finish their current run, then cancel them."""
        if not self._loop_tasks:
            return
        pending = set(self._loop_tasks)
        if timeout > 0:
            _, pending = await asyncio.wait(self._loop_tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*self._loop_tasks, return_exceptions=True)
        self._loop_tasks.clear()

    async def fire(self, schedule: Schedule, at: datetime) -> None:
        """Invoke *schedule*'s handler once; errors are logged, not raised."""
        if schedule.handler is None:
            return
        ctx = DispatchContext(queues=self._sender, shutdown=self._shutdown)
        try:
            await invoke_handler(schedule.handler, ctx, at)
        except Exception:
            logger.exception("Schedule handler %r failed", schedule.name)

    @staticmethod
    def _loop_done_callback(task: asyncio.Task[Any]) -> None:
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                logger.error("Schedule loop %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def _run_loop(self, schedule: Schedule) -> None:
        loop = asyncio.get_running_loop()
        interval = schedule.every.total_seconds()
        next_fire = loop.time() + interval
        while not self._shutdown.is_set():
            delay = next_fire - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass
            await self.fire(schedule, utcnow())
            next_fire += interval
            now = loop.time()
            if next_fire <= now:
                missed = int((now - next_fire) // interval) + 1
                logger.debug("Schedule %r overran its interval; skipping %d tick(s)", schedule.name, missed)
                next_fire += missed * interval
