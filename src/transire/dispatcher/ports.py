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
"""Outbound port: the runtime that executes an App."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from transire.core.app import App


@runtime_checkable
class Dispatcher(Protocol):
    """Abstract dispatcher interface.

    A dispatcher owns the transport: it serves HTTP, delivers queue
    messages, and fires schedules for the handlers an :class:`App` holds.
    """

    @property
    def name(self) -> str:
        """Short identifier, e.g. ``local`` or ``aws``."""
        ...

    async def run(self, app: App, stop: asyncio.Event | None = None) -> None:
        """Serve *app* until *stop* is set or the runtime ends."""
        ...
