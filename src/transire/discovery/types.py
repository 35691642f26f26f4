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
"""Discovered application topology."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True, order=True)
class ScheduleSpec:
    """A schedule name and its proven interval."""

    name: str
    every: timedelta


@dataclass(frozen=True)
class Topology:
    """Queues, schedules, and HTTP presence read from source.

    Every name and interval here was proven constant at build time.
    """

    queues: frozenset[str] = field(default_factory=frozenset)
    schedules: frozenset[ScheduleSpec] = field(default_factory=frozenset)
    has_http: bool = False

    def sorted_queues(self) -> list[str]:
        return sorted(self.queues)

    def sorted_schedules(self) -> list[ScheduleSpec]:
        return sorted(self.schedules)

    @property
    def is_empty(self) -> bool:
        return not self.queues and not self.schedules and not self.has_http
