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
"""Local dispatcher — uvicorn, in-process queues, and ticking schedules."""

from transire.dispatcher.local.admin import AdminRouteBuilder
from transire.dispatcher.local.dispatcher import DispatcherState, LocalDispatcher, bind_socket
from transire.dispatcher.local.scheduler import ScheduleRunner
from transire.dispatcher.local.sender import LocalQueueSender

__all__ = [
    "AdminRouteBuilder",
    "DispatcherState",
    "LocalDispatcher",
    "LocalQueueSender",
    "ScheduleRunner",
    "bind_socket",
]
