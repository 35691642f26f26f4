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
"""Transire — one handler set, run locally or on AWS Lambda.

Register HTTP routes, queue handlers, and schedules on an :class:`App`; the
dispatcher chosen by :func:`select_dispatcher` runs them as a local server
or inside the Lambda runtime.
"""

from transire.core import App, DispatchContext, Message, QueueSender, Schedule, request_context
from transire.dispatcher import AwsDispatcher, LocalDispatcher, select_dispatcher
from transire.kernel.exceptions import (
    ConfigurationException,
    QueueNotRegisteredException,
    TransireException,
)

__version__ = "0.1.0"

__all__ = [
    "App",
    "AwsDispatcher",
    "ConfigurationException",
    "DispatchContext",
    "LocalDispatcher",
    "Message",
    "QueueNotRegisteredException",
    "QueueSender",
    "Schedule",
    "TransireException",
    "__version__",
    "request_context",
    "select_dispatcher",
]
