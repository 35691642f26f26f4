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
"""Transire Dispatchers — local development server and AWS Lambda runtime."""

from transire.dispatcher.auto import (
    DispatcherKind,
    resolve_dispatcher_kind,
    select_dispatcher,
)
from transire.dispatcher.aws import AwsDispatcher
from transire.dispatcher.local import LocalDispatcher
from transire.dispatcher.ports import Dispatcher

__all__ = [
    "AwsDispatcher",
    "Dispatcher",
    "DispatcherKind",
    "LocalDispatcher",
    "resolve_dispatcher_kind",
    "select_dispatcher",
]
