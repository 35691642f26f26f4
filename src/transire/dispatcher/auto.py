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
"""Dispatcher selection from the process environment."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Mapping

from transire.dispatcher.aws.dispatcher import AwsDispatcher
from transire.dispatcher.local.dispatcher import LocalDispatcher
from transire.dispatcher.ports import Dispatcher
from transire.kernel.exceptions import UnknownDispatcherException

logger = logging.getLogger(__name__)

DISPATCHER_ENV = "TRANSIRE_DISPATCHER"

_LAMBDA_MARKERS = ("AWS_LAMBDA_RUNTIME_API", "AWS_EXECUTION_ENV", "LAMBDA_TASK_ROOT")


class DispatcherKind(str, enum.Enum):
    LOCAL = "local"
    AWS = "aws"


_OVERRIDES = {
    "aws": DispatcherKind.AWS,
    "lambda": DispatcherKind.AWS,
    "local": DispatcherKind.LOCAL,
}


def resolve_dispatcher_kind(environ: Mapping[str, str] | None = None) -> DispatcherKind:
    """Decide which dispatcher the environment asks for.

    An explicit ``TRANSIRE_DISPATCHER`` wins; otherwise any Lambda runtime
    marker selects AWS; otherwise local.
    """
    env = os.environ if environ is None else environ
    override = env.get(DISPATCHER_ENV, "").strip().lower()
    if override:
        try:
            return _OVERRIDES[override]
        except KeyError:
            raise UnknownDispatcherException(env[DISPATCHER_ENV].strip()) from None
    if any(env.get(marker, "").strip() for marker in _LAMBDA_MARKERS):
        return DispatcherKind.AWS
    return DispatcherKind.LOCAL


def select_dispatcher(environ: Mapping[str, str] | None = None) -> Dispatcher:
    """Construct the dispatcher for the current environment.

    Call once at the entry point and pass the result to ``App(dispatcher=...)``.
    """
    env = os.environ if environ is None else environ
    kind = resolve_dispatcher_kind(env)
    logger.debug("Selected %s dispatcher", kind.value)
    if kind is DispatcherKind.AWS:
        return AwsDispatcher(environ=env)
    return LocalDispatcher(environ=env)
