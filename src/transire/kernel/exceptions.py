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
"""Unified exception hierarchy for Transire.

All framework exceptions inherit from TransireException, so callers can catch
one type at the outermost entry point (the CLI, a Lambda handler) or a
specific subclass for targeted handling.

Categories:
- ConfigurationException: bad overrides, invalid manifest values
- RegistrationException: duplicate handlers, sends to unknown queues
- InfrastructureException: queue transport and server failures
- DiscoveryException / BuildException: build-time failures
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

# =============================================================================
# Base Exception
# =============================================================================


class TransireException(Exception):
    """Base exception for all Transire errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "QUEUE_NOT_REGISTERED").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationException(TransireException):
    """Invalid or missing configuration, detected before anything starts."""


class UnknownDispatcherException(ConfigurationException):
    """The dispatcher override names no known dispatcher."""

    def __init__(self, value: str) -> None:
        super().__init__(
            f"unknown dispatcher override: {value}",
            code="UNKNOWN_DISPATCHER",
            context={"value": value},
        )
        self.value = value


class NoDispatcherException(ConfigurationException):
    """App.run() was called without a dispatcher."""


# =============================================================================
# Registration Exceptions
# =============================================================================


class RegistrationException(TransireException):
    """Handler registration or lookup errors."""


class HandlerAlreadyRegisteredException(RegistrationException):
    """A queue or schedule name was registered twice without ``replace=True``."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(
            f"{kind} {name!r} already registered",
            code="HANDLER_ALREADY_REGISTERED",
            context={"kind": kind, "name": name},
        )
        self.kind = kind
        self.name = name


class QueueNotRegisteredException(RegistrationException):
    """A message was sent to a queue that has no registered handler."""

    def __init__(self, queue: str) -> None:
        super().__init__(
            f"queue {queue!r} not registered",
            code="QUEUE_NOT_REGISTERED",
            context={"queue": queue},
        )
        self.queue = queue


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(TransireException):
    """Transport, server, and runtime failures."""


class QueueSendException(InfrastructureException):
    """An enqueue could not be performed or confirmed."""


class ServerStartupException(InfrastructureException):
    """The local HTTP server could not start listening."""


class UnsupportedEventException(InfrastructureException):
    """The Lambda runtime delivered an event no adapter recognises."""


# =============================================================================
# Build-time Exceptions
# =============================================================================


@dataclass(frozen=True)
class SourceLocation:
    """A position in a scanned source file."""

    path: Path
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class DiscoveryException(TransireException):
    """Static discovery could not prove the topology of a source tree."""

    def __init__(self, message: str, location: SourceLocation | None = None) -> None:
        text = f"{location}: {message}" if location is not None else message
        super().__init__(
            text,
            code="DISCOVERY_FAILED",
            context={"location": str(location)} if location is not None else {},
        )
        self.location = location


class BuildException(TransireException):
    """A build stage failed; nothing from the build may be deployed."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(
            f"build failed at stage {stage!r}: {message}",
            code="BUILD_FAILED",
            context={"stage": stage},
        )
        self.stage = stage
