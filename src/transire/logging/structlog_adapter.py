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
"""StructlogAdapter — logging setup backed by structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from transire.config.properties.app import LoggingProperties


class StructlogAdapter:
    """Configures structlog and stdlib logging from :class:`LoggingProperties`.

    Framework modules log through ``logging.getLogger(__name__)``; the adapter
    only decides level and output format.
    """

    def __init__(self) -> None:
        self._root_level: str = "INFO"
        self._format: str = "console"

    def configure(self, properties: LoggingProperties | None = None) -> None:
        """Apply level and format (``console`` or ``json``)."""
        properties = properties or LoggingProperties()
        self._root_level = properties.level.upper()
        self._format = properties.format.lower()
        self._setup_structlog()

    def get_logger(self, name: str) -> Any:
        """Get a structlog BoundLogger by name."""
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        """Set the log level for a specific stdlib logger."""
        log_level = getattr(logging, level.upper(), logging.INFO)
        logging.getLogger(name).setLevel(log_level)

    def _setup_structlog(self) -> None:
        """Configure structlog processors and stdlib logging."""
        log_level = getattr(logging, self._root_level, logging.INFO)

        processors: list[structlog.types.Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
        ]

        if self._format == "json":
            processors.append(structlog.processors.JSONRenderer())
            fmt = '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
        else:
            processors.append(structlog.dev.ConsoleRenderer())
            fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format=fmt,
            stream=sys.stdout,
            level=log_level,
            force=True,
        )
