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
"""Local dispatcher configuration properties."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from transire.core.config import config_properties
from transire.kernel.exceptions import ConfigurationException


@config_properties(prefix="local")
@dataclass
class LocalDispatcherProperties:
    """Configuration for the local development server (local.*)."""

    host: str = "0.0.0.0"
    port: int = 8080
    graceful_timeout: float = 5.0
    max_in_flight: int = 64

    def resolve_address(self, environ: Mapping[str, str]) -> tuple[str, int]:
        """Pick the listen address.

        Order: ``TRANSIRE_HTTP_ADDR`` (``host:port`` or ``:port``), ``PORT``,
        ``TRANSIRE_PORT``, then the configured host and port.
        """
        addr = environ.get("TRANSIRE_HTTP_ADDR", "").strip()
        if addr:
            host, _, port = addr.rpartition(":")
            return host or self.host, _parse_port(port, "TRANSIRE_HTTP_ADDR")
        for key in ("PORT", "TRANSIRE_PORT"):
            value = environ.get(key, "").strip()
            if value:
                return self.host, _parse_port(value, key)
        return self.host, int(self.port)


def _parse_port(value: str, source: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationException(f"invalid port {value!r} in {source}") from None
    if not 0 <= port <= 65535:
        raise ConfigurationException(f"port {port} out of range in {source}")
    return port
