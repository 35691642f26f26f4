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
"""Client for the admin routes of a running ``transire run``."""

from __future__ import annotations

import os
from collections.abc import Mapping

import httpx

from transire.config.properties.local import LocalDispatcherProperties
from transire.kernel.exceptions import InfrastructureException
from transire.naming import ADMIN_PREFIX

_WILDCARD_HOSTS = ("", "0.0.0.0", "::")


def resolve_local_url(
    environ: Mapping[str, str] | None = None,
    explicit: str | None = None,
    properties: LocalDispatcherProperties | None = None,
) -> str:
    """Base URL of the local dispatcher.

    Order: *explicit*, a ``TRANSIRE_HTTP_ADDR`` URL, then the address
    ``transire run`` listens on (``TRANSIRE_HTTP_ADDR``, ``PORT``,
    ``TRANSIRE_PORT``, ``local.host`` and ``local.port``). Wildcard hosts
    map to ``localhost``.
    """
    environ = os.environ if environ is None else environ
    if explicit:
        return explicit.rstrip("/")
    addr = environ.get("TRANSIRE_HTTP_ADDR", "").strip()
    if addr.startswith(("http://", "https://")):
        return addr.rstrip("/")
    properties = properties if properties is not None else LocalDispatcherProperties()
    host, port = properties.resolve_address(environ)
    if host in _WILDCARD_HOSTS:
        host = "localhost"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


def http_client(base_url: str) -> httpx.Client:
    return httpx.Client(base_url=base_url, timeout=10.0)


class LocalAdminClient:
    """Health-checked access to ``/_transire/queues`` and ``/_transire/schedules``."""

    def __init__(self, base_url: str, client: httpx.Client | None = None) -> None:
        self._base_url = base_url
        self._client = client if client is not None else http_client(base_url)

    def __enter__(self) -> LocalAdminClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._client.close()

    def ensure_running(self) -> None:
        try:
            response = self._client.get(f"{ADMIN_PREFIX}/health")
        except httpx.HTTPError as exc:
            raise self._unreachable(str(exc)) from exc
        if response.status_code != 200:
            raise self._unreachable(f"health returned {response.status_code}")

    def send(self, queue: str, payload: bytes) -> str:
        return self._post(f"{ADMIN_PREFIX}/queues/{queue}", payload)

    def trigger(self, schedule: str) -> str:
        return self._post(f"{ADMIN_PREFIX}/schedules/{schedule}", b"")

    def _post(self, path: str, body: bytes) -> str:
        try:
            response = self._client.post(path, content=body)
        except httpx.HTTPError as exc:
            raise InfrastructureException(
                f"request to {self._base_url}{path} failed: {exc}", code="LOCAL_REQUEST_FAILED"
            ) from exc
        text = response.text.strip()
        if response.status_code >= 300:
            raise InfrastructureException(
                f"local dispatcher returned {response.status_code}: {text}",
                code="LOCAL_REQUEST_FAILED",
                context={"status": response.status_code},
            )
        return text

    def _unreachable(self, reason: str) -> InfrastructureException:
        return InfrastructureException(
            f"local transire run not reachable at {self._base_url} ({reason})",
            code="LOCAL_UNREACHABLE",
        )
