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
"""Minimal client for the Lambda Runtime API.

Lets a container image or custom runtime serve invocations with the same
:class:`~transire.dispatcher.aws.dispatcher.LambdaEventHandler` the managed
Python runtime calls directly.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_VERSION = "2018-06-01"


@dataclass(frozen=True)
class RuntimeContext:
    """Subset of the managed runtime's context object that handlers rely on."""

    aws_request_id: str
    deadline_ms: int
    invoked_function_arn: str = ""
    trace_id: str | None = None

    def get_remaining_time_in_millis(self) -> int:
        return max(self.deadline_ms - int(time.time() * 1000), 0)


class LambdaRuntimeClient:
    """Long-polls ``/invocation/next`` and posts results back."""

    def __init__(self, api_address: str, *, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = f"http://{api_address}/{API_VERSION}/runtime"
        self._client = client or httpx.AsyncClient(timeout=None)

    async def __aenter__(self) -> LambdaRuntimeClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def next_invocation(self) -> tuple[Any, RuntimeContext]:
        response = await self._client.get(f"{self._base_url}/invocation/next")
        response.raise_for_status()
        headers = response.headers
        context = RuntimeContext(
            aws_request_id=headers["Lambda-Runtime-Aws-Request-Id"],
            deadline_ms=int(headers.get("Lambda-Runtime-Deadline-Ms", "0")),
            invoked_function_arn=headers.get("Lambda-Runtime-Invoked-Function-Arn", ""),
            trace_id=headers.get("Lambda-Runtime-Trace-Id"),
        )
        return response.json(), context

    async def post_response(self, request_id: str, result: Any) -> None:
        response = await self._client.post(
            f"{self._base_url}/invocation/{request_id}/response",
            content=json.dumps(result),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()

    async def post_error(self, request_id: str, exc: BaseException) -> None:
        payload = {
            "errorMessage": str(exc),
            "errorType": type(exc).__name__,
            "stackTrace": traceback.format_exception(exc),
        }
        response = await self._client.post(
            f"{self._base_url}/invocation/{request_id}/error",
            content=json.dumps(payload),
            headers={
                "Content-Type": "application/json",
                "Lambda-Runtime-Function-Error-Type": "Unhandled",
            },
        )
        response.raise_for_status()

    async def serve(
        self,
        handler: Callable[[Any, RuntimeContext], Any],
        stop: asyncio.Event | None = None,
    ) -> None:
        """Process invocations until *stop* is set.

        The handler is synchronous and runs in a worker thread.
        """
        stop = stop or asyncio.Event()
        while not stop.is_set():
            next_task = asyncio.create_task(self.next_invocation())
            stop_task = asyncio.create_task(stop.wait())
            await asyncio.wait({next_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            stop_task.cancel()
            if not next_task.done():
                next_task.cancel()
                await asyncio.gather(next_task, return_exceptions=True)
                break

            event, context = next_task.result()
            try:
                result = await asyncio.to_thread(handler, event, context)
            except Exception as exc:
                logger.exception("Invocation %s failed", context.aws_request_id)
                await self.post_error(context.aws_request_id, exc)
                continue
            await self.post_response(context.aws_request_id, result)
