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
"""SQS-backed QueueSender used inside Lambda."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from transire.kernel.exceptions import QueueNotRegisteredException, QueueSendException
from transire.naming import queue_url_env

logger = logging.getLogger(__name__)


class SqsQueueSender:
    """QueueSender that performs a real ``SendMessage`` per send.

    *urls* maps logical queue names to queue URLs. The blocking boto3 call
    runs in a worker thread.
    """

    def __init__(
        self,
        client: Any,
        urls: Mapping[str, str],
        registered: Iterable[str] | None = None,
    ) -> None:
        self._client = client
        self._urls = dict(urls)
        self._registered = frozenset(self._urls if registered is None else registered)

    async def send(self, queue: str, payload: bytes | str) -> None:
        if queue not in self._registered:
            raise QueueNotRegisteredException(queue)
        url = self._urls.get(queue)
        if not url:
            raise QueueSendException(
                f"queue {queue!r} has no URL configured (expected {queue_url_env(queue)})",
                code="QUEUE_URL_MISSING",
                context={"queue": queue},
            )
        try:
            body = payload if isinstance(payload, str) else bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise QueueSendException(
                f"payload for queue {queue!r} is not UTF-8 text",
                code="QUEUE_PAYLOAD_INVALID",
                context={"queue": queue},
            ) from exc

        try:
            response = await asyncio.to_thread(self._client.send_message, QueueUrl=url, MessageBody=body)
        except (BotoCoreError, ClientError) as exc:
            raise QueueSendException(
                f"send to queue {queue!r} failed: {exc}",
                code="QUEUE_SEND_FAILED",
                context={"queue": queue},
            ) from exc

        message_id = response.get("MessageId")
        if not message_id:
            raise QueueSendException(
                f"send to queue {queue!r} was not confirmed",
                code="QUEUE_SEND_UNCONFIRMED",
                context={"queue": queue},
            )
        logger.debug("Sent message %s to queue %r", message_id, queue)
