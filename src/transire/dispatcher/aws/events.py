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
"""Lambda event classification and SQS record decoding."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Any

from transire.core.context import Message, utcnow
from transire.kernel.exceptions import UnsupportedEventException

logger = logging.getLogger(__name__)

SQS_EVENT_SOURCE = "aws:sqs"
SCHEDULE_EVENT_SOURCE = "aws.events"


class EventKind(str, enum.Enum):
    HTTP = "http"
    QUEUE = "queue"
    SCHEDULE = "schedule"


def classify_event(event: Any) -> EventKind:
    """Tell API Gateway, SQS, and EventBridge invocations apart.

    Raises :class:`UnsupportedEventException` for anything else.
    """
    if not isinstance(event, dict):
        raise UnsupportedEventException(
            f"expected a JSON object event, got {type(event).__name__}",
            code="UNSUPPORTED_EVENT",
        )

    request_context = event.get("requestContext")
    if isinstance(request_context, dict) and (
        "http" in request_context or "httpMethod" in request_context or "httpMethod" in event
    ):
        return EventKind.HTTP

    records = event.get("Records")
    if isinstance(records, list) and records and all(
        isinstance(record, dict) and record.get("eventSource") == SQS_EVENT_SOURCE for record in records
    ):
        return EventKind.QUEUE

    if event.get("source") == SCHEDULE_EVENT_SOURCE or event.get("resources"):
        return EventKind.SCHEDULE

    raise UnsupportedEventException(
        "unrecognised Lambda event (keys: " + ", ".join(sorted(event)) + ")",
        code="UNSUPPORTED_EVENT",
    )


def sqs_message(record: dict[str, Any], queue: str) -> Message:
    """Build a :class:`Message` from one SQS event record."""
    attributes = {
        name: value["stringValue"]
        for name, value in (record.get("messageAttributes") or {}).items()
        if isinstance(value, dict) and value.get("stringValue") is not None
    }
    system = record.get("attributes") or {}
    sent = system.get("SentTimestamp")
    return Message(
        id=record.get("messageId", ""),
        queue=queue,
        body=(record.get("body") or "").encode("utf-8"),
        attributes=attributes,
        delivery_count=int(system.get("ApproximateReceiveCount", 1)),
        enqueued_at=datetime.fromtimestamp(int(sent) / 1000, tz=timezone.utc) if sent else utcnow(),
    )


def event_time(event: dict[str, Any]) -> datetime:
    """Fire time of a scheduled event; now when absent or unparsable."""
    raw = event.get("time")
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparsable schedule time %r; using now", raw)
        else:
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    return utcnow()
