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
"""Access to a deployed stack: outputs, queue sends, and schedule triggers."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from transire.config.manifest import Target
from transire.kernel.exceptions import InfrastructureException
from transire.naming import lambda_name_from_outputs, queue_output_key, schedule_output_key, stack_name

logger = logging.getLogger(__name__)


def make_session(target: Target) -> boto3.session.Session:
    return boto3.session.Session(profile_name=target.profile, region_name=target.region)


def fetch_stack_outputs(cloudformation: Any, stack: str) -> dict[str, str]:
    """``OutputKey -> OutputValue`` for *stack*."""
    try:
        response = cloudformation.describe_stacks(StackName=stack)
    except (BotoCoreError, ClientError) as exc:
        raise InfrastructureException(f"describe stack {stack}: {exc}", code="STACK_OUTPUTS_FAILED") from exc
    stacks = response.get("Stacks") or []
    if not stacks:
        raise InfrastructureException(f"stack {stack} not found", code="STACK_NOT_FOUND")
    return {
        output["OutputKey"]: output.get("OutputValue", "")
        for output in stacks[0].get("Outputs") or []
        if output.get("OutputKey")
    }


class StackClient:
    """Operations against the ``<app>-stack`` of one environment."""

    def __init__(self, session: Any, app_name: str) -> None:
        self._session = session
        self._stack = stack_name(app_name)
        self._outputs: dict[str, str] | None = None

    @property
    def stack(self) -> str:
        return self._stack

    def outputs(self) -> dict[str, str]:
        if self._outputs is None:
            self._outputs = fetch_stack_outputs(self._session.client("cloudformation"), self._stack)
        return self._outputs

    def send(self, queue: str, payload: bytes) -> str:
        """Send *payload* to *queue*; returns the SQS message id."""
        url = self._require_output(queue_output_key(queue), f"queue url for {queue!r}")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InfrastructureException(
                "SQS message bodies must be UTF-8 text", code="QUEUE_PAYLOAD_INVALID"
            ) from exc
        try:
            response = self._session.client("sqs").send_message(QueueUrl=url, MessageBody=body)
        except (BotoCoreError, ClientError) as exc:
            raise InfrastructureException(f"send to {queue!r}: {exc}", code="QUEUE_SEND_FAILED") from exc
        return response.get("MessageId", "")

    def trigger(self, schedule: str, at: datetime | None = None) -> str:
        """Invoke the function asynchronously with a scheduled-event payload."""
        rule = self._require_output(schedule_output_key(schedule), f"rule name for {schedule!r}")
        function = lambda_name_from_outputs(self.outputs())
        if not function:
            raise InfrastructureException(
                f"stack {self._stack} has no lambda name output", code="LAMBDA_NAME_MISSING"
            )
        at = at or datetime.now(timezone.utc)
        payload = {"resources": [rule], "time": at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")}
        try:
            self._session.client("lambda").invoke(
                FunctionName=function,
                InvocationType="Event",
                Payload=json.dumps(payload).encode("utf-8"),
            )
        except (BotoCoreError, ClientError) as exc:
            raise InfrastructureException(
                f"invoke {function} for schedule {schedule!r}: {exc}", code="TRIGGER_FAILED"
            ) from exc
        logger.debug("Triggered %s via rule %s", function, rule)
        return function

    def _require_output(self, key: str, what: str) -> str:
        value = self.outputs().get(key)
        if not value:
            raise InfrastructureException(
                f"{what} not found in outputs of {self._stack} (expected {key})",
                code="STACK_OUTPUT_MISSING",
                context={"key": key},
            )
        return value
