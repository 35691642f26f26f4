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
"""AWS dispatcher: one Lambda invocation in, one handler call out."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import boto3
from mangum import Mangum
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import Mount

from transire.core.context import (
    DispatchContext,
    DispatchContextMiddleware,
    QueueSender,
    invoke_handler,
    lambda_deadline,
)
from transire.dispatcher.aws.events import EventKind, classify_event, event_time, sqs_message
from transire.dispatcher.aws.runtime import LambdaRuntimeClient
from transire.dispatcher.aws.sender import SqsQueueSender
from transire.kernel.exceptions import ConfigurationException
from transire.naming import (
    arn_suffix,
    queue_name_env,
    queue_url_env,
    rule_name,
    schedule_name_env,
)

if TYPE_CHECKING:
    from transire.core.app import App

logger = logging.getLogger(__name__)


class LambdaEventHandler:
    """The ``handler(event, context)`` callable the Lambda runtime invokes.

    HTTP events go through Mangum to the app router and its middleware. SQS batches return a
    partial batch response so only failed records are redelivered.
    Scheduled events run the schedule handler and let its error propagate.
    """

    def __init__(
        self,
        app: App,
        sender: QueueSender,
        queue_names: Mapping[str, str],
        schedule_names: Mapping[str, str],
    ) -> None:
        self._app = app
        self._sender = sender
        self._queue_names = dict(queue_names)
        self._schedule_names = dict(schedule_names)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._http = Mangum(
            Starlette(
                routes=[Mount("/", app=app.asgi())],
                middleware=[Middleware(DispatchContextMiddleware, sender=sender)],
            ),
            lifespan="off",
        )

    @property
    def sender(self) -> QueueSender:
        return self._sender

    def __call__(self, event: Any, context: Any) -> Any:
        kind = classify_event(event)
        loop = self._event_loop()
        if kind is EventKind.HTTP:
            return self._http(event, context)
        if kind is EventKind.QUEUE:
            return loop.run_until_complete(self.handle_queue_event(event, context))
        loop.run_until_complete(self.handle_schedule_event(event, context))
        return None

    def close(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        # Warm invocations reuse one loop; Mangum runs on the current one.
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        return self._loop

    async def handle_queue_event(self, event: dict[str, Any], context: Any) -> dict[str, Any]:
        failures: list[dict[str, str]] = []
        ctx = DispatchContext(queues=self._sender, deadline=lambda_deadline(context))
        handlers = self._app.queue_handlers()
        for record in event["Records"]:
            deployed = arn_suffix(record.get("eventSourceARN", ""))
            queue = self._queue_names.get(deployed, deployed)
            handler = handlers.get(queue)
            if handler is None:
                logger.warning(
                    "No handler for queue %r (deployed as %r); skipping message %s",
                    queue,
                    deployed,
                    record.get("messageId"),
                )
                continue
            message = sqs_message(record, queue)
            try:
                await invoke_handler(handler, ctx, message)
            except Exception:
                logger.exception("Queue handler for %r failed on message %s", queue, message.id)
                failures.append({"itemIdentifier": message.id})
        return {"batchItemFailures": failures}

    async def handle_schedule_event(self, event: dict[str, Any], context: Any) -> None:
        rule = rule_name(event.get("resources"))
        name = self._schedule_names.get(rule, rule)
        schedule = self._app.schedules().get(name)
        if schedule is None or schedule.handler is None:
            logger.warning("No schedule handler for %r (rule %r)", name, rule)
            return
        ctx = DispatchContext(queues=self._sender, deadline=lambda_deadline(context))
        await invoke_handler(schedule.handler, ctx, event_time(event))


class AwsDispatcher:
    """Dispatcher for AWS Lambda.

    Usage in the Lambda entry module::

        handler = AwsDispatcher().bind(app)
    """

    name = "aws"

    def __init__(
        self,
        region: str | None = None,
        *,
        sqs_client: Any = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._region = region
        self._sqs_client = sqs_client
        self._environ: Mapping[str, str] = os.environ if environ is None else environ

    @property
    def region(self) -> str | None:
        return self._region or self._environ.get("AWS_REGION") or self._environ.get("AWS_DEFAULT_REGION")

    def _client(self) -> Any:
        if self._sqs_client is None:
            self._sqs_client = boto3.client("sqs", region_name=self.region)
        return self._sqs_client

    def bind(self, app: App) -> LambdaEventHandler:
        """Resolve deployed names from the environment and build the handler."""
        env = self._environ
        urls: dict[str, str] = {}
        queue_names: dict[str, str] = {}
        for name in app.queue_handlers():
            url = env.get(queue_url_env(name), "")
            if not url:
                logger.warning("Queue %r has no URL in %s; sends to it will fail", name, queue_url_env(name))
            urls[name] = url
            deployed = env.get(queue_name_env(name))
            if deployed:
                queue_names[deployed] = name

        schedule_names = {
            env[schedule_name_env(name)]: name
            for name in app.schedules()
            if env.get(schedule_name_env(name))
        }

        sender = app.queue_sender
        if sender is None:
            sender = SqsQueueSender(self._client(), urls, registered=app.queue_handlers().keys())
        return LambdaEventHandler(app, sender, queue_names, schedule_names)

    async def run(self, app: App, stop: asyncio.Event | None = None) -> None:
        """Serve the Lambda Runtime API loop (custom runtimes and containers)."""
        api = self._environ.get("AWS_LAMBDA_RUNTIME_API", "").strip()
        if not api:
            raise ConfigurationException(
                "AWS_LAMBDA_RUNTIME_API is not set; the aws dispatcher only serves inside Lambda",
                code="NO_RUNTIME_API",
            )
        handler = self.bind(app)
        logger.info("Serving Lambda Runtime API at %s", api)
        async with LambdaRuntimeClient(api) as runtime:
            await runtime.serve(handler, stop)
