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
"""Tests for the AWS Lambda dispatcher: event routing, SQS sends, and the runtime loop."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import boto3
import httpx
import pytest
from botocore.stub import Stubber
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from transire.core import App, DispatchContext, Message, request_context
from transire.dispatcher.aws import (
    AwsDispatcher,
    EventKind,
    LambdaRuntimeClient,
    SqsQueueSender,
    classify_event,
)
from transire.dispatcher.aws.events import event_time, sqs_message
from transire.kernel.exceptions import (
    ConfigurationException,
    QueueNotRegisteredException,
    QueueSendException,
    UnsupportedEventException,
)

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/orders-deployed"
LAMBDA_CONTEXT = SimpleNamespace(get_remaining_time_in_millis=lambda: 30_000)


class _TagMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, tag: str) -> None:
        super().__init__(app)
        self.tag = tag

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["x-tag"] = self.tag
        return response


def _sqs_client() -> Any:
    return boto3.client(
        "sqs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def _record(message_id: str, body: str, queue_arn_name: str = "orders-deployed") -> dict[str, Any]:
    return {
        "messageId": message_id,
        "body": body,
        "eventSource": "aws:sqs",
        "eventSourceARN": f"arn:aws:sqs:us-east-1:123456789012:{queue_arn_name}",
        "attributes": {"ApproximateReceiveCount": "2", "SentTimestamp": "1767225600000"},
        "messageAttributes": {"tenant": {"stringValue": "acme", "dataType": "String"}},
    }


def _http_event(path: str) -> dict[str, Any]:
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": path,
        "rawQueryString": "",
        "headers": {"host": "api.example.com", "user-agent": "pytest"},
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "api",
            "domainName": "api.example.com",
            "domainPrefix": "api",
            "http": {
                "method": "GET",
                "path": path,
                "protocol": "HTTP/1.1",
                "sourceIp": "192.0.2.1",
                "userAgent": "pytest",
            },
            "requestId": "req-1",
            "routeKey": "$default",
            "stage": "$default",
            "time": "01/Jan/2026:00:00:00 +0000",
            "timeEpoch": 1767225600000,
        },
        "isBase64Encoded": False,
    }


ENVIRON = {
    "TRANSIRE_QUEUE_ORDERS_URL": QUEUE_URL,
    "TRANSIRE_QUEUE_ORDERS_NAME": "orders-deployed",
    "TRANSIRE_SCHEDULE_REPORT_NAME": "orders-stack-reportRule-XYZ",
    "AWS_REGION": "us-east-1",
}


class _ListSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, bytes | str]] = []

    async def send(self, queue: str, payload: bytes | str) -> None:
        self.sent.append((queue, payload))


class TestClassifyEvent:
    def test_http_v2(self):
        assert classify_event(_http_event("/")) is EventKind.HTTP

    def test_http_v1(self):
        assert classify_event({"httpMethod": "GET", "requestContext": {"stage": "prod"}}) is EventKind.HTTP

    def test_sqs(self):
        assert classify_event({"Records": [_record("1", "x")]}) is EventKind.QUEUE

    def test_schedule(self):
        event = {"source": "aws.events", "resources": ["arn:aws:events:us-east-1:1:rule/r"]}
        assert classify_event(event) is EventKind.SCHEDULE
        assert classify_event({"resources": ["arn:aws:events:us-east-1:1:rule/r"]}) is EventKind.SCHEDULE

    @pytest.mark.parametrize(
        "event",
        [
            [],
            {"detail": {}},
            {"Records": []},
            {"Records": [{"eventSource": "aws:s3"}]},
        ],
    )
    def test_unsupported(self, event: Any):
        with pytest.raises(UnsupportedEventException):
            classify_event(event)


class TestEventDecoding:
    def test_sqs_message(self):
        message = sqs_message(_record("m-1", "payload"), "orders")
        assert message.id == "m-1"
        assert message.queue == "orders"
        assert message.body == b"payload"
        assert message.attributes == {"tenant": "acme"}
        assert message.delivery_count == 2
        assert message.enqueued_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_event_time(self):
        assert event_time({"time": "2026-03-01T12:00:00Z"}) == datetime(2026, 3, 1, 12, tzinfo=timezone.utc)

    def test_event_time_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        assert event_time({"time": "yesterday"}) >= before
        assert event_time({}) >= before


class TestSqsQueueSender:
    @pytest.mark.asyncio
    async def test_send(self):
        client = _sqs_client()
        with Stubber(client) as stubber:
            stubber.add_response(
                "send_message",
                {"MessageId": "msg-1"},
                {"QueueUrl": QUEUE_URL, "MessageBody": "hello"},
            )
            await SqsQueueSender(client, {"orders": QUEUE_URL}).send("orders", b"hello")
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_unregistered(self):
        with pytest.raises(QueueNotRegisteredException):
            await SqsQueueSender(_sqs_client(), {"orders": QUEUE_URL}).send("billing", b"x")

    @pytest.mark.asyncio
    async def test_missing_url(self):
        sender = SqsQueueSender(_sqs_client(), {"orders": ""}, registered=["orders"])
        with pytest.raises(QueueSendException) as exc_info:
            await sender.send("orders", b"x")
        assert exc_info.value.code == "QUEUE_URL_MISSING"

    @pytest.mark.asyncio
    async def test_non_utf8_payload(self):
        with pytest.raises(QueueSendException) as exc_info:
            await SqsQueueSender(_sqs_client(), {"orders": QUEUE_URL}).send("orders", b"\xff\xfe")
        assert exc_info.value.code == "QUEUE_PAYLOAD_INVALID"

    @pytest.mark.asyncio
    async def test_client_error(self):
        client = _sqs_client()
        with Stubber(client) as stubber:
            stubber.add_client_error("send_message", service_error_code="AWS.SimpleQueueService.NonExistentQueue")
            with pytest.raises(QueueSendException) as exc_info:
                await SqsQueueSender(client, {"orders": QUEUE_URL}).send("orders", "x")
        assert exc_info.value.code == "QUEUE_SEND_FAILED"


def _app(calls: list[Any]) -> App:
    app = App()

    @app.route("/whoami", methods=["GET"])
    async def whoami(request):
        ctx = request_context(request)
        return JSONResponse({"has_deadline": ctx.deadline is not None})

    @app.queue_handler("orders")
    async def orders(ctx: DispatchContext, msg: Message) -> None:
        if msg.text == "bad":
            raise ValueError("bad order")
        calls.append(("orders", msg.id, ctx.remaining() is not None))

    @app.schedule_handler("report", 3600)
    async def report(ctx: DispatchContext, at: datetime) -> None:
        calls.append(("report", at))

    @app.schedule_handler("explode", 3600)
    async def explode(ctx: DispatchContext, at: datetime) -> None:
        raise RuntimeError("schedule failed")

    return app


class TestLambdaEventHandler:
    def _handler(self, calls: list[Any], environ: dict[str, str] | None = None):
        env = dict(ENVIRON if environ is None else environ)
        return AwsDispatcher(sqs_client=_sqs_client(), environ=env).bind(_app(calls))

    def test_queue_batch_reports_partial_failures(self):
        calls: list[Any] = []
        handler = self._handler(calls)
        try:
            result = handler({"Records": [_record("m-1", "ok"), _record("m-2", "bad"), _record("m-3", "ok")]}, LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert result == {"batchItemFailures": [{"itemIdentifier": "m-2"}]}
        assert calls == [("orders", "m-1", True), ("orders", "m-3", True)]

    def test_unknown_queue_is_skipped(self):
        calls: list[Any] = []
        handler = self._handler(calls)
        try:
            result = handler({"Records": [_record("m-1", "ok", "someone-elses-queue")]}, LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert result == {"batchItemFailures": []}
        assert calls == []

    def test_logical_name_used_when_deployed_name_unknown(self):
        calls: list[Any] = []
        handler = self._handler(calls, environ={"TRANSIRE_QUEUE_ORDERS_URL": QUEUE_URL})
        try:
            handler({"Records": [_record("m-1", "ok", "orders")]}, LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert calls == [("orders", "m-1", True)]

    def test_schedule_event(self):
        calls: list[Any] = []
        handler = self._handler(calls)
        event = {
            "source": "aws.events",
            "time": "2026-01-01T06:00:00Z",
            "resources": ["arn:aws:events:us-east-1:123456789012:rule/orders-stack-reportRule-XYZ"],
        }
        try:
            assert handler(event, LAMBDA_CONTEXT) is None
        finally:
            handler.close()
        assert calls == [("report", datetime(2026, 1, 1, 6, tzinfo=timezone.utc))]

    def test_schedule_error_propagates(self):
        handler = self._handler([], environ={})
        event = {"source": "aws.events", "resources": ["arn:aws:events:us-east-1:1:rule/explode"]}
        try:
            with pytest.raises(RuntimeError, match="schedule failed"):
                handler(event, LAMBDA_CONTEXT)
        finally:
            handler.close()

    def test_unknown_schedule_is_ignored(self):
        calls: list[Any] = []
        handler = self._handler(calls)
        try:
            handler({"source": "aws.events", "resources": ["arn:aws:events:x:1:rule/other"]}, LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert calls == []

    def test_http_through_mangum(self):
        handler = self._handler([])
        try:
            first = handler(_http_event("/whoami"), LAMBDA_CONTEXT)
            second = handler(_http_event("/missing"), LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert first["statusCode"] == 200
        assert json.loads(first["body"]) == {"has_deadline": True}
        assert second["statusCode"] == 404

    def test_http_through_app_middleware(self):
        app = _app([])
        app.use(_TagMiddleware, tag="lambda")
        handler = AwsDispatcher(sqs_client=_sqs_client(), environ=ENVIRON).bind(app)
        try:
            response = handler(_http_event("/whoami"), LAMBDA_CONTEXT)
        finally:
            handler.close()
        assert response["statusCode"] == 200
        assert response["headers"]["x-tag"] == "lambda"
        assert json.loads(response["body"]) == {"has_deadline": True}

    def test_unsupported_event_raises(self):
        handler = self._handler([])
        with pytest.raises(UnsupportedEventException):
            handler({"detail-type": "custom"}, LAMBDA_CONTEXT)

    def test_explicit_sender_wins(self):
        sender = _ListSender()
        app = _app([])
        app.set_queue_sender(sender)
        handler = AwsDispatcher(sqs_client=_sqs_client(), environ=ENVIRON).bind(app)
        assert handler.sender is sender

    def test_default_sender_is_sqs(self):
        handler = self._handler([])
        assert isinstance(handler.sender, SqsQueueSender)


class TestAwsDispatcherRun:
    @pytest.mark.asyncio
    async def test_requires_runtime_api(self):
        with pytest.raises(ConfigurationException) as exc_info:
            await AwsDispatcher(environ={}).run(App())
        assert exc_info.value.code == "NO_RUNTIME_API"

    def test_region_resolution(self):
        assert AwsDispatcher("eu-west-1", environ={"AWS_REGION": "us-east-1"}).region == "eu-west-1"
        assert AwsDispatcher(environ={"AWS_DEFAULT_REGION": "us-west-2"}).region == "us-west-2"


class TestLambdaRuntimeClient:
    @pytest.mark.asyncio
    async def test_serves_one_invocation_and_posts_result(self):
        stop = asyncio.Event()
        posted: list[tuple[str, Any]] = []

        def transport(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/invocation/next"):
                return httpx.Response(
                    200,
                    json={"value": 21},
                    headers={
                        "Lambda-Runtime-Aws-Request-Id": "req-1",
                        "Lambda-Runtime-Deadline-Ms": "4102444800000",
                    },
                )
            posted.append((path, json.loads(request.content)))
            stop.set()
            return httpx.Response(202)

        def handler(event: Any, context: Any) -> Any:
            return {"doubled": event["value"] * 2, "request": context.aws_request_id}

        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        async with LambdaRuntimeClient("127.0.0.1:9001", client=client) as runtime:
            await asyncio.wait_for(runtime.serve(handler, stop), timeout=5.0)

        assert posted == [("/2018-06-01/runtime/invocation/req-1/response", {"doubled": 42, "request": "req-1"})]

    @pytest.mark.asyncio
    async def test_handler_error_is_posted(self):
        stop = asyncio.Event()
        errors: list[tuple[str, dict[str, Any], str | None]] = []

        def transport(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/invocation/next"):
                return httpx.Response(200, json={}, headers={"Lambda-Runtime-Aws-Request-Id": "req-2"})
            errors.append(
                (request.url.path, json.loads(request.content), request.headers.get("Lambda-Runtime-Function-Error-Type"))
            )
            stop.set()
            return httpx.Response(202)

        def handler(event: Any, context: Any) -> Any:
            raise KeyError("missing")

        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        async with LambdaRuntimeClient("127.0.0.1:9001", client=client) as runtime:
            await asyncio.wait_for(runtime.serve(handler, stop), timeout=5.0)

        path, payload, error_type = errors[0]
        assert path == "/2018-06-01/runtime/invocation/req-2/error"
        assert payload["errorType"] == "KeyError"
        assert error_type == "Unhandled"

    @pytest.mark.asyncio
    async def test_stop_interrupts_long_poll(self):
        stop = asyncio.Event()

        async def never(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(60)
            return httpx.Response(500)

        client = httpx.AsyncClient(transport=httpx.MockTransport(never))
        async with LambdaRuntimeClient("127.0.0.1:9001", client=client) as runtime:
            serve_task = asyncio.create_task(runtime.serve(lambda event, context: None, stop))
            await asyncio.sleep(0.05)
            stop.set()
            await asyncio.wait_for(serve_task, timeout=2.0)
