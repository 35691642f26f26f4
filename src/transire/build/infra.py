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
"""Infrastructure declaration derived from a discovered topology.

The declaration is plain data; :mod:`transire.build.cdk` renders it. All
naming goes through :mod:`transire.naming` so the runtime reads back the
same environment variables and outputs the stack writes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta

from transire.discovery.types import Topology
from transire.kernel.exceptions import BuildException
from transire.naming import (
    API_ENDPOINT_OUTPUT,
    LAMBDA_ENTRY_MODULE,
    LAMBDA_NAME_OUTPUT,
    queue_name_env,
    queue_output_key,
    queue_url_env,
    safe_id,
    schedule_name_env,
    schedule_output_key,
    stack_name,
)

logger = logging.getLogger(__name__)

LAMBDA_RUNTIME = "PYTHON_3_12"
LAMBDA_MEMORY_MB = 512
LAMBDA_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class Rate:
    """An EventBridge rate: a positive amount of hours, minutes, or seconds."""

    amount: int
    unit: str

    @property
    def cdk(self) -> str:
        return f"cdk.Duration.{self.unit}({self.amount})"

    @property
    def expression(self) -> str:
        unit = self.unit[:-1] if self.amount == 1 else self.unit
        return f"rate({self.amount} {unit})"


def schedule_rate(every: timedelta | int | float) -> Rate:
    """Coarsest whole unit for *every*.

    Non-positive intervals and intervals that are not whole seconds become
    one minute; EventBridge rates have no sub-second unit.
    """
    total = every.total_seconds() if isinstance(every, timedelta) else float(every)
    if total <= 0:
        return Rate(1, "minutes")
    if not total.is_integer():
        logger.warning("Schedule interval %ss is not a whole number of seconds; using 1 minute", total)
        return Rate(1, "minutes")
    seconds = int(total)
    if seconds % 3600 == 0:
        return Rate(seconds // 3600, "hours")
    if seconds % 60 == 0:
        return Rate(seconds // 60, "minutes")
    return Rate(seconds, "seconds")


def resource_name(app_name: str, name: str) -> str:
    """Deployed name without the environment suffix (``<app>-<name>``)."""
    return f"{app_name}-{name}"


@dataclass(frozen=True)
class QueueResource:
    name: str
    logical_id: str
    url_env: str
    name_env: str
    output_key: str
    deployed_prefix: str


@dataclass(frozen=True)
class ScheduleResource:
    name: str
    logical_id: str
    rate: Rate
    name_env: str
    output_key: str
    deployed_prefix: str


@dataclass(frozen=True)
class Output:
    key: str
    description: str


@dataclass(frozen=True)
class InfraDeclaration:
    """Everything the CDK stack declares for one application."""

    app_name: str
    stack_name: str
    handler: str
    runtime: str = LAMBDA_RUNTIME
    memory_mb: int = LAMBDA_MEMORY_MB
    timeout_seconds: int = LAMBDA_TIMEOUT_SECONDS
    region: str | None = None
    has_http: bool = False
    queues: tuple[QueueResource, ...] = ()
    schedules: tuple[ScheduleResource, ...] = ()
    outputs: tuple[Output, ...] = ()

    @classmethod
    def from_topology(cls, app_name: str, topology: Topology, region: str | None = None) -> InfraDeclaration:
        seen: dict[str, str] = {}

        def claim(logical_id: str, owner: str, *construct_ids: str) -> str:
            for construct_id in construct_ids:
                previous = seen.get(construct_id)
                if previous is not None:
                    raise BuildException(
                        "render",
                        f"{owner} and {previous} both map to CDK id {construct_id!r}; rename one of them",
                    )
                seen[construct_id] = owner
            return logical_id

        queues = tuple(
            QueueResource(
                name=name,
                logical_id=claim(
                    safe_id(name), f"queue {name!r}", f"{safe_id(name)}Queue", queue_output_key(name)
                ),
                url_env=queue_url_env(name),
                name_env=queue_name_env(name),
                output_key=queue_output_key(name),
                deployed_prefix=resource_name(app_name, name),
            )
            for name in topology.sorted_queues()
        )
        schedules = tuple(
            ScheduleResource(
                name=spec.name,
                logical_id=claim(
                    safe_id(spec.name),
                    f"schedule {spec.name!r}",
                    f"{safe_id(spec.name)}Rule",
                    schedule_output_key(spec.name),
                ),
                rate=schedule_rate(spec.every),
                name_env=schedule_name_env(spec.name),
                output_key=schedule_output_key(spec.name),
                deployed_prefix=resource_name(app_name, spec.name),
            )
            for spec in topology.sorted_schedules()
        )

        outputs: list[Output] = []
        if topology.has_http:
            outputs.append(Output(API_ENDPOINT_OUTPUT, "HTTP API endpoint"))
        outputs.append(Output(LAMBDA_NAME_OUTPUT, "Lambda function name"))
        outputs.extend(Output(q.output_key, f"URL of queue {q.name}") for q in queues)
        outputs.extend(Output(s.output_key, f"Rule name of schedule {s.name}") for s in schedules)

        return cls(
            app_name=app_name,
            stack_name=stack_name(app_name),
            handler=f"{LAMBDA_ENTRY_MODULE}.handler",
            region=region,
            has_http=topology.has_http,
            queues=queues,
            schedules=schedules,
            outputs=tuple(outputs),
        )

    @property
    def environment(self) -> list[tuple[str, str]]:
        """Lambda env var names paired with the TypeScript expression for each value."""
        pairs: list[tuple[str, str]] = []
        for index, queue in enumerate(self.queues):
            pairs.append((queue.url_env, f"queue{index}.queueUrl"))
            pairs.append((queue.name_env, _deployed_name_ts(queue.name)))
        for schedule in self.schedules:
            pairs.append((schedule.name_env, _deployed_name_ts(schedule.name)))
        return pairs


def _deployed_name_ts(name: str) -> str:
    return f"appName + {json.dumps('-' + name + '-')} + env"
