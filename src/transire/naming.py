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
"""Names shared by the generated infrastructure and the AWS runtime.

The CDK stack writes these environment variables and outputs; the AWS
dispatcher and the CLI read them back. Both sides must go through this module.
"""

from __future__ import annotations

QUEUE_ENV_PREFIX = "TRANSIRE_QUEUE_"
SCHEDULE_ENV_PREFIX = "TRANSIRE_SCHEDULE_"
NAME_ENV_SUFFIX = "_NAME"
URL_ENV_SUFFIX = "_URL"

ADMIN_PREFIX = "/_transire"
LAMBDA_ENTRY_MODULE = "transire_lambda"
LAMBDA_NAME_OUTPUT = "LambdaName"
API_ENDPOINT_OUTPUT = "ApiEndpoint"


def env_token(name: str) -> str:
    """``hello-queue`` -> ``HELLO_QUEUE``."""
    return name.upper().replace("-", "_")


def queue_url_env(queue: str) -> str:
    return f"{QUEUE_ENV_PREFIX}{env_token(queue)}{URL_ENV_SUFFIX}"


def queue_name_env(queue: str) -> str:
    return f"{QUEUE_ENV_PREFIX}{env_token(queue)}{NAME_ENV_SUFFIX}"


def schedule_name_env(schedule: str) -> str:
    return f"{SCHEDULE_ENV_PREFIX}{env_token(schedule)}{NAME_ENV_SUFFIX}"


def safe_id(name: str) -> str:
    """CDK logical id fragment: drop ``-`` and ``_``."""
    ident = name.replace("-", "").replace("_", "")
    return ident or "id"


def stack_name(app_name: str) -> str:
    return f"{app_name}-stack"


def queue_output_key(queue: str) -> str:
    return f"{safe_id(queue)}QueueUrl"


def schedule_output_key(schedule: str) -> str:
    return f"{safe_id(schedule)}ScheduleName"


def lambda_name_from_outputs(outputs: dict[str, str]) -> str | None:
    """Find the function name among stack outputs."""
    if LAMBDA_NAME_OUTPUT in outputs:
        return outputs[LAMBDA_NAME_OUTPUT]
    for key, value in outputs.items():
        if "lambda" in key.lower():
            return value
    return None


def arn_suffix(arn: str) -> str:
    """Last ``:``-separated segment of an ARN (the SQS queue name)."""
    return arn.rsplit(":", 1)[-1]


def rule_name(resources: list[str] | None) -> str:
    """Rule name from an EventBridge ``resources`` list (``.../rule/<name>``)."""
    if not resources:
        return ""
    return resources[0].rsplit("/", 1)[-1]
