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
"""Application, AWS, and logging configuration properties."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from transire.core.config import config_properties

DEFAULT_APP_NAME = "transire-app"


@config_properties(prefix="app")
class AppProperties(BaseModel):
    """Application identity (app.*)."""

    name: str = Field(default=DEFAULT_APP_NAME, pattern=r"^[A-Za-z][A-Za-z0-9-]*$")
    entry: str = "main:app"

    @field_validator("entry")
    @classmethod
    def _check_entry(cls, value: str) -> str:
        module, sep, attr = value.partition(":")
        if not module or not sep or not attr:
            raise ValueError("entry must look like 'module:attribute'")
        return value


class EnvironmentProperties(BaseModel):
    """One deployment environment (envs.<name>.*)."""

    profile: str | None = None
    region: str | None = None


@config_properties(prefix="aws")
class AwsProperties(BaseModel):
    """AWS defaults (aws.*)."""

    region: str | None = None


@config_properties(prefix="logging")
class LoggingProperties(BaseModel):
    """Logging output (logging.*)."""

    level: str = "INFO"
    format: str = "console"

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("console", "json"):
            raise ValueError("format must be 'console' or 'json'")
        return value
