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
"""The ``transire.yaml`` project manifest.

A missing manifest is not an error: every section has defaults. Invalid
values fail fast with :class:`ConfigurationException`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from transire.config.properties.app import (
    AppProperties,
    AwsProperties,
    EnvironmentProperties,
    LoggingProperties,
)
from transire.config.properties.local import LocalDispatcherProperties
from transire.core.config import Config
from transire.kernel.exceptions import ConfigurationException

MANIFEST_FILE = "transire.yaml"
DEFAULT_PROFILE = "transire-sandbox"


@dataclass(frozen=True)
class Target:
    """Resolved AWS profile and region for one command invocation."""

    profile: str
    region: str | None


@dataclass
class Manifest:
    app: AppProperties = field(default_factory=AppProperties)
    aws: AwsProperties = field(default_factory=AwsProperties)
    envs: dict[str, EnvironmentProperties] = field(default_factory=dict)
    local: LocalDispatcherProperties = field(default_factory=LocalDispatcherProperties)
    logging: LoggingProperties = field(default_factory=LoggingProperties)
    config: Config = field(default_factory=Config)

    @property
    def name(self) -> str:
        return self.app.name

    @property
    def region(self) -> str | None:
        return self.aws.region

    def resolve_target(
        self,
        env: str | None = None,
        profile: str | None = None,
        region: str | None = None,
    ) -> Target:
        """Flags win, then ``envs.<env>``, then manifest and built-in defaults."""
        if env and env in self.envs:
            env_props = self.envs[env]
            profile = profile or env_props.profile
            region = region or env_props.region
        return Target(profile=profile or DEFAULT_PROFILE, region=region or self.aws.region)


def load_manifest(path: str | Path, environ: Mapping[str, str] | None = None) -> Manifest:
    """Read ``transire.yaml``; a missing file yields defaults."""
    config = Config.from_file(path, environ)
    envs_section = config.get_section("envs")
    try:
        envs = {
            str(name): EnvironmentProperties.model_validate(values or {})
            for name, values in envs_section.items()
        }
    except ValidationError as exc:
        raise ConfigurationException(f"Invalid 'envs' section in {path}:\n{exc}") from exc
    return Manifest(
        app=config.bind(AppProperties),
        aws=config.bind(AwsProperties),
        envs=envs,
        local=config.bind(LocalDispatcherProperties),
        logging=config.bind(LoggingProperties),
        config=config,
    )
