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
"""Project loading and option decorators shared by the CLI commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from transire.config.manifest import DEFAULT_PROFILE, MANIFEST_FILE, Manifest, Target, load_manifest
from transire.config.properties.app import LoggingProperties
from transire.discovery import Topology, scan
from transire.logging import StructlogAdapter

F = TypeVar("F", bound=Callable[..., Any])

LOG_LEVEL_KEY = "transire.log_level"


@dataclass(frozen=True)
class Project:
    """The project rooted at the working directory and its manifest."""

    root: Path
    manifest: Manifest

    def discover(self) -> Topology:
        return scan(self.root)

    def target(self, env: str | None, profile: str | None, region: str | None) -> Target:
        return self.manifest.resolve_target(env, profile, region)


def configure_logging(properties: LoggingProperties) -> None:
    """Apply *properties*, keeping the group's ``--log-level`` override if one was given."""
    ctx = click.get_current_context(silent=True)
    log_level = ctx.meta.get(LOG_LEVEL_KEY) if ctx is not None else None
    if log_level:
        properties = properties.model_copy(update={"level": log_level})
    StructlogAdapter().configure(properties)


def load_project(manifest_path: Path | None = None) -> Project:
    """Load ``transire.yaml`` (or *manifest_path*) relative to the working directory.

    Logging is reconfigured from the loaded manifest, so ``logging.*`` always
    comes from the same file as the rest of the settings.
    """
    root = Path.cwd()
    path = manifest_path if manifest_path is not None else root / MANIFEST_FILE
    manifest = load_manifest(path)
    configure_logging(manifest.logging)
    return Project(root=root, manifest=manifest)


def manifest_option(func: F) -> F:
    return click.option(
        "--manifest",
        "manifest_path",
        default=None,
        type=click.Path(dir_okay=False, path_type=Path),
        help=f"Path to the project manifest (default: ./{MANIFEST_FILE}).",
    )(func)


def target_options(func: F) -> F:
    """Add ``--profile`` and ``--region``; ``--env`` is declared per command."""
    func = click.option("--region", default=None, help="AWS region (default: from envs.<env> or aws.region).")(func)
    func = click.option(
        "--profile",
        default=None,
        help=f"AWS profile (default: from envs.<env> or {DEFAULT_PROFILE}).",
    )(func)
    return func


def is_local_env(env: str | None) -> bool:
    return not env or env == "local"
