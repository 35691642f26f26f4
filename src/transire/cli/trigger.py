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
"""'transire trigger' — Fire a schedule once, locally or on a deployed stack."""

from __future__ import annotations

from pathlib import Path

import click

from transire.cli.aws import StackClient, make_session
from transire.cli.console import console, fail
from transire.cli.local import LocalAdminClient, resolve_local_url
from transire.cli.project import is_local_env, load_project, manifest_option, target_options


@click.command()
@click.argument("schedule")
@click.option("--env", "env", default=None, help="Deployed environment; omit (or 'local') for transire run.")
@target_options
@manifest_option
def trigger_command(
    schedule: str,
    env: str | None,
    profile: str | None,
    region: str | None,
    manifest_path: Path | None,
) -> None:
    """Run SCHEDULE's handler now."""
    project = load_project(manifest_path)
    if schedule not in {spec.name for spec in project.discover().schedules}:
        fail(f"schedule {schedule!r} not discovered in project.")

    if is_local_env(env):
        base_url = resolve_local_url(properties=project.manifest.local)
        with LocalAdminClient(base_url) as client:
            client.ensure_running()
            client.trigger(schedule)
        console.print(f"[success]Triggered[/success] {schedule} [dim]({base_url})[/dim]")
        return

    target = project.target(env, profile, region)
    function = StackClient(make_session(target), project.manifest.name).trigger(schedule)
    console.print(f"[success]Triggered[/success] {schedule} [dim](async invoke of {function})[/dim]")
