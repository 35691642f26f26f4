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
"""'transire info' — Show the discovered topology and deployed stack outputs."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from transire.cli.aws import StackClient, make_session
from transire.cli.console import console, human_duration
from transire.cli.project import load_project, manifest_option, target_options


@click.command()
@click.option("--env", "env", default=None, help="Also show the stack outputs of this environment.")
@target_options
@manifest_option
def info_command(env: str | None, profile: str | None, region: str | None, manifest_path: Path | None) -> None:
    """Display discovered queues, schedules, and HTTP presence."""
    project = load_project(manifest_path)
    topology = project.discover()
    console.print(f"\n[transire]App[/transire] {escape(project.manifest.name)} "
                  f"[dim](entry {escape(project.manifest.app.entry)})[/dim]\n")

    queues = topology.sorted_queues()
    if queues:
        queue_table = Table(title=f"Queues ({len(queues)})", border_style="dim")
        queue_table.add_column("Queue", style="info")
        for queue in queues:
            queue_table.add_row(escape(queue))
        console.print(queue_table)
    else:
        console.print("Queues: [dim]none discovered[/dim]")

    schedules = topology.sorted_schedules()
    if schedules:
        schedule_table = Table(title=f"Schedules ({len(schedules)})", border_style="dim")
        schedule_table.add_column("Schedule", style="info")
        schedule_table.add_column("Every")
        for spec in schedules:
            schedule_table.add_row(escape(spec.name), human_duration(spec.every))
        console.print(schedule_table)
    else:
        console.print("Schedules: [dim]none discovered[/dim]")

    console.print(f"HTTP: {'[success]yes[/success]' if topology.has_http else '[dim]no[/dim]'}")

    if env:
        target = project.target(env, profile, region)
        stack = StackClient(make_session(target), project.manifest.name)
        outputs = stack.outputs()
        output_table = Table(title=f"\nStack outputs ({stack.stack})", border_style="dim")
        output_table.add_column("Key", style="info")
        output_table.add_column("Value")
        for key in sorted(outputs):
            output_table.add_row(escape(key), escape(outputs[key]))
        console.print(output_table)
    console.print()
