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
"""'transire build' — Discover handlers and generate the AWS deployment."""

from __future__ import annotations

from pathlib import Path

import click

from transire.build import AwsBuilder, BuildResult
from transire.cli.console import console, print_header
from transire.cli.project import Project, load_project, manifest_option


def run_build(project: Project) -> BuildResult:
    """Scan *project* and build ``dist/aws``; shared with ``deploy``."""
    topology = project.discover()
    console.print(
        f"  [info]Discovered[/info] {len(topology.queues)} queue(s), "
        f"{len(topology.schedules)} schedule(s), "
        f"HTTP {'yes' if topology.has_http else 'no'}"
    )
    with console.status("[info]Packaging Lambda and rendering CDK app...[/info]"):
        result = AwsBuilder(project.root, project.manifest, topology).build()
    return result


@click.command()
@manifest_option
def build_command(manifest_path: Path | None) -> None:
    """Build the Lambda package and CDK app into dist/aws."""
    project = load_project(manifest_path)
    print_header(f"build {project.manifest.name}")
    result = run_build(project)
    console.print(f"  [success]✓[/success] Lambda package  {result.package_zip}")
    console.print(f"  [success]✓[/success] CDK app         {result.cdk_dir}")
    console.print()
