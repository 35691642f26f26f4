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
"""'transire deploy' — Build, then deploy the CDK app to an environment."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path

import click

from transire.cli.build import run_build
from transire.cli.console import console, fail, print_header
from transire.cli.project import load_project, manifest_option, target_options
from transire.config.manifest import Target


def cdk_deploy_command(env: str, target: Target) -> list[str]:
    return [
        "npx", "cdk", "deploy",
        "--require-approval", "never",
        "--profile", target.profile,
        "--context", f"env={env}",
    ]


def run_process(args: list[str], cwd: Path, environ: Mapping[str, str]) -> None:
    """Run *args* streaming output; raises ``CalledProcessError`` on failure."""
    subprocess.run(args, cwd=cwd, env=dict(environ), check=True)


def _deploy_environ(target: Target) -> dict[str, str]:
    environ = dict(os.environ)
    environ["AWS_PROFILE"] = target.profile
    if target.region:
        environ["AWS_REGION"] = target.region
        environ["CDK_DEFAULT_REGION"] = target.region
    return environ


@click.command()
@click.option("--env", "env", required=True, help="Target environment (a key under envs: in transire.yaml).")
@target_options
@manifest_option
def deploy_command(env: str, profile: str | None, region: str | None, manifest_path: Path | None) -> None:
    """Build and deploy the application with the AWS CDK."""
    project = load_project(manifest_path)
    target = project.target(env, profile, region)
    print_header(f"deploy {project.manifest.name} to {env}")
    result = run_build(project)

    if shutil.which("npx") is None or shutil.which("npm") is None:
        fail("npm and npx are required for deploy.", hint="Install Node.js, then re-run 'transire deploy'.")

    environ = _deploy_environ(target)
    steps = [["npm", "install"], cdk_deploy_command(env, target)]
    for args in steps:
        console.print(f"  [dim]$ {' '.join(args)}[/dim]")
        try:
            run_process(args, result.cdk_dir, environ)
        except subprocess.CalledProcessError as exc:
            fail(f"'{' '.join(args)}' failed with exit code {exc.returncode}.")
    console.print(f"\n  [success]✓[/success] Deployed {project.manifest.name} to {env} "
                  f"[dim](profile {target.profile}, region {target.region or 'default'})[/dim]\n")
