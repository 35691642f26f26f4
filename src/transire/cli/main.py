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
"""Transire CLI — build, deploy, and drive Transire applications."""

from __future__ import annotations

import click

from transire.cli.console import console, fail
from transire.cli.project import LOG_LEVEL_KEY, configure_logging
from transire.config.properties.app import LoggingProperties
from transire.kernel.exceptions import TransireException


class TransireCLI(click.Group):
    """Click group that turns framework errors into a red message and exit status 1."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        console.print("[transire]Transire[/transire] [dim]:: one codebase, local and AWS[/dim]\n")
        super().format_help(ctx, formatter)

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except TransireException as exc:
            fail(str(exc))


@click.group(cls=TransireCLI)
@click.version_option(package_name="transire")
@click.option("--log-level", default=None, help="Override logging.level from the project manifest.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Transire — run one codebase locally and on AWS Lambda."""
    ctx.meta[LOG_LEVEL_KEY] = log_level
    # Defaults until a command loads its manifest (see load_project).
    configure_logging(LoggingProperties())


# Import and register commands
from transire.cli.build import build_command  # noqa: E402
from transire.cli.deploy import deploy_command  # noqa: E402
from transire.cli.info import info_command  # noqa: E402
from transire.cli.run import run_command  # noqa: E402
from transire.cli.send import send_command  # noqa: E402
from transire.cli.trigger import trigger_command  # noqa: E402

cli.add_command(build_command, name="build")
cli.add_command(deploy_command, name="deploy")
cli.add_command(info_command, name="info")
cli.add_command(run_command, name="run")
cli.add_command(send_command, name="send")
cli.add_command(trigger_command, name="trigger")
