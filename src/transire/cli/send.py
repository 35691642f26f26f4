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
"""'transire send' — Enqueue a message locally or on a deployed stack."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path

import click

from transire.cli.aws import StackClient, make_session
from transire.cli.console import console, fail
from transire.cli.local import LocalAdminClient, resolve_local_url
from transire.cli.project import is_local_env, load_project, manifest_option, target_options


def decode_message(message: str, use_base64: bool) -> bytes:
    if not use_base64:
        return message.encode("utf-8")
    try:
        return base64.b64decode(message, validate=True)
    except binascii.Error:
        fail("--base64 message is not valid base64.")


@click.command()
@click.argument("queue")
@click.argument("message")
@click.option("--base64", "use_base64", is_flag=True, help="MESSAGE is base64-encoded bytes.")
@click.option("--env", "env", default=None, help="Deployed environment; omit (or 'local') for transire run.")
@target_options
@manifest_option
def send_command(
    queue: str,
    message: str,
    use_base64: bool,
    env: str | None,
    profile: str | None,
    region: str | None,
    manifest_path: Path | None,
) -> None:
    """Send MESSAGE to QUEUE."""
    project = load_project(manifest_path)
    if queue not in project.discover().queues:
        fail(f"queue {queue!r} not discovered in project.")
    payload = decode_message(message, use_base64)

    if is_local_env(env):
        base_url = resolve_local_url(properties=project.manifest.local)
        with LocalAdminClient(base_url) as client:
            client.ensure_running()
            client.send(queue, payload)
        console.print(f"[success]Sent[/success] {len(payload)} byte(s) to {queue} [dim]({base_url})[/dim]")
        return

    target = project.target(env, profile, region)
    message_id = StackClient(make_session(target), project.manifest.name).send(queue, payload)
    console.print(f"[success]Sent[/success] {len(payload)} byte(s) to {queue} [dim](message {message_id})[/dim]")
