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
"""'transire run' — Serve the application with the local dispatcher."""

from __future__ import annotations

import asyncio
import importlib
import sys
from pathlib import Path

import click

from transire.cli.console import console, fail
from transire.cli.project import load_project, manifest_option
from transire.core import App
from transire.dispatcher.local import LocalDispatcher


def _ensure_src_on_path(root: Path) -> None:
    """Put the project root and ``src/`` on sys.path so the entry imports uninstalled."""
    for candidate in (root / "src", root):
        path = str(candidate.resolve())
        if candidate.is_dir() and path not in sys.path:
            sys.path.insert(0, path)


def load_app(entry: str) -> App:
    """Import ``module:attribute`` and check it is an :class:`App`."""
    module_name, _, attr = entry.partition(":")
    if not module_name or not attr:
        fail(f"invalid app path {entry!r}.", hint="Use 'module:attribute', e.g. 'main:app'.")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        fail(f"cannot import {module_name!r}: {exc}")
    app = getattr(module, attr, None)
    if not isinstance(app, App):
        fail(f"{entry!r} is not a transire App (got {type(app).__name__}).")
    return app


@click.command()
@click.option("--app", "app_path", default=None, help="Application import path (default: app.entry from transire.yaml).")
@click.option("--host", default=None, help="Bind address (default: local.host or TRANSIRE_HTTP_ADDR).")
@click.option("--port", default=None, type=int, help="Port number (default: local.port, PORT, or TRANSIRE_PORT).")
@manifest_option
def run_command(app_path: str | None, host: str | None, port: int | None, manifest_path: Path | None) -> None:
    """Run HTTP routes, queues, and schedules in one local process."""
    project = load_project(manifest_path)
    _ensure_src_on_path(project.root)
    app = load_app(app_path or project.manifest.app.entry)

    dispatcher = LocalDispatcher(project.manifest.local, host=host, port=port)
    bind_host, bind_port = dispatcher.resolve_address()
    console.print(
        f"[transire]Transire[/transire] serving {project.manifest.name} on "
        f"[info]http://{bind_host}:{bind_port}[/info] "
        f"[dim]({len(app.queue_handlers())} queue(s), {len(app.schedules())} schedule(s))[/dim]"
    )
    try:
        asyncio.run(dispatcher.run(app))
    except KeyboardInterrupt:
        pass
    console.print("[dim]Stopped.[/dim]")
