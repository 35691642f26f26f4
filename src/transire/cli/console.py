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
"""Shared Rich console for CLI output."""

from __future__ import annotations

from datetime import timedelta
from typing import NoReturn

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

TRANSIRE_THEME = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "transire": "bold blue",
    "dim": "dim",
})

console = Console(theme=TRANSIRE_THEME)


def print_header(title: str) -> None:
    """Print a command header: 'Transire :: <title>'."""
    console.print(f"\n[transire]Transire[/transire] [dim]::[/dim] {escape(title)}\n")


def fail(message: str, hint: str | None = None) -> NoReturn:
    """Print an error (and an optional dim hint), then exit with status 1."""
    console.print(f"[error]{escape(message)}[/error]")
    if hint:
        console.print(f"[dim]{escape(hint)}[/dim]")
    raise SystemExit(1)


def human_duration(every: timedelta) -> str:
    """Render an interval as ``2h``, ``5m``, or ``90s``."""
    seconds = int(every.total_seconds())
    if seconds > 0 and seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds > 0 and seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"
