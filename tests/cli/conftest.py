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
"""Shared fixtures for CLI tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from transire.cli.console import console

APP_SOURCE = """\
from datetime import timedelta

from starlette.responses import PlainTextResponse
from transire import App

app = App()

@app.route("/hello")
async def hello(request):
    return PlainTextResponse("hi")

@app.queue_handler("orders")
async def orders(ctx, msg):
    pass

@app.schedule_handler("nightly", timedelta(hours=2))
async def nightly(ctx, at):
    pass
"""

MANIFEST = """\
app:
  name: shop
aws:
  region: eu-west-1
envs:
  prod:
    profile: prod-admin
    region: us-east-1
"""


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(console, "width", 240)


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "main.py").write_text(APP_SOURCE)
    (tmp_path / "transire.yaml").write_text(MANIFEST)
    monkeypatch.chdir(tmp_path)
    for key in ("TRANSIRE_HTTP_ADDR", "PORT", "TRANSIRE_PORT", "TRANSIRE_APP_NAME"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path
