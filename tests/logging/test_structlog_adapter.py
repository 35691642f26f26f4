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
"""Tests for StructlogAdapter."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from transire.config.properties.app import LoggingProperties
from transire.logging import StructlogAdapter


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructlogAdapterConfigure:
    def test_configure_with_defaults(self):
        adapter = StructlogAdapter()
        adapter.configure()
        assert adapter._root_level == "INFO"
        assert adapter._format == "console"
        assert logging.getLogger().level == logging.INFO

    def test_configure_reads_level(self):
        adapter = StructlogAdapter()
        adapter.configure(LoggingProperties(level="debug"))
        assert adapter._root_level == "DEBUG"
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_reads_format(self):
        adapter = StructlogAdapter()
        adapter.configure(LoggingProperties(format="json"))
        assert adapter._format == "json"
        formats = [h.formatter._fmt for h in logging.getLogger().handlers if h.formatter is not None]
        assert any(f and f.startswith('{"timestamp"') for f in formats)

    def test_unknown_level_falls_back_to_info(self):
        adapter = StructlogAdapter()
        adapter.configure(LoggingProperties(level="chatty"))
        assert logging.getLogger().level == logging.INFO


class TestStructlogAdapterLoggers:
    def test_get_logger_returns_bound_logger(self):
        adapter = StructlogAdapter()
        adapter.configure()
        logger = adapter.get_logger("orders.handlers")
        assert callable(getattr(logger, "info", None))

    def test_set_level(self):
        adapter = StructlogAdapter()
        adapter.configure()
        adapter.set_level("orders.handlers", "DEBUG")
        assert logging.getLogger("orders.handlers").level == logging.DEBUG
