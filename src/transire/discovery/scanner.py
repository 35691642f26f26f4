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
"""Static topology discovery: read registration call sites without importing.

Usage::

    topology = scan(Path("."))
    topology.queues        # frozenset({"orders"})
    topology.schedules     # frozenset({ScheduleSpec("cleanup", timedelta(hours=1))})
    topology.has_http      # True

The scan either proves every name and interval or fails with a
:class:`DiscoveryException` that points at the offending source position.
"""

from __future__ import annotations

import ast
import logging
import os
from datetime import timedelta
from pathlib import Path

from transire.discovery.resolver import (
    ConstantResolver,
    ModuleSource,
    UnresolvableError,
    class_locals,
    comprehension_locals,
    function_locals,
)
from transire.discovery.types import ScheduleSpec, Topology
from transire.kernel.exceptions import DiscoveryException, SourceLocation

logger = logging.getLogger(__name__)

QUEUE_CALLS = frozenset({"register_queue_handler", "queue_handler"})
SCHEDULE_CALLS = frozenset({"register_schedule_handler", "schedule_handler"})
HTTP_CALLS = frozenset({"route", "add_route", "mount"})

SKIP_DIRS = frozenset({
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "env",
    "node_modules",
    "dist",
    "build",
    "__pycache__",
    "tests",
    "test",
    "site-packages",
})


def is_skipped_dir(path: Path) -> bool:
    """True for directories that never hold application sources."""
    return path.name in SKIP_DIRS or path.name.startswith(".") or (path / "pyvenv.cfg").exists()


def _skip_file(name: str) -> bool:
    return name.startswith("test_") or name.endswith("_test.py") or name == "conftest.py"


def iter_source_files(root: Path) -> list[Path]:
    """Application ``*.py`` files under *root*, in a stable order."""
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if not is_skipped_dir(current / d))
        files.extend(
            current / name for name in sorted(filenames) if name.endswith(".py") and not _skip_file(name)
        )
    return files


def _module_names(root: Path, path: Path) -> list[str]:
    parts = list(path.relative_to(root).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts.pop()
    names = [".".join(parts)] if parts else []
    if len(parts) > 1 and parts[0] == "src":
        names.append(".".join(parts[1:]))
    return names


def load_modules(root: Path) -> list[ModuleSource]:
    """Parse every source file; a syntax error fails the scan."""
    modules: list[ModuleSource] = []
    for path in iter_source_files(root):
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DiscoveryException(f"cannot read source: {exc}", SourceLocation(path, 1, 1)) from exc
        try:
            tree = ast.parse(source, filename=str(path))
        except SyntaxError as exc:
            location = SourceLocation(path, exc.lineno or 1, exc.offset or 1)
            raise DiscoveryException(f"syntax error: {exc.msg}", location) from exc
        is_package = path.name == "__init__.py"
        names = _module_names(root, path) or [path.stem]
        for name in names:
            modules.append(ModuleSource(name=name, path=path, tree=tree, is_package=is_package))
    return modules


class _Collector:
    def __init__(self) -> None:
        self.queues: set[str] = set()
        self.schedules: dict[str, tuple[timedelta, SourceLocation]] = {}
        self.has_http = False

    def add_schedule(self, name: str, every: timedelta, location: SourceLocation) -> None:
        previous = self.schedules.get(name)
        if previous is not None and previous[0] != every:
            raise DiscoveryException(
                f"schedule {name!r} is declared with interval {every} here and {previous[0]} at {previous[1]}",
                location,
            )
        self.schedules.setdefault(name, (every, location))

    def topology(self) -> Topology:
        return Topology(
            queues=frozenset(self.queues),
            schedules=frozenset(ScheduleSpec(name, every) for name, (every, _) in self.schedules.items()),
            has_http=self.has_http,
        )


class _CallSiteVisitor(ast.NodeVisitor):
    """Finds registration calls in one module and resolves their arguments."""

    def __init__(self, module: ModuleSource, resolver: ConstantResolver, collector: _Collector) -> None:
        self._module = module
        self._resolver = resolver
        self._collector = collector
        # (names, is_class_body) per enclosing scope, innermost last.
        self._scopes: list[tuple[frozenset[str], bool]] = []

    def _scoped(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda) -> None:
        # Decorators and defaults are evaluated in the enclosing scope.
        if not isinstance(node, ast.Lambda):
            for decorator in node.decorator_list:
                self.visit(decorator)
            if node.returns is not None:
                self.visit(node.returns)
        for default in (*node.args.defaults, *(d for d in node.args.kw_defaults if d is not None)):
            self.visit(default)
        self._scopes.append((function_locals(node), False))
        body = [node.body] if isinstance(node, ast.Lambda) else node.body
        for stmt in body:
            self.visit(stmt)
        self._scopes.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._scoped(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._scoped(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._scoped(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for expr in (*node.decorator_list, *node.bases, *(kw.value for kw in node.keywords)):
            self.visit(expr)
        self._scopes.append((class_locals(node), True))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()

    def _comprehension(self, node: ast.ListComp | ast.SetComp | ast.DictComp | ast.GeneratorExp) -> None:
        # The first iterable is evaluated in the enclosing scope.
        self.visit(node.generators[0].iter)
        self._scopes.append((comprehension_locals(node), False))
        for index, generator in enumerate(node.generators):
            if index:
                self.visit(generator.iter)
            for condition in generator.ifs:
                self.visit(condition)
        if isinstance(node, ast.DictComp):
            self.visit(node.key)
            self.visit(node.value)
        else:
            self.visit(node.elt)
        self._scopes.pop()

    visit_ListComp = _comprehension
    visit_SetComp = _comprehension
    visit_DictComp = _comprehension
    visit_GeneratorExp = _comprehension

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if isinstance(func, ast.Attribute):
            if func.attr in QUEUE_CALLS:
                name = self._resolve_name(node, "queue")
                self._collector.queues.add(name)
            elif func.attr in SCHEDULE_CALLS:
                name = self._resolve_name(node, "schedule")
                every = self._resolve_interval(node)
                self._collector.add_schedule(name, every, self._location(node))
            elif func.attr in HTTP_CALLS:
                self._collector.has_http = True
        self.generic_visit(node)

    def _location(self, node: ast.AST) -> SourceLocation:
        return SourceLocation(self._module.path, getattr(node, "lineno", 1), getattr(node, "col_offset", 0) + 1)

    def _local_names(self) -> frozenset[str]:
        # Class-body names are only visible directly in that body.
        innermost = len(self._scopes) - 1
        names: set[str] = set()
        for index, (scope, is_class) in enumerate(self._scopes):
            if not is_class or index == innermost:
                names |= scope
        return frozenset(names)

    def _argument(self, node: ast.Call, index: int, keyword: str, what: str) -> ast.expr:
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise DiscoveryException(f"{what} cannot be passed through *args", self._location(arg))
        for kw in node.keywords:
            if kw.arg is None:
                raise DiscoveryException(f"{what} cannot be passed through **kwargs", self._location(kw.value))
        if len(node.args) > index:
            return node.args[index]
        for kw in node.keywords:
            if kw.arg == keyword:
                return kw.value
        raise DiscoveryException(f"missing {what} argument", self._location(node))

    def _evaluate(self, node: ast.expr, what: str) -> object:
        try:
            return self._resolver.evaluate(self._module, node, self._local_names())
        except UnresolvableError as exc:
            raise DiscoveryException(f"{what} is not a constant: {exc.reason}", self._location(node)) from None

    def _resolve_name(self, call: ast.Call, kind: str) -> str:
        what = f"{kind} name"
        node = self._argument(call, 0, "name", what)
        value = self._evaluate(node, what)
        if not isinstance(value, str) or not value:
            raise DiscoveryException(f"{what} must be a non-empty string, got {value!r}", self._location(node))
        return value

    def _resolve_interval(self, call: ast.Call) -> timedelta:
        what = "schedule interval"
        node = self._argument(call, 1, "every", what)
        value = self._evaluate(node, what)
        if isinstance(value, timedelta):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return timedelta(seconds=value)
        raise DiscoveryException(
            f"{what} must be a timedelta or a number of seconds, got {value!r}",
            self._location(node),
        )


def scan(root: str | Path) -> Topology:
    """Discover the topology of the application under *root*."""
    root = Path(root)
    if not root.is_dir():
        raise DiscoveryException(f"{root} is not a directory")
    modules = load_modules(root)
    resolver = ConstantResolver(modules)
    collector = _Collector()
    seen: set[Path] = set()
    for module in modules:
        if module.path in seen:
            continue
        seen.add(module.path)
        _CallSiteVisitor(module, resolver, collector).visit(module.tree)
    topology = collector.topology()
    logger.debug(
        "Discovered %d queue(s), %d schedule(s), http=%s in %d file(s)",
        len(topology.queues),
        len(topology.schedules),
        topology.has_http,
        len(seen),
    )
    return topology
