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
"""Constant evaluation over parsed, never-executed modules.

Only expressions whose value is fixed by the source text resolve: literals,
single top-level assignments, imports from modules in the same tree,
arithmetic, string concatenation, constant f-strings, and ``timedelta(...)``.
Anything else raises :class:`UnresolvableError`.
"""

from __future__ import annotations

import ast
import operator
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

_BIN_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}
_TIMEDELTA_ARGS = ("days", "seconds", "microseconds", "milliseconds", "minutes", "hours", "weeks")
_CONVERSIONS: dict[int, Callable[[Any], str]] = {ord("s"): str, ord("r"): repr, ord("a"): ascii}
_MAX_STRING = 4096


class UnresolvableError(Exception):
    """An expression is not a compile-time constant."""

    def __init__(self, node: ast.AST, reason: str) -> None:
        super().__init__(reason)
        self.node = node
        self.reason = reason


@dataclass(frozen=True)
class Binding:
    """One module-level binding of a name."""

    kind: str  # "value", "module", "from", or "other"
    node: ast.AST
    value: ast.expr | None = None
    module: str = ""
    attr: str = ""
    level: int = 0
    top_level: bool = True


@dataclass
class ModuleSource:
    """A parsed module and its module-level bindings."""

    name: str
    path: Path
    tree: ast.Module
    is_package: bool = False
    bindings: dict[str, list[Binding]] = field(default_factory=dict)

    @property
    def package(self) -> str:
        return self.name if self.is_package else self.name.rpartition(".")[0]


def _target_names(target: ast.AST) -> list[str]:
    return [node.id for node in ast.walk(target) if isinstance(node, ast.Name)]


def collect_bindings(tree: ast.Module) -> dict[str, list[Binding]]:
    """Every module-level binding, including those nested in if/try/for/with."""
    bindings: dict[str, list[Binding]] = defaultdict(list)

    def visit_block(statements: list[ast.stmt], top_level: bool) -> None:
        for stmt in statements:
            if isinstance(stmt, ast.Assign):
                if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                    bindings[stmt.targets[0].id].append(
                        Binding("value", stmt, value=stmt.value, top_level=top_level)
                    )
                else:
                    for target in stmt.targets:
                        for name in _target_names(target):
                            bindings[name].append(Binding("other", stmt))
            elif isinstance(stmt, ast.AnnAssign):
                if isinstance(stmt.target, ast.Name) and stmt.value is not None:
                    bindings[stmt.target.id].append(
                        Binding("value", stmt, value=stmt.value, top_level=top_level)
                    )
            elif isinstance(stmt, ast.AugAssign):
                for name in _target_names(stmt.target):
                    bindings[name].append(Binding("other", stmt))
            elif isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    if alias.asname:
                        bindings[alias.asname].append(Binding("module", stmt, module=alias.name))
                    else:
                        top = alias.name.partition(".")[0]
                        bindings[top].append(Binding("module", stmt, module=top))
            elif isinstance(stmt, ast.ImportFrom):
                for alias in stmt.names:
                    if alias.name == "*":
                        continue
                    bindings[alias.asname or alias.name].append(
                        Binding("from", stmt, module=stmt.module or "", attr=alias.name, level=stmt.level)
                    )
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                bindings[stmt.name].append(Binding("other", stmt))
            elif isinstance(stmt, (ast.For, ast.AsyncFor)):
                for name in _target_names(stmt.target):
                    bindings[name].append(Binding("other", stmt))
                visit_block(stmt.body, False)
                visit_block(stmt.orelse, False)
            elif isinstance(stmt, (ast.With, ast.AsyncWith)):
                for item in stmt.items:
                    if item.optional_vars is not None:
                        for name in _target_names(item.optional_vars):
                            bindings[name].append(Binding("other", stmt))
                visit_block(stmt.body, False)
            elif isinstance(stmt, (ast.If, ast.While)):
                visit_block(stmt.body, False)
                visit_block(stmt.orelse, False)
            elif isinstance(stmt, ast.Try):
                visit_block(stmt.body, False)
                for handler in stmt.handlers:
                    if handler.name:
                        bindings[handler.name].append(Binding("other", handler))
                    visit_block(handler.body, False)
                visit_block(stmt.orelse, False)
                visit_block(stmt.finalbody, False)

    visit_block(tree.body, True)
    return dict(bindings)


def function_locals(func: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda) -> frozenset[str]:
    """Names a function binds locally; these shadow module constants."""
    args = func.args
    names = {arg.arg for arg in (*args.posonlyargs, *args.args, *args.kwonlyargs)}
    if args.vararg is not None:
        names.add(args.vararg.arg)
    if args.kwarg is not None:
        names.add(args.kwarg.arg)
    declared: set[str] = set()
    for child in ast.walk(func):
        if child is func:
            continue
        if isinstance(child, ast.Name) and isinstance(child.ctx, ast.Store):
            names.add(child.id)
        elif isinstance(child, (ast.Global, ast.Nonlocal)):
            declared.update(child.names)
        elif isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(child.name)
        elif isinstance(child, ast.alias):
            names.add(child.asname or child.name.partition(".")[0])
        elif isinstance(child, ast.ExceptHandler) and child.name:
            names.add(child.name)
    return frozenset(names - declared)


def class_locals(cls: ast.ClassDef) -> frozenset[str]:
    """Names bound directly in a class body; nested scopes are not entered."""
    names: set[str] = set()
    stack: list[ast.AST] = list(cls.body)
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(node.name)
            continue
        if isinstance(node, (ast.Lambda, ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)):
            continue
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
            names.add(node.id)
        elif isinstance(node, ast.alias):
            names.add(node.asname or node.name.partition(".")[0])
        elif isinstance(node, ast.ExceptHandler) and node.name:
            names.add(node.name)
        stack.extend(ast.iter_child_nodes(node))
    return frozenset(names)


def comprehension_locals(node: ast.ListComp | ast.SetComp | ast.DictComp | ast.GeneratorExp) -> frozenset[str]:
    """Loop targets of a comprehension."""
    return frozenset(
        child.id
        for generator in node.generators
        for child in ast.walk(generator.target)
        if isinstance(child, ast.Name)
    )


class ConstantResolver:
    """Evaluates constant expressions across the modules of one source tree."""

    def __init__(self, modules: Iterable[ModuleSource]) -> None:
        self._modules: dict[str, ModuleSource] = {}
        for module in modules:
            module.bindings = collect_bindings(module.tree)
            self._modules[module.name] = module
        self._cache: dict[tuple[str, str], Any] = {}
        self._active: set[tuple[str, str]] = set()

    def evaluate(self, module: ModuleSource, node: ast.expr, local_names: frozenset[str] = frozenset()) -> Any:
        if isinstance(node, ast.Constant):
            value = node.value
            if isinstance(value, bool):
                raise UnresolvableError(node, "booleans are not valid names or intervals")
            if isinstance(value, (str, int, float)):
                return value
            raise UnresolvableError(node, f"unsupported literal {value!r}")
        if isinstance(node, ast.JoinedStr):
            return self._fstring(module, node, local_names)
        if isinstance(node, ast.BinOp):
            return self._binop(module, node, local_names)
        if isinstance(node, ast.UnaryOp):
            op = _UNARY_OPS.get(type(node.op))
            if op is None:
                raise UnresolvableError(node, f"unsupported operator {type(node.op).__name__}")
            operand = self.evaluate(module, node.operand, local_names)
            if isinstance(operand, str):
                raise UnresolvableError(node, "unary operator applied to a string")
            return op(operand)
        if isinstance(node, ast.Name):
            if node.id in local_names:
                raise UnresolvableError(node, f"{node.id!r} is a local variable")
            return self.lookup(module, node.id, node)
        if isinstance(node, ast.Attribute):
            return self._attribute(module, node, local_names)
        if isinstance(node, ast.Call):
            return self._timedelta(module, node, local_names)
        raise UnresolvableError(node, f"{type(node).__name__} expression is not a constant")

    def lookup(self, module: ModuleSource, name: str, node: ast.AST) -> Any:
        """Value of the module-level constant *name* in *module*."""
        key = (module.name, name)
        if key in self._cache:
            return self._cache[key]
        if key in self._active:
            raise UnresolvableError(node, f"{name!r} is defined in terms of itself")
        bindings = module.bindings.get(name, [])
        if not bindings:
            raise UnresolvableError(node, f"{name!r} is not defined at module level in {module.path}")
        if len(bindings) > 1:
            raise UnresolvableError(node, f"{name!r} is bound more than once in {module.path}")

        self._active.add(key)
        try:
            value = self._binding_value(module, name, bindings[0], node)
        finally:
            self._active.discard(key)
        self._cache[key] = value
        return value

    def _binding_value(self, module: ModuleSource, name: str, binding: Binding, node: ast.AST) -> Any:
        if binding.kind == "value" and binding.value is not None:
            if not binding.top_level:
                raise UnresolvableError(node, f"{name!r} is assigned conditionally in {module.path}")
            try:
                return self.evaluate(module, binding.value)
            except UnresolvableError as exc:
                where = f"{module.path}:{getattr(exc.node, 'lineno', '?')}"
                raise UnresolvableError(node, f"{name!r} ({where}): {exc.reason}") from None
        if binding.kind == "from":
            source = self._import_target(module, binding, node)
            if f"{source}.{binding.attr}" in self._modules:
                raise UnresolvableError(node, f"{name!r} is a module, not a constant")
            target = self._modules.get(source)
            if target is None:
                raise UnresolvableError(node, f"{name!r} is imported from {source!r}, outside the scanned tree")
            return self.lookup(target, binding.attr, node)
        if binding.kind == "module":
            raise UnresolvableError(node, f"{name!r} is a module, not a constant")
        raise UnresolvableError(node, f"{name!r} is not a constant assignment")

    def _import_target(self, module: ModuleSource, binding: Binding, node: ast.AST) -> str:
        if binding.level == 0:
            return binding.module
        parts = module.package.split(".") if module.package else []
        up = binding.level - 1
        if up > len(parts):
            raise UnresolvableError(node, "relative import beyond the scanned tree")
        parts = parts[: len(parts) - up]
        if binding.module:
            parts.extend(binding.module.split("."))
        return ".".join(parts)

    def _module_ref(self, module: ModuleSource, name: str, node: ast.AST) -> str:
        bindings = module.bindings.get(name, [])
        if bindings and all(b.kind == "module" and b.module == bindings[0].module for b in bindings):
            return bindings[0].module
        if len(bindings) == 1 and bindings[0].kind == "from":
            candidate = f"{self._import_target(module, bindings[0], node)}.{bindings[0].attr}"
            if candidate in self._modules:
                return candidate
        raise UnresolvableError(node, f"{name!r} is not an imported module")

    def _attribute(self, module: ModuleSource, node: ast.Attribute, local_names: frozenset[str]) -> Any:
        parts: list[str] = []
        current: ast.expr = node
        while isinstance(current, ast.Attribute):
            parts.append(current.attr)
            current = current.value
        if not isinstance(current, ast.Name):
            raise UnresolvableError(node, "attribute access is not a constant")
        if current.id in local_names:
            raise UnresolvableError(node, f"{current.id!r} is a local variable")
        parts.reverse()
        target = self._module_ref(module, current.id, node)
        for part in parts[:-1]:
            target = f"{target}.{part}"
        source = self._modules.get(target)
        if source is None:
            raise UnresolvableError(node, f"module {target!r} is outside the scanned tree")
        return self.lookup(source, parts[-1], node)

    def _binop(self, module: ModuleSource, node: ast.BinOp, local_names: frozenset[str]) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise UnresolvableError(node, f"unsupported operator {type(node.op).__name__}")
        left = self.evaluate(module, node.left, local_names)
        right = self.evaluate(module, node.right, local_names)
        if isinstance(node.op, ast.Mult):
            text, count = (left, right) if isinstance(left, str) else (right, left)
            if isinstance(text, str) and isinstance(count, int) and len(text) * count > _MAX_STRING:
                raise UnresolvableError(node, "string constant too long")
        try:
            result = op(left, right)
        except (TypeError, ZeroDivisionError, OverflowError) as exc:
            raise UnresolvableError(node, f"cannot evaluate: {exc}") from None
        if isinstance(result, str) and len(result) > _MAX_STRING:
            raise UnresolvableError(node, "string constant too long")
        return result

    def _fstring(self, module: ModuleSource, node: ast.JoinedStr, local_names: frozenset[str]) -> str:
        pieces: list[str] = []
        for value in node.values:
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                pieces.append(value.value)
            elif isinstance(value, ast.FormattedValue):
                inner = self.evaluate(module, value.value, local_names)
                convert = _CONVERSIONS.get(value.conversion)
                if convert is not None:
                    inner = convert(inner)
                spec = ""
                if value.format_spec is not None:
                    spec = self._fstring(module, value.format_spec, local_names)  # type: ignore[arg-type]
                try:
                    pieces.append(format(inner, spec))
                except (TypeError, ValueError) as exc:
                    raise UnresolvableError(value, f"cannot format: {exc}") from None
            else:
                raise UnresolvableError(value, "f-string part is not a constant")
        return "".join(pieces)

    def _timedelta(self, module: ModuleSource, node: ast.Call, local_names: frozenset[str]) -> timedelta:
        if not self._is_timedelta(module, node.func, local_names):
            raise UnresolvableError(node, "only timedelta(...) calls have a constant value")
        if len(node.args) > len(_TIMEDELTA_ARGS):
            raise UnresolvableError(node, "too many timedelta arguments")
        args = [self._number(module, arg, local_names) for arg in node.args]
        kwargs: dict[str, float] = {}
        for keyword in node.keywords:
            if keyword.arg is None or keyword.arg not in _TIMEDELTA_ARGS:
                raise UnresolvableError(node, f"unsupported timedelta argument {keyword.arg!r}")
            kwargs[keyword.arg] = self._number(module, keyword.value, local_names)
        try:
            return timedelta(*args, **kwargs)
        except (TypeError, ValueError, OverflowError) as exc:
            raise UnresolvableError(node, f"invalid timedelta: {exc}") from None

    def _number(self, module: ModuleSource, node: ast.expr, local_names: frozenset[str]) -> Any:
        if isinstance(node, ast.Starred):
            raise UnresolvableError(node, "starred arguments are not constant")
        value = self.evaluate(module, node, local_names)
        if not isinstance(value, (int, float)):
            raise UnresolvableError(node, "timedelta arguments must be numbers")
        return value

    def _is_timedelta(self, module: ModuleSource, func: ast.expr, local_names: frozenset[str]) -> bool:
        if isinstance(func, ast.Name):
            if func.id in local_names:
                return False
            bindings = module.bindings.get(func.id, [])
            return (
                len(bindings) == 1
                and bindings[0].kind == "from"
                and bindings[0].level == 0
                and bindings[0].module == "datetime"
                and bindings[0].attr == "timedelta"
            )
        if isinstance(func, ast.Attribute) and func.attr == "timedelta" and isinstance(func.value, ast.Name):
            if func.value.id in local_names:
                return False
            bindings = module.bindings.get(func.value.id, [])
            return bool(bindings) and all(b.kind == "module" and b.module == "datetime" for b in bindings)
        return False
