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
"""Jinja2 rendering of the CDK app and the Lambda entry module."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from transire.build.infra import InfraDeclaration
from transire.kernel.exceptions import BuildException
from transire.naming import LAMBDA_ENTRY_MODULE

CDK_VERSION = "2.152.0"

# Template -> output path under the CDK directory.
_CDK_FILES: list[tuple[str, str]] = [
    ("cdk/package.json.j2", "package.json"),
    ("cdk/tsconfig.json.j2", "tsconfig.json"),
    ("cdk/cdk.json.j2", "cdk.json"),
    ("cdk/bin/app.ts.j2", "bin/app.ts"),
    ("cdk/lib/app-stack.ts.j2", "lib/app-stack.ts"),
]


def _get_env() -> Environment:
    """Create the Jinja2 template environment."""
    return Environment(
        loader=PackageLoader("transire.build", "templates"),
        keep_trailing_newline=True,
        lstrip_blocks=True,
        trim_blocks=True,
        undefined=StrictUndefined,
    )


def render_cdk(infra: InfraDeclaration, cdk_dir: Path) -> list[Path]:
    """Write the CDK app for *infra* under *cdk_dir*. Return the written paths."""
    env = _get_env()
    context = {"infra": infra, "app_name": infra.app_name, "cdk_version": CDK_VERSION}
    written: list[Path] = []
    for template_name, output_path in _CDK_FILES:
        try:
            rendered = env.get_template(template_name).render(context)
        except TemplateError as exc:
            raise BuildException("render", f"{template_name}: {exc}") from exc
        written.append(_write(cdk_dir / output_path, rendered))
    return written


def render_lambda_entry(entry: str, target_dir: Path, log_level: str = "INFO") -> Path:
    """Write ``transire_lambda.py`` importing the ``module:attr`` *entry*."""
    module, _, attr = entry.partition(":")
    try:
        rendered = _get_env().get_template("lambda/transire_lambda.py.j2").render(
            module=module, attr=attr, log_level=log_level
        )
    except TemplateError as exc:
        raise BuildException("package", f"Lambda entry: {exc}") from exc
    return _write(target_dir / f"{LAMBDA_ENTRY_MODULE}.py", rendered)


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
