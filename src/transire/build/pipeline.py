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
"""The AWS build pipeline: prepare, package, render, publish.

``dist/aws`` either holds a complete build or does not exist: the build
assembles everything in a staging directory and moves it into place last.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from transire.build.cdk import render_cdk
from transire.build.infra import InfraDeclaration
from transire.build.package import LambdaPackager, Runner
from transire.config.manifest import Manifest
from transire.discovery.types import Topology
from transire.kernel.exceptions import BuildException

logger = logging.getLogger(__name__)

_STAGING_PREFIX = ".aws-staging-"


@dataclass(frozen=True)
class BuildResult:
    output_dir: Path
    package_zip: Path
    cdk_dir: Path
    infra: InfraDeclaration


class AwsBuilder:
    """Turns a project and its discovered topology into ``dist/aws``.

    Usage::

        result = AwsBuilder(root, load_manifest(root / "transire.yaml"), scan(root)).build()
        result.package_zip   # dist/aws/lambda/package.zip
        result.cdk_dir       # dist/aws/cdk
    """

    def __init__(
        self,
        project_root: Path,
        manifest: Manifest,
        topology: Topology,
        *,
        runner: Runner | None = None,
    ) -> None:
        self._root = Path(project_root).resolve()
        self._manifest = manifest
        self._topology = topology
        self._packager = LambdaPackager(
            self._root,
            manifest.app.entry,
            runner=runner,
            log_level=manifest.logging.level,
        )

    @property
    def output_dir(self) -> Path:
        return self._root / "dist" / "aws"

    def build(self) -> BuildResult:
        output = self.output_dir
        with self._stage("prepare"):
            staging = self._prepare(output)
        try:
            with self._stage("package"):
                package_zip = self._packager.package(staging / "lambda")
            with self._stage("render"):
                infra = InfraDeclaration.from_topology(self._manifest.name, self._topology, self._manifest.region)
                render_cdk(infra, staging / "cdk")
            with self._stage("publish"):
                staging.rename(output)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info("Build complete: %s", output)
        return BuildResult(
            output_dir=output,
            package_zip=output / package_zip.relative_to(staging),
            cdk_dir=output / "cdk",
            infra=infra,
        )

    def _prepare(self, output: Path) -> Path:
        if output.exists():
            shutil.rmtree(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        for leftover in output.parent.glob(_STAGING_PREFIX + "*"):
            shutil.rmtree(leftover, ignore_errors=True)
        return Path(tempfile.mkdtemp(prefix=_STAGING_PREFIX, dir=output.parent))

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        logger.info("Build stage: %s", name)
        try:
            yield
        except BuildException:
            raise
        except (OSError, ValueError) as exc:
            raise BuildException(name, str(exc)) from exc
