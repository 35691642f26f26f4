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
"""Lambda package assembly.

Python has no cross-compiler; the equivalent is asking pip for wheels built
for the Lambda platform instead of the build machine's.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path

import transire
from transire.build.cdk import render_lambda_entry
from transire.discovery import is_skipped_dir
from transire.kernel.exceptions import BuildException

logger = logging.getLogger(__name__)

LAMBDA_PLATFORM = "manylinux2014_x86_64"
LAMBDA_PYTHON_VERSION = "3.12"

# Imported by transire at runtime; boto3 ships with the Lambda runtime.
RUNTIME_REQUIREMENTS: tuple[str, ...] = (
    "starlette",
    "uvicorn",
    "mangum",
    "httpx",
    "structlog",
    "pyyaml",
    "pydantic",
)

Runner = Callable[[Sequence[str], Path], object]

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def run_command(args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    """Default runner: run *args* in *cwd*, raising on a non-zero exit."""
    return subprocess.run(list(args), cwd=cwd, check=True, capture_output=True, text=True)


def pip_install_command(target: Path, requirements: Sequence[str], requirements_file: Path | None = None) -> list[str]:
    args = [
        sys.executable,
        "-m",
        "pip",
        "install",
        "--target",
        str(target),
        "--platform",
        LAMBDA_PLATFORM,
        "--implementation",
        "cp",
        "--python-version",
        LAMBDA_PYTHON_VERSION,
        "--only-binary=:all:",
        "--upgrade",
        "--quiet",
    ]
    if requirements_file is not None:
        args.extend(["-r", str(requirements_file)])
    args.extend(requirements)
    return args


def _ignore_sources(directory: str, names: list[str]) -> set[str]:
    base = Path(directory)
    return {
        name
        for name in names
        if name.endswith((".pyc", ".pyo")) or ((base / name).is_dir() and is_skipped_dir(base / name))
    }


def zip_directory(source: Path, zip_path: Path) -> Path:
    """Zip *source* with fixed timestamps so identical inputs give identical archives."""
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(p for p in source.rglob("*") if p.is_file()):
            info = zipfile.ZipInfo(path.relative_to(source).as_posix(), date_time=_ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, path.read_bytes())
    return zip_path


class LambdaPackager:
    """Builds ``package.zip``: dependencies, app sources, transire, entry module."""

    def __init__(
        self,
        project_root: Path,
        entry: str,
        *,
        runner: Runner | None = None,
        log_level: str = "INFO",
    ) -> None:
        self._root = project_root
        self._entry = entry
        self._runner: Runner = runner or run_command
        self._log_level = log_level

    def package(self, lambda_dir: Path) -> Path:
        """Assemble under *lambda_dir* and return the zip path."""
        build_dir = lambda_dir / "build"
        build_dir.mkdir(parents=True, exist_ok=True)
        self.install_requirements(build_dir)
        self.copy_sources(build_dir)
        self.copy_framework(build_dir)
        render_lambda_entry(self._entry, build_dir, self._log_level)
        zip_path = zip_directory(build_dir, lambda_dir / "package.zip")
        shutil.rmtree(build_dir)
        logger.info("Lambda package written to %s", zip_path)
        return zip_path

    def install_requirements(self, build_dir: Path) -> None:
        requirements_file = self._root / "requirements.txt"
        args = pip_install_command(
            build_dir,
            RUNTIME_REQUIREMENTS,
            requirements_file if requirements_file.is_file() else None,
        )
        logger.info("Installing Lambda dependencies for %s / Python %s", LAMBDA_PLATFORM, LAMBDA_PYTHON_VERSION)
        try:
            self._runner(args, self._root)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip().splitlines()[-5:]
            raise BuildException("package", "pip install failed:\n" + "\n".join(detail)) from exc
        except FileNotFoundError as exc:
            raise BuildException("package", f"cannot run pip: {exc}") from exc

    def copy_sources(self, build_dir: Path) -> None:
        for item in sorted(self._root.iterdir()):
            if item.is_dir():
                if is_skipped_dir(item):
                    continue
                shutil.copytree(item, build_dir / item.name, ignore=_ignore_sources, dirs_exist_ok=True)
            elif item.suffix == ".py" or item.name == "transire.yaml":
                shutil.copy2(item, build_dir / item.name)

    def copy_framework(self, build_dir: Path) -> None:
        source = Path(transire.__file__).resolve().parent
        shutil.copytree(
            source,
            build_dir / "transire",
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
            dirs_exist_ok=True,
        )
