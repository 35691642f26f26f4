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
"""Transire Build — Lambda packaging and CDK generation for a discovered topology."""

from transire.build.cdk import render_cdk, render_lambda_entry
from transire.build.infra import InfraDeclaration, Rate, schedule_rate
from transire.build.package import LambdaPackager
from transire.build.pipeline import AwsBuilder, BuildResult

__all__ = [
    "AwsBuilder",
    "BuildResult",
    "InfraDeclaration",
    "LambdaPackager",
    "Rate",
    "render_cdk",
    "render_lambda_entry",
    "schedule_rate",
]
