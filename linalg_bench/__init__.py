#
# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Latency benchmarks for batched dense linear algebra kernels.

Example:
    >>> from linalg_bench import plan_from_options, run_plan
    >>> report = run_plan(plan_from_options("syevj", {"size": 16, "backend": "host"}))
    >>> report.stats.mean
"""

from .config import BackendKind, BatchConfig, KernelParams, Layout, Precision, RunSettings
from .errors import (
    AllocationError,
    BenchmarkError,
    ConfigurationError,
    DeviceUnavailableError,
    KernelLaunchError,
)
from .harness import BenchmarkHarness, BenchmarkPlan, plan_from_options, run_plan
from .report import Report

__version__ = "0.1.0"

__all__ = [
    "BackendKind",
    "BatchConfig",
    "KernelParams",
    "Layout",
    "Precision",
    "RunSettings",
    "BenchmarkError",
    "ConfigurationError",
    "AllocationError",
    "KernelLaunchError",
    "DeviceUnavailableError",
    "BenchmarkHarness",
    "BenchmarkPlan",
    "plan_from_options",
    "run_plan",
    "Report",
]
