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

"""
Run several benchmark configurations from one YAML file.

Example suite::

    defaults:
      backend: host
      iterations: 20
    runs:
      - kernel: geqrf
        rows: 64
        cols: 64
      - kernel: syevj
        size: 32
        driver: evd

Keys use the command-line option names (``batch-count`` or
``batch_count``). A ``defaults`` key that does not apply to a run's kernel is
ignored for that run; an unknown key inside a run is an error. Every run is
validated before the first one starts.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .config import load_yaml_mapping, normalize_keys
from .errors import ConfigurationError
from .harness import COMMON_DEFAULTS, KERNEL_DEFAULTS, BenchmarkPlan, Emit, plan_from_options, run_plan
from .report import Report

logger = logging.getLogger(__name__)


def _applicable(kernel_name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    known = set(COMMON_DEFAULTS) | set(KERNEL_DEFAULTS[kernel_name])
    return {key: value for key, value in defaults.items() if key in known}


def load_suite(path: Union[str, Path]) -> List[BenchmarkPlan]:
    """Parse and validate every run of a suite file.

    Raises:
        ConfigurationError: If the file or any run is invalid.
    """
    data = load_yaml_mapping(path)

    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigurationError(f"{path}: 'defaults' must be a mapping")
    defaults = normalize_keys(defaults)

    runs = data.get("runs")
    if not isinstance(runs, list) or not runs:
        raise ConfigurationError(f"{path}: 'runs' must be a non-empty list")

    plans = []
    for position, run in enumerate(runs, start=1):
        if not isinstance(run, dict):
            raise ConfigurationError(f"{path}: run {position} must be a mapping")
        run = normalize_keys(run)
        kernel_name = run.pop("kernel", None)
        if kernel_name not in KERNEL_DEFAULTS:
            raise ConfigurationError(
                f"{path}: run {position} needs 'kernel' set to one of "
                f"{', '.join(KERNEL_DEFAULTS)}"
            )
        try:
            plans.append(plan_from_options(kernel_name, _applicable(kernel_name, defaults), run))
        except ConfigurationError as exc:
            raise ConfigurationError(f"{path}: run {position}: {exc}") from exc

    logger.info("Loaded %d run(s) from %s", len(plans), path)
    return plans


def run_suite(plans: List[BenchmarkPlan], emit: Emit = print) -> List[Report]:
    """Run plans sequentially; each run stages and releases its own buffers."""
    reports = []
    for position, plan in enumerate(plans, start=1):
        logger.info("Suite run %d/%d: %s %s", position, len(plans), plan.kernel.name, plan.config.shape_label())
        reports.append(run_plan(plan, emit=emit))
    return reports
