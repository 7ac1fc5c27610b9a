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
Benchmark harness.

One run is: generate the pristine batch, stage it on the backend, allocate
outputs, warm up for a wall-clock budget, time a fixed number of iterations
(restoring the input before each one), and report mean and standard
deviation. All buffers and backend resources are released on every exit
path.

Example:
    >>> plan = plan_from_options("geqrf", {"batch_count": 4, "backend": "host"})
    >>> report = run_plan(plan)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .backends import Backend, create_backend
from .config import BackendKind, BatchConfig, KernelParams, RunSettings, normalize_keys
from .core.runner import TimingCollector, WarmupController
from .core.statistics import summarize
from .errors import ConfigurationError
from .kernels import KERNELS, KernelOutputs, KernelVariant, create_kernel
from .memory import MemoryLifecycleManager, StagedBatch
from .report import Report, warmup_banner, warmup_summary

logger = logging.getLogger(__name__)

Emit = Callable[[str], Any]

COMMON_DEFAULTS: Dict[str, Any] = {
    "lda": 10,
    "stride": None,
    "batch_count": 2,
    "random_seed": 42,
    "iterations": 10,
    "warmup_time": 1000,
    "backend": BackendKind.AUTO.value,
    "layout": "strided",
    "precision": None,
    "workers": None,
    "device": 0,
}

KERNEL_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "geqrf": {"rows": 10, "cols": 10},
    "gesvdj": {
        "rows": 10,
        "cols": 8,
        "tolerance": 1e-7,
        "max_sweeps": 100,
        "left_svect": "all",
        "right_svect": "all",
    },
    "syevj": {"size": 10, "tolerance": 1e-7, "max_sweeps": 100, "driver": "ev"},
}


class BenchmarkHarness:
    """Run one kernel on one backend and report its latency.

    Args:
        kernel: Kernel strategy.
        backend: Backend strategy; entered and exited by :meth:`run`.
        config: Batch geometry.
        settings: Iterations, warm-up budget, seed.
        emit: Sink for report lines, ``print`` by default.
    """

    def __init__(
        self,
        kernel: KernelVariant,
        backend: Backend,
        config: BatchConfig,
        settings: RunSettings,
        emit: Emit = print,
    ):
        if kernel.symmetric != config.symmetric:
            raise ConfigurationError(
                f"{kernel.name} requires symmetric={kernel.symmetric} batch configuration"
            )
        self.kernel = kernel
        self.backend = backend
        self.config = config
        self.settings = settings
        self.emit = emit
        self._timing = False
        self._warned = False
        self.nonconverged_iterations = 0

    def _invoke(self, staged: StagedBatch, outputs: KernelOutputs) -> None:
        self.backend.invoke(self.kernel, staged, outputs)
        failed = outputs.failed_elements()
        if not failed:
            return

        if self._timing:
            self.nonconverged_iterations += 1
        if not self._warned:
            logger.warning(
                "%s: batch element(s) %s did not converge (info=%s); continuing",
                self.kernel.name,
                failed,
                [int(outputs.info[i]) for i in failed],
            )
            self._warned = True
        else:
            logger.debug("%s: non-converged elements %s", self.kernel.name, failed)

    def _check_convergence_controls(self) -> None:
        params, defaults = self.kernel.params, KernelParams()
        if (params.tolerance, params.max_sweeps) != (defaults.tolerance, defaults.max_sweeps):
            logger.warning(
                "%s: tolerance=%g and max_sweeps=%d are not applied by %s; "
                "the provider uses its own convergence criteria",
                self.kernel.name,
                params.tolerance,
                params.max_sweeps,
                self.backend.provider,
            )

    def run(self) -> Report:
        """Execute the full protocol.

        Raises:
            AllocationError: If staging or output allocation fails.
            KernelLaunchError: If the provider fails other than by
                non-convergence, or the device is unavailable.
        """
        kernel, backend, settings = self.kernel, self.backend, self.settings
        details = tuple(kernel.report_details())
        if kernel.convergence_controls:
            self._check_convergence_controls()
            details += (("Convergence controls", f"not applied by {backend.provider}"),)

        pristine = kernel.generate(self.config, settings.seed)
        logger.debug("Generated %s batch: %s", kernel.name, self.config.to_dict())

        with backend, MemoryLifecycleManager(backend) as memory:
            staged = memory.stage(pristine)
            outputs = kernel.allocate_outputs(self.config, memory)
            restore = memory.restore if kernel.destructive else None

            def step() -> None:
                self._invoke(staged, outputs)

            self.emit(warmup_banner(settings.warmup_ms))
            warmup = WarmupController(
                settings.warmup_ms,
                step,
                prepare=restore,
                synchronize=backend.synchronize,
            ).run()
            self.emit(warmup_summary(warmup))
            self.emit("")

            self._timing = True
            samples: List[float] = TimingCollector(
                settings.iterations, step, timer=backend.timer(), prepare=restore
            ).run()
            self._timing = False
            label = backend.label
            # Device tensors must be unreferenced before the cache is emptied.
            del staged, outputs, step

        report = Report(
            kernel=kernel.name,
            backend_label=label,
            config=self.config,
            settings=settings,
            warmup=warmup,
            stats=summarize(samples),
            details=details,
            nonconverged_iterations=self.nonconverged_iterations,
        )
        logger.info("%s latency: %s", kernel.name, report.stats.summary())
        logger.debug("Report: %s", report.to_dict())
        self.emit(report.render())
        self.emit("")
        return report


@dataclass(frozen=True)
class BenchmarkPlan:
    """A validated, ready-to-run benchmark."""

    kernel: KernelVariant
    config: BatchConfig
    settings: RunSettings
    backend: BackendKind


def _as_int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def merge_options(kernel_name: str, *layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge option layers over the built-in defaults of ``kernel_name``.

    Later layers win; None values never override. Keys are normalized to
    underscores.

    Raises:
        ConfigurationError: On an unknown kernel or option name.
    """
    if kernel_name not in KERNELS:
        raise ConfigurationError(
            f"Unknown kernel '{kernel_name}'. Choose from: {', '.join(KERNELS)}"
        )
    merged = dict(COMMON_DEFAULTS)
    merged.update(KERNEL_DEFAULTS[kernel_name])
    for layer in layers:
        if not layer:
            continue
        for key, value in normalize_keys(dict(layer)).items():
            if key not in merged:
                raise ConfigurationError(f"Unknown option '{key}' for kernel {kernel_name}")
            if value is not None:
                merged[key] = value
    return merged


def plan_from_options(kernel_name: str, *layers: Optional[Mapping[str, Any]]) -> BenchmarkPlan:
    """Validate merged options into a :class:`BenchmarkPlan`.

    Raises:
        ConfigurationError: If any value is malformed or out of range.
    """
    opts = merge_options(kernel_name, *layers)

    params = KernelParams.create(
        tolerance=_as_float("tolerance", opts.get("tolerance", 1e-7)),
        max_sweeps=_as_int("max_sweeps", opts.get("max_sweeps", 100)),
        left_svect=opts.get("left_svect", "all"),
        right_svect=opts.get("right_svect", "all"),
        eigen_driver=opts.get("driver", "ev"),
    )
    kernel = create_kernel(kernel_name, params)

    if kernel.symmetric:
        rows = cols = _as_int("size", opts["size"])
    else:
        rows = _as_int("rows", opts["rows"])
        cols = _as_int("cols", opts["cols"])

    config = BatchConfig.create(
        rows=rows,
        cols=cols,
        lda=_as_int("lda", opts["lda"]),
        stride=_as_int("stride", opts["stride"]),
        batch_count=_as_int("batch_count", opts["batch_count"]),
        layout=opts["layout"],
        precision=opts["precision"] or kernel.default_precision,
        symmetric=kernel.symmetric,
    )
    settings = RunSettings.create(
        iterations=_as_int("iterations", opts["iterations"]),
        warmup_ms=_as_int("warmup_time", opts["warmup_time"]),
        seed=_as_int("random_seed", opts["random_seed"]),
        workers=_as_int("workers", opts["workers"]),
        device=_as_int("device", opts["device"]),
    )
    try:
        backend = BackendKind(opts["backend"])
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    return BenchmarkPlan(kernel=kernel, config=config, settings=settings, backend=backend)


def run_plan(plan: BenchmarkPlan, emit: Emit = print) -> Report:
    backend = create_backend(plan.backend, plan.settings)
    return BenchmarkHarness(plan.kernel, backend, plan.config, plan.settings, emit=emit).run()
