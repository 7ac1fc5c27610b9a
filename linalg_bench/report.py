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

"""Fixed-format performance report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .config import BatchConfig, RunSettings
from .core.runner import WarmupResult
from .core.statistics import TimingStats

CLOSING_BAR = "=" * 30


def warmup_banner(budget_ms: int) -> str:
    return f"Performing warm-up for {budget_ms} ms..."


def warmup_summary(result: WarmupResult) -> str:
    return f"Completed {result.iterations} warm-up iterations in {result.elapsed_ms:.2f} ms"


@dataclass
class Report:
    """Outcome of one benchmark run.

    Attributes:
        kernel: Kernel name, e.g. ``geqrf``.
        backend_label: Human-readable backend, e.g. ``GPU - CUDA NVIDIA A100``.
        config: Batch geometry that was benchmarked.
        settings: Iterations, warm-up budget and seed.
        warmup: Completed warm-up passes and their wall-clock time.
        stats: Statistics of the timed iterations.
        details: Kernel-specific ``(label, value)`` lines.
        nonconverged_iterations: Timed iterations in which at least one batch
            element reported a nonzero info code.
    """

    kernel: str
    backend_label: str
    config: BatchConfig
    settings: RunSettings
    warmup: WarmupResult
    stats: TimingStats
    details: Sequence[Tuple[str, str]] = field(default_factory=tuple)
    nonconverged_iterations: int = 0

    def lines(self) -> List[str]:
        cfg = self.config
        lines = [
            f"===== Performance Results ({self.backend_label}) =====",
            f"Kernel: {self.kernel} ({cfg.layout.value}, {cfg.precision.value})",
            f"Matrix size: {cfg.shape_label()}",
            f"Batch count: {cfg.batch_count}",
        ]
        lines.extend(f"{label}: {value}" for label, value in self.details)
        lines.append(
            f"Warm-up time: {self.settings.warmup_ms} ms "
            f"(completed {self.warmup.iterations} iterations)"
        )
        lines.append(f"Timing iterations: {self.settings.iterations}")

        if self.stats.has_data:
            lines.append(f"Average execution time: {self.stats.mean:.3f} ms")
            lines.append(f"Standard deviation: {self.stats.std:.3f} ms")
        else:
            lines.append("Average execution time: no data")
            lines.append("Standard deviation: no data")

        if self.nonconverged_iterations:
            lines.append(
                f"Non-converged iterations: {self.nonconverged_iterations} "
                f"of {self.settings.iterations}"
            )
        lines.append(CLOSING_BAR)
        return lines

    def render(self) -> str:
        return "\n".join(self.lines())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kernel": self.kernel,
            "backend": self.backend_label,
            "config": self.config.to_dict(),
            "iterations": self.settings.iterations,
            "warmup_ms": self.settings.warmup_ms,
            "warmup_iterations": self.warmup.iterations,
            "warmup_elapsed_ms": self.warmup.elapsed_ms,
            "mean_ms": self.stats.mean,
            "std_ms": self.stats.std,
            "min_ms": self.stats.min,
            "max_ms": self.stats.max,
            "median_ms": self.stats.median,
            "details": dict(self.details),
            "nonconverged_iterations": self.nonconverged_iterations,
        }
