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

"""Warm-up and measurement phases of a benchmark run.

The warm-up phase is bounded by wall-clock time rather than by an iteration
count: kernels are executed untimed until the budget has elapsed, and always
at least once. The measurement phase then runs a fixed number of timed
iterations with no early exit, retries or outlier rejection.

Example:
    >>> warmup = WarmupController(budget_ms=500, step=run_kernel).run()
    >>> series = TimingCollector(10, step=run_kernel, timer=WallClockTimer()).run()
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .timing import BaseTimer

Step = Callable[[], object]


class WarmupState(Enum):
    INIT = "init"
    RUNNING = "running"
    DONE = "done"


@dataclass(frozen=True)
class WarmupResult:
    """Outcome of the warm-up phase, reported but not used for statistics."""

    iterations: int
    elapsed_ms: float


class WarmupController:
    """Run a step repeatedly until a wall-clock budget has elapsed.

    Each pass runs ``prepare`` (input restore for destructive kernels), then
    ``step``, then ``synchronize`` so asynchronous device work is finished
    before the clock is read. The loop ends once the elapsed time reaches the
    budget and at least one pass has completed.
    """

    def __init__(
        self,
        budget_ms: float,
        step: Step,
        prepare: Optional[Step] = None,
        synchronize: Optional[Step] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.budget_ms = budget_ms
        self.step = step
        self.prepare = prepare
        self.synchronize = synchronize
        self.clock = clock
        self.state = WarmupState.INIT
        self.iterations = 0
        self.elapsed_ms = 0.0

    def run(self) -> WarmupResult:
        if self.state is not WarmupState.INIT:
            raise RuntimeError("WarmupController can only run once")

        start = self.clock()
        self.state = WarmupState.RUNNING

        while self.state is WarmupState.RUNNING:
            if self.prepare is not None:
                self.prepare()
            self.step()
            if self.synchronize is not None:
                self.synchronize()

            self.iterations += 1
            self.elapsed_ms = (self.clock() - start) * 1000.0

            if self.elapsed_ms >= self.budget_ms and self.iterations >= 1:
                self.state = WarmupState.DONE

        return WarmupResult(iterations=self.iterations, elapsed_ms=self.elapsed_ms)


class TimingCollector:
    """Time a step for a fixed number of iterations.

    ``prepare`` runs before the start timestamp of every iteration and is not
    part of the measurement.
    """

    def __init__(
        self,
        iterations: int,
        step: Step,
        timer: BaseTimer,
        prepare: Optional[Step] = None,
    ):
        if iterations < 0:
            raise ValueError("iterations must be non-negative")
        self.iterations = iterations
        self.step = step
        self.timer = timer
        self.prepare = prepare

    def run(self) -> List[float]:
        series: List[float] = []
        for _ in range(self.iterations):
            if self.prepare is not None:
                self.prepare()

            series.append(self.timer.measure(self.step))
        return series
