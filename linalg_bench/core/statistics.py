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

"""Reduction of a timing series to summary statistics.

The timed iterations are treated as the whole population of interest, so the
standard deviation uses divisor N (``ddof=0``), not N - 1.

Example:
    >>> stats = TimingStats.from_samples([1.0, 2.0, 3.0])
    >>> stats.mean, round(stats.std, 4)
    (2.0, 0.8165)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class TimingStats:
    """Immutable summary of a timing series. All values are milliseconds.

    Attributes:
        mean: Arithmetic mean.
        std: Population standard deviation (ddof=0).
        min: Fastest iteration.
        max: Slowest iteration.
        median: 50th percentile.
        n_samples: Length of the series.
        raw_samples: The series itself, in iteration order.
    """

    mean: float
    std: float
    min: float
    max: float
    median: float
    n_samples: int
    raw_samples: tuple = field(default_factory=tuple, repr=False)

    @classmethod
    def from_samples(cls, samples: Sequence[float]) -> TimingStats:
        """Compute statistics from a timing series.

        Raises:
            ValueError: If samples is empty.
        """
        if len(samples) == 0:
            raise ValueError("Cannot compute statistics from empty samples")

        arr = np.asarray(samples, dtype=np.float64)
        return cls(
            mean=float(np.mean(arr)),
            std=float(np.std(arr, ddof=0)),
            min=float(np.min(arr)),
            max=float(np.max(arr)),
            median=float(np.median(arr)),
            n_samples=len(arr),
            raw_samples=tuple(float(s) for s in samples),
        )

    @classmethod
    def empty(cls) -> TimingStats:
        """Placeholder for a run that produced no samples."""
        nan = math.nan
        return cls(mean=nan, std=nan, min=nan, max=nan, median=nan, n_samples=0)

    @property
    def has_data(self) -> bool:
        return self.n_samples > 0

    def summary(self, unit: str = "ms") -> str:
        """Return e.g. ``"10.500 +/- 0.300 ms (median=10.400, n=10)"``."""
        if not self.has_data:
            return "no data"
        return (
            f"{self.mean:.3f} +/- {self.std:.3f} {unit} "
            f"(median={self.median:.3f}, n={self.n_samples})"
        )


def summarize(samples: Sequence[float]) -> TimingStats:
    """Like :meth:`TimingStats.from_samples` but empty series yield ``empty()``."""
    if len(samples) == 0:
        return TimingStats.empty()
    return TimingStats.from_samples(samples)
