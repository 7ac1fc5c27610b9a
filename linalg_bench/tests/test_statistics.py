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

"""Tests for linalg_bench.core.statistics module."""

import math

import numpy as np
import pytest

from linalg_bench.core.statistics import TimingStats, summarize


class TestTimingStats:
    """Tests for TimingStats."""

    def test_from_samples_matches_numpy(self, sample_timings):
        """Mean and std match a direct recomputation."""
        stats = TimingStats.from_samples(sample_timings)

        assert stats.mean == pytest.approx(np.mean(sample_timings))
        assert stats.std == pytest.approx(np.std(sample_timings))
        assert stats.min == min(sample_timings)
        assert stats.max == max(sample_timings)
        assert stats.n_samples == len(sample_timings)

    def test_population_std(self):
        """Standard deviation divides by n, not n - 1."""
        stats = TimingStats.from_samples([1.0, 3.0])

        assert stats.mean == 2.0
        assert stats.std == 1.0

    def test_equal_samples_have_zero_std(self):
        """Identical timings give zero deviation."""
        stats = TimingStats.from_samples([5.0] * 8)

        assert stats.mean == 5.0
        assert stats.std == 0.0

    def test_single_sample(self):
        """One sample is enough."""
        stats = TimingStats.from_samples([2.5])

        assert stats.mean == 2.5
        assert stats.std == 0.0
        assert stats.median == 2.5

    def test_empty_raises(self):
        """from_samples refuses an empty series."""
        with pytest.raises(ValueError, match="empty"):
            TimingStats.from_samples([])

    def test_raw_samples_kept_in_order(self):
        """raw_samples preserves iteration order."""
        stats = TimingStats.from_samples([3.0, 1.0, 2.0])

        assert stats.raw_samples == (3.0, 1.0, 2.0)

    def test_summary(self):
        """summary() formats three decimals."""
        stats = TimingStats.from_samples([1.0, 3.0])

        assert stats.summary() == "2.000 +/- 1.000 ms (median=2.000, n=2)"


class TestSummarize:
    """Tests for summarize."""

    def test_empty_series(self):
        """Empty series give a well-defined 'no data' result."""
        stats = summarize([])

        assert not stats.has_data
        assert stats.n_samples == 0
        assert math.isnan(stats.mean)
        assert stats.summary() == "no data"

    def test_non_empty_series(self, sample_timings):
        """Non-empty series defer to from_samples."""
        assert summarize(sample_timings) == TimingStats.from_samples(sample_timings)
