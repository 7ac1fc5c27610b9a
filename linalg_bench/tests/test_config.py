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

"""Tests for linalg_bench.config module."""

import logging
import os

import numpy as np
import pytest

from linalg_bench.config import (
    BatchConfig,
    EigenDriver,
    KernelParams,
    Layout,
    Precision,
    RunSettings,
    SvectMode,
    load_yaml_mapping,
    normalize_keys,
)
from linalg_bench.errors import ConfigurationError


class TestBatchConfig:
    """Tests for BatchConfig.create."""

    def test_default_stride(self):
        """Stride defaults to lda * cols."""
        config = BatchConfig.create(rows=10, cols=8, lda=12, batch_count=2)

        assert config.stride == 12 * 8

    def test_explicit_stride_overrides(self):
        """An explicit stride is kept exactly."""
        config = BatchConfig.create(rows=4, cols=4, stride=100, batch_count=2)

        assert config.stride == 100
        assert config.extent == 100 + 16

    def test_default_lda(self):
        """lda defaults to the row count."""
        assert BatchConfig.create(rows=7, cols=3).lda == 7

    def test_lda_clamped_to_rows(self, caplog):
        """A too small lda is raised to M and logged."""
        with caplog.at_level(logging.INFO, logger="linalg_bench.config"):
            config = BatchConfig.create(rows=20, cols=4, lda=10)

        assert config.lda == 20
        assert "lda=10" in caplog.text

    def test_symmetric_lda_governed_by_cols(self):
        """Symmetric matrices clamp lda to N."""
        config = BatchConfig.create(rows=16, cols=16, lda=4, symmetric=True)

        assert config.lda == 16

    def test_overlapping_stride_warns(self, caplog):
        """A stride below lda * cols is accepted with a warning."""
        with caplog.at_level(logging.WARNING, logger="linalg_bench.config"):
            config = BatchConfig.create(rows=4, cols=4, stride=8, batch_count=3)

        assert config.stride == 8
        assert config.extent == 2 * 8 + 16
        assert "overlap" in caplog.text

    def test_zero_batch(self):
        """batch_count = 0 is legal and spans nothing."""
        config = BatchConfig.create(rows=4, cols=4, batch_count=0)

        assert config.extent == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"rows": -1, "cols": 2},
            {"rows": 2, "cols": -1},
            {"rows": 2, "cols": 2, "batch_count": -1},
            {"rows": 2, "cols": 2, "lda": -3},
            {"rows": 2, "cols": 2, "stride": -3},
        ],
    )
    def test_negative_values_rejected(self, kwargs):
        """Negative sizes raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="non-negative"):
            BatchConfig.create(**kwargs)

    def test_configuration_error_is_value_error(self):
        """ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            BatchConfig.create(rows=-1, cols=1)

    def test_symmetric_requires_square(self):
        """Symmetric batches must be square."""
        with pytest.raises(ConfigurationError, match="square"):
            BatchConfig.create(rows=3, cols=4, symmetric=True)

    def test_unknown_layout(self):
        """Unknown layout names are rejected."""
        with pytest.raises(ConfigurationError):
            BatchConfig.create(rows=2, cols=2, layout="interleaved")

    def test_string_enums_converted(self):
        """Layout and precision accept their string values."""
        config = BatchConfig.create(rows=2, cols=2, layout="pointer-array", precision="single")

        assert config.layout is Layout.POINTER_ARRAY
        assert config.precision is Precision.SINGLE
        assert config.dtype == np.float32

    def test_derived_sizes(self):
        """min_mn, matrix_elements and shape_label."""
        config = BatchConfig.create(rows=10, cols=8, lda=12)

        assert config.min_mn == 8
        assert config.matrix_elements == 96
        assert config.shape_label() == "10 x 8"

    def test_to_dict(self):
        """to_dict uses plain values."""
        data = BatchConfig.create(rows=2, cols=3).to_dict()

        assert data["layout"] == "strided"
        assert data["precision"] == "double"
        assert data["rows"] == 2


class TestRunSettings:
    """Tests for RunSettings.create."""

    def test_defaults(self):
        """Historical defaults."""
        settings = RunSettings.create()

        assert settings.iterations == 10
        assert settings.warmup_ms == 1000
        assert settings.seed == 42

    def test_workers_default_to_cpu_count(self):
        """workers=None uses the CPU count."""
        assert RunSettings.create().workers == (os.cpu_count() or 1)

    def test_iterations_must_be_positive(self):
        """At least one timed iteration is required."""
        with pytest.raises(ConfigurationError, match="iterations"):
            RunSettings.create(iterations=0)

    def test_workers_must_be_positive(self):
        """The worker pool needs at least one thread."""
        with pytest.raises(ConfigurationError, match="workers"):
            RunSettings.create(workers=0)

    def test_seed_must_be_non_negative(self):
        """The generator only accepts non-negative seeds."""
        with pytest.raises(ConfigurationError, match="seed"):
            RunSettings.create(seed=-1)

        assert RunSettings.create(seed=0).seed == 0

    def test_negative_warmup_allowed(self):
        """A negative warm-up budget still means one warm-up pass."""
        assert RunSettings.create(warmup_ms=-5).warmup_ms == -5


class TestKernelParams:
    """Tests for KernelParams.create."""

    def test_defaults(self):
        """Jacobi defaults."""
        params = KernelParams.create()

        assert params.tolerance == 1e-7
        assert params.max_sweeps == 100
        assert params.left_svect is SvectMode.ALL
        assert params.eigen_driver is EigenDriver.EV

    def test_string_modes(self):
        """Vector modes and drivers accept strings."""
        params = KernelParams.create(left_svect="none", right_svect="singular", eigen_driver="evd")

        assert params.left_svect is SvectMode.NONE
        assert params.right_svect is SvectMode.SINGULAR
        assert params.eigen_driver is EigenDriver.EVD

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tolerance": -1.0},
            {"max_sweeps": 0},
            {"left_svect": "some"},
            {"eigen_driver": "evr"},
        ],
    )
    def test_invalid_values(self, kwargs):
        """Invalid knobs raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            KernelParams.create(**kwargs)


class TestYamlLoading:
    """Tests for load_yaml_mapping."""

    def test_loads_and_normalizes(self, tmp_path):
        """Dashed keys become underscored."""
        path = tmp_path / "bench.yaml"
        path.write_text("batch-count: 4\nrows: 16\n")

        assert load_yaml_mapping(path) == {"batch_count": 4, "rows": 16}

    def test_missing_file(self, tmp_path):
        """Missing files raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_yaml_mapping(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Unparsable YAML raises ConfigurationError."""
        path = tmp_path / "bad.yaml"
        path.write_text("rows: [1, 2\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml_mapping(path)

    def test_empty_file(self, tmp_path):
        """Empty files raise ConfigurationError."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="Empty"):
            load_yaml_mapping(path)

    def test_not_a_mapping(self, tmp_path):
        """A top-level list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_mapping(path)

    def test_normalize_keys(self):
        """normalize_keys only rewrites dashes."""
        assert normalize_keys({"warmup-time": 1, "lda": 2}) == {"warmup_time": 1, "lda": 2}
