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

"""Shared test fixtures for linalg_bench tests."""

import pytest

from linalg_bench.config import BatchConfig, RunSettings
from linalg_bench.backends import HostBackend


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "gpu: tests that require GPU/CUDA (deselect with '-m \"not gpu\"')"
    )
    config.addinivalue_line(
        "markers", "nogpu: tests that require a machine without CUDA"
    )


def is_cuda_available():
    """Check if CUDA is available for GPU tests."""
    try:
        import torch

        return torch.cuda.is_available()
    except ImportError:
        return False


def pytest_collection_modifyitems(config, items):
    """Skip GPU tests without CUDA, and no-GPU tests when CUDA is present."""
    if is_cuda_available():
        skip = pytest.mark.skip(reason="requires a machine without CUDA")
        marker = "nogpu"
    else:
        skip = pytest.mark.skip(reason="CUDA not available")
        marker = "gpu"
    for item in items:
        if marker in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def sample_timings():
    """Sample timing data for statistics tests."""
    return [10.5, 11.2, 10.8, 11.0, 10.9, 11.1, 10.7, 11.3, 10.6, 11.0]


@pytest.fixture
def quick_settings():
    """Run settings that keep host benchmarks fast."""
    return RunSettings.create(iterations=3, warmup_ms=0, seed=42, workers=2)


@pytest.fixture
def host_backend(quick_settings):
    """An opened host backend, closed after the test."""
    with HostBackend(quick_settings) as backend:
        yield backend


@pytest.fixture
def small_config():
    """Two padded 4 x 3 double-precision matrices."""
    return BatchConfig.create(rows=4, cols=3, lda=5, batch_count=2, precision="double")
