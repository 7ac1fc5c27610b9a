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

"""Measurement building blocks.

- **matrices**: seeded batched matrix generation (generate_general, generate_symmetric)
- **timing**: timer implementations (WallClockTimer, CUDATimer)
- **runner**: time-bounded warm-up and fixed-iteration timing (WarmupController, TimingCollector)
- **statistics**: mean and population standard deviation (TimingStats)
- **device**: accelerator helpers (require_device, sync_device, release_cached_memory)

Example:
    >>> from linalg_bench.core import TimingCollector, WallClockTimer, summarize
    >>> series = TimingCollector(10, step=run_kernel, timer=WallClockTimer()).run()
    >>> print(summarize(series).summary())
"""

from .device import (
    device_label,
    get_device_count,
    is_device_available,
    release_cached_memory,
    require_device,
    sync_device,
)
from .matrices import BatchedMatrixSet, generate_general, generate_symmetric
from .runner import TimingCollector, WarmupController, WarmupResult
from .statistics import TimingStats, summarize
from .timing import BaseTimer, CUDATimer, WallClockTimer

__all__ = [
    # Matrices
    "BatchedMatrixSet",
    "generate_general",
    "generate_symmetric",
    # Timing
    "BaseTimer",
    "WallClockTimer",
    "CUDATimer",
    # Runner
    "WarmupController",
    "WarmupResult",
    "TimingCollector",
    # Statistics
    "TimingStats",
    "summarize",
    # Device
    "is_device_available",
    "get_device_count",
    "require_device",
    "sync_device",
    "release_cached_memory",
    "device_label",
]
