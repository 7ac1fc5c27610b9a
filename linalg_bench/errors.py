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

"""Exception hierarchy for the benchmark harness.

Numerical non-convergence is not an exception: it is reported through the
per-element ``info`` codes of :class:`linalg_bench.kernels.KernelOutputs`.
"""


class BenchmarkError(Exception):
    """Base class for every failure raised by the harness."""


class ConfigurationError(BenchmarkError, ValueError):
    """Malformed or inconsistent benchmark configuration."""


class AllocationError(BenchmarkError):
    """A host or device buffer could not be allocated."""


class KernelLaunchError(BenchmarkError, RuntimeError):
    """The kernel provider failed for a reason other than non-convergence."""


class DeviceUnavailableError(KernelLaunchError):
    """The device backend was requested but no accelerator is usable."""
