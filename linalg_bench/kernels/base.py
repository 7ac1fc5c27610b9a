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
Kernel strategy interface.

A :class:`KernelVariant` knows how to generate its inputs, which output
buffers it needs, and how to call the numerical provider for one batch
(device) or one batch element (host). Backends own the dispatch; kernels own
the call contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import lapack

from ..config import BatchConfig, KernelParams, Precision
from ..core.matrices import BatchedMatrixSet

if TYPE_CHECKING:
    from ..memory import MemoryLifecycleManager


@dataclass
class KernelOutputs:
    """Output buffers shared by every kernel.

    Attributes:
        info: Host int32 array, one code per batch element. ``0`` means the
            element converged; anything else is non-convergence.
    """

    info: np.ndarray

    def failed_elements(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.info)]

    def reset_info(self) -> None:
        self.info[...] = 0


@dataclass
class Workspace:
    """Private scratch space of one host worker.

    Attributes:
        scratch: Fortran-ordered matrix the provider factors in place.
        lwork: LAPACK workspace size from a workspace query.
        liwork: Integer workspace size, for drivers that need one.
    """

    scratch: Optional[np.ndarray]
    lwork: int = 1
    liwork: Optional[int] = None

    def release(self) -> None:
        self.scratch = None

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()


@lru_cache(maxsize=None)
def lapack_routine(name: str, dtype: np.dtype) -> Any:
    """LAPACK routine ``name`` for real ``dtype``, e.g. ``sgeqrf`` for float32."""
    (routine,) = lapack.get_lapack_funcs((name,), dtype=np.dtype(dtype))
    return routine


def query_lwork(value: Any, dtype: np.dtype) -> int:
    """Convert a LAPACK workspace-query result to an integer size.

    Single-precision queries report the size as a float32, which can round
    below the true value, so the result is nudged up first.
    """
    value = np.real(np.asarray(value).ravel()[0])
    if np.dtype(dtype) == np.float32:
        value = np.nextafter(np.float32(value), np.float32(np.inf))
    return max(1, int(np.ceil(value)))


class KernelVariant(ABC):
    """One benchmarked numerical operation.

    Class attributes:
        name: CLI name of the kernel.
        symmetric: Inputs are square symmetric matrices.
        destructive: The provider contract overwrites the input matrix, so it
            is restored before every iteration.
        value_range: Uniform range used by the matrix generator.
        default_precision: Precision when none is configured.
        convergence_controls: Accepts a Jacobi tolerance and sweep limit.
            Neither provider exposes them, so they are reported but not
            applied.
    """

    name: str = ""
    title: str = ""
    symmetric: bool = False
    destructive: bool = True
    convergence_controls: bool = False
    value_range: Tuple[float, float] = (-10.0, 10.0)
    default_precision: Precision = Precision.SINGLE

    def __init__(self, params: Optional[KernelParams] = None):
        self.params = params or KernelParams()

    @abstractmethod
    def generate(self, config: BatchConfig, seed: int) -> BatchedMatrixSet:
        """Create the pristine host input batch."""

    @abstractmethod
    def allocate_outputs(
        self, config: BatchConfig, memory: MemoryLifecycleManager
    ) -> KernelOutputs:
        """Allocate output buffers once on the active backend."""

    @abstractmethod
    def device_call(self, a: Any, outputs: KernelOutputs, index: Optional[int]) -> None:
        """Enqueue the provider call on the device.

        Args:
            a: Column-major tensor view, ``(batch, M, N)`` when ``index`` is
                None, otherwise the ``(M, N)`` matrix of element ``index``.
            outputs: Output buffers; element ``index`` is written when given.
            index: Batch element for per-element (pointer-array) calls.
        """

    @abstractmethod
    def host_workspace(self, config: BatchConfig) -> Workspace:
        """Allocate one worker's private workspace."""

    @abstractmethod
    def host_call(
        self, a: np.ndarray, outputs: KernelOutputs, index: int, workspace: Workspace
    ) -> int:
        """Process one batch element on the host and return its info code.

        ``a`` is overwritten with the provider's in-place result.
        """

    def report_details(self) -> Sequence[Tuple[str, str]]:
        """Kernel-specific ``(label, value)`` lines for the report."""
        return ()


def slot(buffer: Any, index: Optional[int]) -> Any:
    """The whole buffer, or the slice of one batch element."""
    if buffer is None or index is None:
        return buffer
    return buffer[index]
