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

"""Batched symmetric eigendecomposition (``syevj``).

Eigenvalues are ascending and eigenvectors are always computed from the
upper triangle. As with LAPACK ``?syev``, the input matrix is replaced by the
eigenvectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from ..config import BackendKind, BatchConfig, EigenDriver
from ..core.matrices import DIAGONAL_SCALE, SYMMETRIC_RANGE, BatchedMatrixSet, generate_symmetric
from .base import KernelOutputs, KernelVariant, Workspace, lapack_routine, query_lwork, slot


@dataclass
class EigenOutputs(KernelOutputs):
    """
    Attributes:
        w: Eigenvalues, ``(batch, N)``, ascending.
        v: Device-side eigenvectors, ``(batch, N, N)`` column-major, copied
            back over the input. None on the host.
        residual: Not reported by the provider, always None.
        sweeps: Not reported by the provider, always None.
    """

    w: Any = None
    v: Any = None
    residual: Optional[np.ndarray] = None
    sweeps: Optional[np.ndarray] = None


class JacobiEigen(KernelVariant):
    name = "syevj"
    title = "Jacobi symmetric eigensolver"
    symmetric = True
    value_range = SYMMETRIC_RANGE
    convergence_controls = True

    def generate(self, config: BatchConfig, seed: int) -> BatchedMatrixSet:
        low, high = self.value_range
        return generate_symmetric(config, seed, low, high, DIAGONAL_SCALE)

    def allocate_outputs(self, config, memory) -> EigenOutputs:
        batch, n = config.batch_count, config.cols
        outputs = EigenOutputs(
            info=np.zeros(batch, dtype=np.int32),
            w=memory.allocate((batch, n), config.dtype),
        )
        if memory.backend.kind is BackendKind.DEVICE:
            outputs.v = memory.allocate((batch, n, n), config.dtype, column_major=True)
        return outputs

    def device_call(self, a: Any, outputs: EigenOutputs, index: Optional[int]) -> None:
        import torch

        v = slot(outputs.v, index)
        torch.linalg.eigh(a, UPLO="U", out=(slot(outputs.w, index), v))
        a.copy_(v)

    def host_workspace(self, config: BatchConfig) -> Workspace:
        n, dtype = config.cols, config.dtype
        scratch = np.zeros((n, n), dtype=dtype, order="F")
        if n == 0:
            return Workspace(scratch=scratch)

        if self.params.eigen_driver is EigenDriver.EVD:
            work, iwork, _ = lapack_routine("syevd_lwork", dtype)(n, compute_v=1, lower=0)
            return Workspace(
                scratch=scratch,
                lwork=query_lwork(work, dtype),
                liwork=query_lwork(iwork, np.int32),
            )

        work, _ = lapack_routine("syev_lwork", dtype)(n, lower=0)
        return Workspace(scratch=scratch, lwork=query_lwork(work, dtype))

    def host_call(
        self, a: np.ndarray, outputs: EigenOutputs, index: int, workspace: Workspace
    ) -> int:
        scratch = workspace.scratch
        if scratch.size == 0:
            return 0

        scratch[...] = a
        if self.params.eigen_driver is EigenDriver.EVD:
            syevd = lapack_routine("syevd", scratch.dtype)
            w, v, info = syevd(
                scratch,
                compute_v=1,
                lower=0,
                lwork=workspace.lwork,
                liwork=workspace.liwork,
                overwrite_a=1,
            )
        else:
            syev = lapack_routine("syev", scratch.dtype)
            w, v, info = syev(
                scratch, compute_v=1, lower=0, lwork=workspace.lwork, overwrite_a=1
            )

        a[...] = v
        outputs.w[index][...] = w
        return int(info)

    def report_details(self) -> Sequence[Tuple[str, str]]:
        return (
            ("Tolerance", f"{self.params.tolerance:e}"),
            ("Max sweeps", str(self.params.max_sweeps)),
        )
