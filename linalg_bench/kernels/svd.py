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

"""Batched singular value decomposition (``gesvdj``).

On CUDA builds of PyTorch the cuSOLVER Jacobi driver is requested by name.
ROCm builds and the host backend use the provider's default driver.

Vector modes map onto the provider flags as follows: vectors are computed
when either side asks for them, and full square factors are computed when
either side asks for ``all``. Both sides are then returned, so a request for
one side only still pays for the other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from ..config import BatchConfig, SvectMode
from ..core import device
from ..core.matrices import GENERAL_SVD_RANGE, BatchedMatrixSet, generate_general
from .base import KernelOutputs, KernelVariant, Workspace, lapack_routine, query_lwork, slot


@dataclass
class SVDOutputs(KernelOutputs):
    """
    Attributes:
        s: Singular values, ``(batch, min(M, N))``, descending.
        u: Left singular vectors, or None when no vectors are computed.
        vh: Conjugate-transposed right singular vectors, or None.
        residual: Not reported by the provider, always None.
        sweeps: Not reported by the provider, always None.
    """

    s: Any = None
    u: Any = None
    vh: Any = None
    residual: Optional[np.ndarray] = None
    sweeps: Optional[np.ndarray] = None


class JacobiSVD(KernelVariant):
    name = "gesvdj"
    title = "Jacobi SVD"
    value_range = GENERAL_SVD_RANGE
    convergence_controls = True

    @property
    def compute_uv(self) -> bool:
        sides = (self.params.left_svect, self.params.right_svect)
        return any(mode is not SvectMode.NONE for mode in sides)

    @property
    def full_matrices(self) -> bool:
        return SvectMode.ALL in (self.params.left_svect, self.params.right_svect)

    def factor_shapes(self, config: BatchConfig) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Per-element shapes of ``u`` and ``vh``."""
        m, n, k = config.rows, config.cols, config.min_mn
        if self.full_matrices:
            return (m, m), (n, n)
        return (m, k), (k, n)

    def generate(self, config: BatchConfig, seed: int) -> BatchedMatrixSet:
        low, high = self.value_range
        return generate_general(config, seed, low, high)

    def allocate_outputs(self, config, memory) -> SVDOutputs:
        batch = config.batch_count
        outputs = SVDOutputs(
            info=np.zeros(batch, dtype=np.int32),
            s=memory.allocate((batch, config.min_mn), config.dtype),
        )
        if self.compute_uv:
            u_shape, vh_shape = self.factor_shapes(config)
            outputs.u = memory.allocate((batch,) + u_shape, config.dtype, column_major=True)
            outputs.vh = memory.allocate((batch,) + vh_shape, config.dtype, column_major=True)
        return outputs

    def device_call(self, a: Any, outputs: SVDOutputs, index: Optional[int]) -> None:
        import torch

        driver = "gesvdj" if device.uses_cusolver() else None
        s = slot(outputs.s, index)
        if self.compute_uv:
            torch.linalg.svd(
                a,
                full_matrices=self.full_matrices,
                driver=driver,
                out=(slot(outputs.u, index), s, slot(outputs.vh, index)),
            )
        else:
            torch.linalg.svdvals(a, driver=driver, out=s)

    def host_workspace(self, config: BatchConfig) -> Workspace:
        scratch = np.zeros((config.rows, config.cols), dtype=config.dtype, order="F")
        lwork = 1
        if scratch.size:
            gesvd_lwork = lapack_routine("gesvd_lwork", config.dtype)
            work, _ = gesvd_lwork(
                config.rows,
                config.cols,
                compute_uv=int(self.compute_uv),
                full_matrices=int(self.full_matrices),
            )
            lwork = query_lwork(work, config.dtype)
        return Workspace(scratch=scratch, lwork=lwork)

    def host_call(
        self, a: np.ndarray, outputs: SVDOutputs, index: int, workspace: Workspace
    ) -> int:
        scratch = workspace.scratch
        if scratch.size == 0:
            return 0

        scratch[...] = a
        gesvd = lapack_routine("gesvd", scratch.dtype)
        u, s, vt, info = gesvd(
            scratch,
            compute_uv=int(self.compute_uv),
            full_matrices=int(self.full_matrices),
            lwork=workspace.lwork,
            overwrite_a=1,
        )

        # gesvd destroys its input; keep the staged matrix in the same state.
        a[...] = scratch
        outputs.s[index][...] = s
        if self.compute_uv:
            outputs.u[index][...] = u
            outputs.vh[index][...] = vt
        return int(info)

    def report_details(self) -> Sequence[Tuple[str, str]]:
        return (
            ("Left singular vectors", self.params.left_svect.value),
            ("Right singular vectors", self.params.right_svect.value),
            ("Tolerance", f"{self.params.tolerance:e}"),
            ("Max sweeps", str(self.params.max_sweeps)),
        )
