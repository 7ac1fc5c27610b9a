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

"""Batched Householder QR factorization (``geqrf``).

The factored matrix replaces the input: R in the upper triangle, the
Householder reflectors below it, and their scalars in ``tau``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from ..config import BackendKind, BatchConfig, Precision
from ..core.matrices import GENERAL_QR_RANGE, BatchedMatrixSet, generate_general
from .base import KernelOutputs, KernelVariant, Workspace, lapack_routine, query_lwork, slot


@dataclass
class QROutputs(KernelOutputs):
    """
    Attributes:
        tau: Householder scalars, ``(batch, min(M, N))``.
        factors: Device-side factored matrices, ``(batch, M, N)`` column-major.
            Copied back over the input after each call. None on the host,
            where LAPACK factors the input in place.
    """

    tau: Any = None
    factors: Any = None


class QRFactorization(KernelVariant):
    name = "geqrf"
    title = "QR factorization"
    value_range = GENERAL_QR_RANGE
    default_precision = Precision.DOUBLE

    def generate(self, config: BatchConfig, seed: int) -> BatchedMatrixSet:
        low, high = self.value_range
        return generate_general(config, seed, low, high)

    def allocate_outputs(self, config, memory) -> QROutputs:
        batch = config.batch_count
        outputs = QROutputs(
            info=np.zeros(batch, dtype=np.int32),
            tau=memory.allocate((batch, config.min_mn), config.dtype),
        )
        if memory.backend.kind is BackendKind.DEVICE:
            outputs.factors = memory.allocate(
                (batch, config.rows, config.cols), config.dtype, column_major=True
            )
        return outputs

    def device_call(self, a: Any, outputs: QROutputs, index: Optional[int]) -> None:
        import torch

        factors = slot(outputs.factors, index)
        torch.geqrf(a, out=(factors, slot(outputs.tau, index)))
        a.copy_(factors)

    def host_workspace(self, config: BatchConfig) -> Workspace:
        scratch = np.zeros((config.rows, config.cols), dtype=config.dtype, order="F")
        lwork = 1
        if scratch.size:
            geqrf = lapack_routine("geqrf", config.dtype)
            lwork = query_lwork(geqrf(scratch, lwork=-1)[-2], config.dtype)
        return Workspace(scratch=scratch, lwork=lwork)

    def host_call(
        self, a: np.ndarray, outputs: QROutputs, index: int, workspace: Workspace
    ) -> int:
        scratch = workspace.scratch
        if scratch.size == 0:
            return 0

        scratch[...] = a
        geqrf = lapack_routine("geqrf", scratch.dtype)
        qr, tau, _, info = geqrf(scratch, lwork=workspace.lwork, overwrite_a=1)

        a[...] = qr
        outputs.tau[index][...] = tau
        return int(info)
