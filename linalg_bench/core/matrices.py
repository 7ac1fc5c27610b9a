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

"""Seeded generation of batched column-major matrices.

Matrices live in flat host buffers and are addressed the way LAPACK does:
element ``(i, j)`` of batch element ``b`` sits at ``i + j * lda`` inside its
own buffer (pointer-array layout) or at ``i + j * lda + b * stride`` inside
one shared buffer (strided layout). Views produced here never copy.

Example:
    >>> config = BatchConfig.create(rows=4, cols=3, batch_count=2)
    >>> batch = generate_general(config, seed=42)
    >>> batch.matrix(1).shape
    (4, 3)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

import numpy as np

from ..config import BatchConfig, Layout
from ..errors import AllocationError

# Historical magnitudes per kernel family.
GENERAL_QR_RANGE = (-100.0, 100.0)
GENERAL_SVD_RANGE = (-10.0, 10.0)
SYMMETRIC_RANGE = (-10.0, 10.0)
DIAGONAL_SCALE = 10.0


def host_zeros(count: int, dtype: np.dtype) -> np.ndarray:
    """Allocate a zeroed flat host buffer.

    Raises:
        AllocationError: If the host is out of memory.
    """
    try:
        return np.zeros(count, dtype=dtype)
    except MemoryError as exc:
        nbytes = count * np.dtype(dtype).itemsize
        raise AllocationError(f"Failed to allocate {nbytes} bytes of host memory") from exc


def column_major_view(
    buffer: np.ndarray, rows: int, cols: int, lda: int, offset: int = 0
) -> np.ndarray:
    """(rows, cols) view of a column-major matrix with leading dimension lda."""
    item = buffer.itemsize
    return np.lib.stride_tricks.as_strided(
        buffer[offset:], shape=(rows, cols), strides=(item, lda * item)
    )


@dataclass
class BatchedMatrixSet:
    """Host-resident batch of matrices.

    Attributes:
        config: Geometry of the batch.
        buffers: One flat buffer for the strided layout, or ``batch_count``
            independently allocated buffers for the pointer-array layout.
    """

    config: BatchConfig
    buffers: List[np.ndarray]

    @classmethod
    def zeros(cls, config: BatchConfig) -> BatchedMatrixSet:
        if config.layout is Layout.STRIDED:
            buffers = [host_zeros(config.extent, config.dtype)]
        else:
            buffers = [
                host_zeros(config.matrix_elements, config.dtype)
                for _ in range(config.batch_count)
            ]
        return cls(config=config, buffers=buffers)

    def matrix(self, index: int) -> np.ndarray:
        """Writable column-major view of batch element ``index``."""
        cfg = self.config
        if not 0 <= index < cfg.batch_count:
            raise IndexError(f"batch index {index} out of range")
        if cfg.layout is Layout.STRIDED:
            return column_major_view(
                self.buffers[0], cfg.rows, cfg.cols, cfg.lda, offset=index * cfg.stride
            )
        return column_major_view(self.buffers[index], cfg.rows, cfg.cols, cfg.lda)

    def matrices(self) -> Iterator[np.ndarray]:
        for index in range(self.config.batch_count):
            yield self.matrix(index)

    @property
    def nbytes(self) -> int:
        return sum(buf.nbytes for buf in self.buffers)

    def tobytes(self) -> bytes:
        """Raw content of every buffer, concatenated in address order."""
        return b"".join(buf.tobytes() for buf in self.buffers)


def generate_general(
    config: BatchConfig,
    seed: int,
    low: float = GENERAL_QR_RANGE[0],
    high: float = GENERAL_QR_RANGE[1],
) -> BatchedMatrixSet:
    """Fill a batch with uniform random values in ``[low, high)``.

    Values are drawn batch element first, then row, then column, so the
    content depends only on the seed and the geometry, never on the backend.

    Args:
        config: Batch geometry.
        seed: Seed for ``numpy.random.default_rng``.
        low: Lower bound of the uniform distribution.
        high: Upper bound of the uniform distribution.

    Returns:
        Newly allocated host batch; padding rows and gaps are zero.
    """
    rng = np.random.default_rng(seed)
    batch = BatchedMatrixSet.zeros(config)
    values = rng.uniform(low, high, size=(config.batch_count, config.rows, config.cols))

    for index in range(config.batch_count):
        batch.matrix(index)[...] = values[index]
    return batch


def generate_symmetric(
    config: BatchConfig,
    seed: int,
    low: float = SYMMETRIC_RANGE[0],
    high: float = SYMMETRIC_RANGE[1],
    diagonal_scale: float = DIAGONAL_SCALE,
) -> BatchedMatrixSet:
    """Fill a batch with random symmetric matrices.

    For each row ``i`` the diagonal is drawn first and scaled by
    ``diagonal_scale``, then the strictly upper entries ``(i, j > i)`` are
    drawn and mirrored to ``(j, i)``. That is the row-major order of
    ``numpy.triu_indices``. The scaled diagonal keeps Jacobi sweeps short.

    Raises:
        ValueError: If the configuration is not square.
    """
    if config.rows != config.cols:
        raise ValueError("symmetric generation requires rows == cols")

    n = config.cols
    rng = np.random.default_rng(seed)
    batch = BatchedMatrixSet.zeros(config)

    upper_i, upper_j = np.triu_indices(n)
    values = rng.uniform(low, high, size=(config.batch_count, upper_i.size))
    values[:, upper_i == upper_j] *= diagonal_scale
    values = values.astype(config.dtype)

    for index in range(config.batch_count):
        a = batch.matrix(index)
        a[upper_i, upper_j] = values[index]
        a[upper_j, upper_i] = values[index]
    return batch
