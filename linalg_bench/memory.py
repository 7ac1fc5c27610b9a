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
Staging and release of benchmark buffers.

The manager copies a pristine host batch into the active backend's memory
once, allocates output buffers, restores the staged input from the pristine
copy before destructive iterations, and drops every allocation when the
``with`` block exits, including on error.

Example:
    >>> with MemoryLifecycleManager(backend) as memory:
    ...     staged = memory.stage(batch)
    ...     memory.restore()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from .config import BatchConfig, Layout
from .core.matrices import BatchedMatrixSet

if TYPE_CHECKING:
    from .backends import Backend

logger = logging.getLogger(__name__)


@dataclass
class StagedBatch:
    """A batch resident in backend memory.

    Attributes:
        config: Geometry of the batch.
        buffers: Flat backend buffers, one per host buffer of the pristine set.
        elements: Column-major ``(M, N)`` view of each batch element.
        batched: ``(batch, M, N)`` view over the single buffer (strided only).
        address_table: int64 buffer of element addresses (pointer-array only).
    """

    config: BatchConfig
    buffers: List[Any]
    elements: List[Any] = field(default_factory=list)
    batched: Any = None
    address_table: Any = None


class MemoryLifecycleManager:
    """Own every buffer of one benchmark run on one backend."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self._allocations: List[Any] = []
        self._pristine: Optional[BatchedMatrixSet] = None
        self._staged: Optional[StagedBatch] = None

    def __enter__(self) -> MemoryLifecycleManager:
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    @property
    def staged(self) -> Optional[StagedBatch]:
        return self._staged

    @property
    def allocation_count(self) -> int:
        return len(self._allocations)

    def _track(self, buffer: Any) -> Any:
        self._allocations.append(buffer)
        return buffer

    def allocate(self, shape: Sequence[int], dtype: Any, column_major: bool = False) -> Any:
        """Allocate an output buffer on the backend.

        Raises:
            AllocationError: If the backend is out of memory.
        """
        return self._track(self.backend.empty(tuple(shape), dtype, column_major=column_major))

    def stage(self, pristine: BatchedMatrixSet) -> StagedBatch:
        """Copy the pristine batch into backend memory.

        The pristine set is kept, unmodified, as the source for
        :meth:`restore`.

        Raises:
            AllocationError: If the backend is out of memory.
        """
        if self._staged is not None:
            raise RuntimeError("a batch is already staged")

        config = pristine.config
        backend = self.backend
        buffers = [self._track(backend.from_host(buf)) for buf in pristine.buffers]
        staged = StagedBatch(config=config, buffers=buffers)

        if config.layout is Layout.STRIDED:
            staged.batched = backend.batched_view(buffers[0], config)
            staged.elements = [
                backend.column_major(buffers[0], config.rows, config.cols, config.lda, b * config.stride)
                for b in range(config.batch_count)
            ]
        else:
            staged.elements = [
                backend.column_major(buf, config.rows, config.cols, config.lda) for buf in buffers
            ]
            addresses = [backend.address_of(buf) for buf in buffers]
            staged.address_table = self._track(backend.address_table(addresses))

        self._pristine = pristine
        self._staged = staged
        logger.debug(
            "Staged %d matrices (%s, %d bytes) on %s",
            config.batch_count,
            config.layout.value,
            pristine.nbytes,
            backend.kind.value,
        )
        return staged

    def restore(self) -> None:
        """Overwrite the staged input with the pristine host copy."""
        if self._staged is None or self._pristine is None:
            raise RuntimeError("nothing staged to restore")
        for dst, src in zip(self._staged.buffers, self._pristine.buffers):
            self.backend.copy_from_host(dst, src)

    def _drop(self) -> None:
        self._staged = None
        self._pristine = None
        self._allocations.clear()
        self.backend.release_cached()

    def release(self) -> None:
        """Drop every allocation. Safe to call more than once."""
        if self._allocations or self._staged is not None:
            logger.debug("Releasing %d allocation(s)", len(self._allocations))
            self._drop()
