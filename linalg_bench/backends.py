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
Execution backends.

A backend owns the memory primitives used by
:class:`~linalg_bench.memory.MemoryLifecycleManager` and dispatches a kernel
over a staged batch:

- :class:`DeviceBackend` keeps buffers in accelerator memory as PyTorch
  tensors. Strided batches are one batched provider call; pointer-array
  batches are one call per element, all on the current stream.
- :class:`HostBackend` keeps buffers in NumPy arrays and fans the batch out
  over a thread pool, one private LAPACK workspace per chunk, with BLAS
  threading pinned to one thread.

Backends are context managers; the host pool and BLAS limits live for the
duration of the ``with`` block.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any, Optional, Sequence, Tuple, Union

import numpy as np
from threadpoolctl import threadpool_limits

from .config import BackendKind, BatchConfig, RunSettings
from .core import device
from .core.matrices import column_major_view, host_zeros
from .core.timing import BaseTimer, CUDATimer, WallClockTimer
from .errors import AllocationError, ConfigurationError, KernelLaunchError

if TYPE_CHECKING:
    from .kernels import KernelOutputs, KernelVariant
    from .memory import StagedBatch

logger = logging.getLogger(__name__)

_BATCH_ELEMENT_RE = re.compile(r"Batch element (\d+)")
_ERROR_CODE_RE = re.compile(r"error code: (\d+)")


class Backend(ABC):
    """Memory primitives, clock and dispatch of one execution target."""

    kind: BackendKind
    provider: str = ""

    def __init__(self, settings: RunSettings):
        self.settings = settings
        self._stack: Optional[ExitStack] = None

    def __enter__(self) -> Backend:
        self._stack = ExitStack()
        try:
            self.open(self._stack)
        except BaseException:
            self._stack.close()
            self._stack = None
            raise
        return self

    def __exit__(self, *args: Any) -> None:
        if self._stack is not None:
            self._stack.close()
            self._stack = None

    def open(self, stack: ExitStack) -> None:
        """Acquire per-run resources; cleanups are pushed onto ``stack``."""

    @property
    @abstractmethod
    def label(self) -> str:
        """Backend name shown in the report header."""

    @abstractmethod
    def empty(self, shape: Tuple[int, ...], dtype: Any, column_major: bool = False) -> Any:
        """Uninitialized buffer; ``column_major`` lays out the last two axes by column."""

    @abstractmethod
    def from_host(self, array: np.ndarray) -> Any:
        """New backend buffer holding a copy of a flat host array."""

    @abstractmethod
    def copy_from_host(self, dst: Any, src: np.ndarray) -> None:
        pass

    @abstractmethod
    def column_major(self, buffer: Any, rows: int, cols: int, lda: int, offset: int = 0) -> Any:
        pass

    @abstractmethod
    def batched_view(self, buffer: Any, config: BatchConfig) -> Any:
        """``(batch, M, N)`` view of a strided buffer."""

    @abstractmethod
    def address_of(self, buffer: Any) -> int:
        pass

    @abstractmethod
    def address_table(self, addresses: Sequence[int]) -> Any:
        """int64 buffer of element addresses, resident on the backend."""

    def release_cached(self) -> None:
        pass

    def synchronize(self) -> None:
        pass

    @abstractmethod
    def timer(self) -> BaseTimer:
        pass

    def invoke(
        self, kernel: KernelVariant, staged: StagedBatch, outputs: KernelOutputs
    ) -> KernelOutputs:
        """Run ``kernel`` over every element of the staged batch.

        Per-element non-convergence is written to ``outputs.info`` and is not
        an error.

        Raises:
            KernelLaunchError: If the provider fails for any other reason.
            AllocationError: If the provider runs out of memory.
        """
        outputs.reset_info()
        config = staged.config
        if config.batch_count == 0 or config.rows == 0 or config.cols == 0:
            return outputs

        self._dispatch(kernel, staged, outputs)
        return outputs

    @abstractmethod
    def _dispatch(
        self, kernel: KernelVariant, staged: StagedBatch, outputs: KernelOutputs
    ) -> None:
        pass


class DeviceBackend(Backend):
    """Accelerator backend built on PyTorch CUDA tensors."""

    kind = BackendKind.DEVICE
    provider = "torch.linalg"

    def open(self, stack: ExitStack) -> None:
        device.require_device(self.settings.device)
        stack.callback(device.release_cached_memory)
        logger.info("Using %s", self.label)

    @property
    def label(self) -> str:
        return device.device_label(self.settings.device)

    @property
    def torch_device(self) -> Any:
        import torch

        return torch.device("cuda", self.settings.device)

    def _torch_dtype(self, dtype: Any) -> Any:
        import torch

        return torch.from_numpy(np.empty(0, dtype=dtype)).dtype

    def empty(self, shape: Tuple[int, ...], dtype: Any, column_major: bool = False) -> Any:
        import torch

        shape = tuple(shape)
        if column_major and len(shape) >= 2:
            alloc_shape = shape[:-2] + (shape[-1], shape[-2])
        else:
            alloc_shape = shape
        try:
            buffer = torch.empty(
                alloc_shape, dtype=self._torch_dtype(dtype), device=self.torch_device
            )
        except torch.cuda.OutOfMemoryError as exc:
            raise AllocationError(f"Failed to allocate device buffer of shape {shape}") from exc
        if column_major and len(shape) >= 2:
            buffer = buffer.transpose(-2, -1)
        return buffer

    def from_host(self, array: np.ndarray) -> Any:
        import torch

        buffer = self.empty(array.shape, array.dtype)
        buffer.copy_(torch.from_numpy(array))
        return buffer

    def copy_from_host(self, dst: Any, src: np.ndarray) -> None:
        import torch

        dst.copy_(torch.from_numpy(src))

    def column_major(self, buffer: Any, rows: int, cols: int, lda: int, offset: int = 0) -> Any:
        import torch

        return torch.as_strided(buffer, (rows, cols), (1, lda), offset)

    def batched_view(self, buffer: Any, config: BatchConfig) -> Any:
        import torch

        return torch.as_strided(
            buffer,
            (config.batch_count, config.rows, config.cols),
            (config.stride, 1, config.lda),
        )

    def address_of(self, buffer: Any) -> int:
        return buffer.data_ptr()

    def address_table(self, addresses: Sequence[int]) -> Any:
        import torch

        return torch.tensor(list(addresses), dtype=torch.int64, device=self.torch_device)

    def release_cached(self) -> None:
        device.release_cached_memory()

    def synchronize(self) -> None:
        device.sync_device(self.settings.device)

    def timer(self) -> BaseTimer:
        return CUDATimer(device_id=self.settings.device)

    def _dispatch(
        self, kernel: KernelVariant, staged: StagedBatch, outputs: KernelOutputs
    ) -> None:
        if staged.batched is not None:
            self._call(kernel, staged.batched, outputs, None)
        else:
            for index, a in enumerate(staged.elements):
                self._call(kernel, a, outputs, index)

    def _call(
        self, kernel: KernelVariant, a: Any, outputs: KernelOutputs, index: Optional[int]
    ) -> None:
        import torch

        try:
            kernel.device_call(a, outputs, index)
        except torch.linalg.LinAlgError as exc:
            element, code = parse_linalg_error(exc, index)
            outputs.info[element] = code
        except torch.cuda.OutOfMemoryError as exc:
            raise AllocationError(f"{kernel.name}: device out of memory") from exc
        except RuntimeError as exc:
            raise KernelLaunchError(f"{kernel.name} launch failed: {exc}") from exc


def parse_linalg_error(exc: Exception, index: Optional[int]) -> Tuple[int, int]:
    """Batch element and error code reported by a PyTorch ``LinAlgError``.

    Unbatched calls report no element, so ``index`` (or 0) is used. A
    message without an error code maps to 1.
    """
    message = str(exc)
    element = _BATCH_ELEMENT_RE.search(message)
    code = _ERROR_CODE_RE.search(message)
    if element is not None and index is None:
        index = int(element.group(1))
    return (index or 0), (int(code.group(1)) if code else 1)


class HostBackend(Backend):
    """Multi-core host backend built on NumPy and LAPACK."""

    kind = BackendKind.HOST
    provider = "LAPACK"

    def __init__(self, settings: RunSettings):
        super().__init__(settings)
        self._pool: Optional[ThreadPoolExecutor] = None

    def open(self, stack: ExitStack) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.workers,
            thread_name_prefix="linalg-bench",
        )
        stack.callback(self._shutdown_pool)
        stack.enter_context(threadpool_limits(limits=1, user_api="blas"))
        logger.info("Using %s", self.label)

    def _shutdown_pool(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    @property
    def label(self) -> str:
        return f"CPU - {self.settings.workers} worker thread(s)"

    def empty(self, shape: Tuple[int, ...], dtype: Any, column_major: bool = False) -> Any:
        shape = tuple(shape)
        try:
            if column_major and len(shape) >= 2:
                return np.swapaxes(np.empty(shape[:-2] + (shape[-1], shape[-2]), dtype=dtype), -2, -1)
            return np.empty(shape, dtype=dtype)
        except MemoryError as exc:
            raise AllocationError(f"Failed to allocate host buffer of shape {shape}") from exc

    def from_host(self, array: np.ndarray) -> np.ndarray:
        buffer = host_zeros(array.size, array.dtype)
        np.copyto(buffer, array)
        return buffer

    def copy_from_host(self, dst: np.ndarray, src: np.ndarray) -> None:
        np.copyto(dst, src)

    def column_major(
        self, buffer: np.ndarray, rows: int, cols: int, lda: int, offset: int = 0
    ) -> np.ndarray:
        return column_major_view(buffer, rows, cols, lda, offset)

    def batched_view(self, buffer: np.ndarray, config: BatchConfig) -> np.ndarray:
        item = buffer.itemsize
        return np.lib.stride_tricks.as_strided(
            buffer,
            shape=(config.batch_count, config.rows, config.cols),
            strides=(config.stride * item, item, config.lda * item),
        )

    def address_of(self, buffer: np.ndarray) -> int:
        return buffer.ctypes.data

    def address_table(self, addresses: Sequence[int]) -> np.ndarray:
        return np.array(list(addresses), dtype=np.int64)

    def timer(self) -> BaseTimer:
        return WallClockTimer()

    def _dispatch(
        self, kernel: KernelVariant, staged: StagedBatch, outputs: KernelOutputs
    ) -> None:
        if self._pool is None:
            raise RuntimeError("HostBackend must be used inside a 'with' block")

        batch = staged.config.batch_count
        chunks = np.array_split(np.arange(batch), min(self.settings.workers, batch))
        futures = [
            self._pool.submit(self._run_chunk, kernel, staged, outputs, chunk)
            for chunk in chunks
            if chunk.size
        ]
        for future in futures:
            future.result()

    @staticmethod
    def _run_chunk(
        kernel: KernelVariant, staged: StagedBatch, outputs: KernelOutputs, chunk: np.ndarray
    ) -> None:
        try:
            workspace = kernel.host_workspace(staged.config)
        except MemoryError as exc:
            raise AllocationError(f"{kernel.name}: failed to allocate host workspace") from exc

        with workspace:
            for index in chunk:
                index = int(index)
                try:
                    info = kernel.host_call(staged.elements[index], outputs, index, workspace)
                except ValueError as exc:
                    raise KernelLaunchError(
                        f"{kernel.name} failed on batch element {index}: {exc}"
                    ) from exc
                if info < 0:
                    raise KernelLaunchError(
                        f"{kernel.name}: argument {-info} had an illegal value "
                        f"(batch element {index})"
                    )
                outputs.info[index] = info


def create_backend(kind: Union[BackendKind, str], settings: RunSettings) -> Backend:
    """
    Build the backend for ``kind``.

    ``auto`` selects the device when PyTorch sees one and the host otherwise.

    Raises:
        ConfigurationError: If ``kind`` is not a known backend.
    """
    try:
        kind = BackendKind(kind)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    if kind is BackendKind.AUTO:
        kind = BackendKind.DEVICE if device.is_device_available() else BackendKind.HOST
        logger.info("Auto-selected %s backend", kind.value)

    if kind is BackendKind.DEVICE:
        return DeviceBackend(settings)
    return HostBackend(settings)
