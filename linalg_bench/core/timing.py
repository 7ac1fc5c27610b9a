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

"""Clocks for one timed kernel invocation.

- WallClockTimer reads a host clock (``time.perf_counter`` by default) and
  is what the host backend uses: its invocation returns only once every batch
  element is done.
- CUDATimer brackets the invocation with a pair of CUDA events on the current
  stream of one device.

Example:
    >>> timer = WallClockTimer()
    >>> elapsed = timer.measure(lambda: backend.invoke(kernel, staged, outputs))
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional


class BaseTimer(ABC):
    """One start/stop interval, reported in milliseconds.

    Usable as a context manager, in which case it resets and starts on entry
    and stops on exit.
    """

    @abstractmethod
    def reset(self) -> None:
        """Forget any previous interval."""

    @abstractmethod
    def start(self) -> None:
        """Mark the beginning of the interval."""

    @abstractmethod
    def stop(self) -> None:
        """Mark the end of the interval.

        Raises:
            RuntimeError: If :meth:`start` was not called since the last reset.
        """

    @property
    @abstractmethod
    def elapsed_ms(self) -> float:
        """Length of the last completed interval."""

    def measure(self, step: Callable[[], Any]) -> float:
        """Time a single call of ``step`` and return the elapsed milliseconds."""
        self.reset()
        self.start()
        step()
        self.stop()
        return self.elapsed_ms

    def __enter__(self) -> BaseTimer:
        self.reset()
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


class WallClockTimer(BaseTimer):
    """Host clock timer.

    Args:
        clock: Monotonic clock in seconds; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self.clock = clock
        self._t0: Optional[float] = None
        self._elapsed = 0.0

    def reset(self) -> None:
        self._t0 = None
        self._elapsed = 0.0

    def start(self) -> None:
        self._t0 = self.clock()

    def stop(self) -> None:
        if self._t0 is None:
            raise RuntimeError("Timer not started")
        self._elapsed = (self.clock() - self._t0) * 1000.0

    @property
    def elapsed_ms(self) -> float:
        return self._elapsed


class CUDATimer(BaseTimer):
    """Device timer built on ``torch.cuda.Event``.

    ``start()`` drains the device first so a preceding host-to-device restore
    is not counted, then records the start event on the current stream.
    ``stop()`` records the stop event and blocks until the device reaches it,
    so the interval covers every kernel enqueued in between.

    Note:
        ROCm builds of PyTorch expose HIP events through the same
        ``torch.cuda`` namespace.
    """

    def __init__(self, device_id: int = 0) -> None:
        """
        Raises:
            RuntimeError: If CUDA is not available.
        """
        import torch

        if not torch.cuda.is_available():
            raise RuntimeError("CUDA not available")

        self.device_id = device_id
        self._stream = torch.cuda.current_stream(device_id)
        with torch.cuda.device(device_id):
            self._events = (
                torch.cuda.Event(enable_timing=True),
                torch.cuda.Event(enable_timing=True),
            )
        self._recording = False
        self._elapsed = 0.0

    def reset(self) -> None:
        self._recording = False
        self._elapsed = 0.0

    def start(self) -> None:
        import torch

        torch.cuda.synchronize(self.device_id)
        self._events[0].record(self._stream)
        self._recording = True

    def stop(self) -> None:
        import torch

        if not self._recording:
            raise RuntimeError("Timer not started")
        begin, end = self._events
        end.record(self._stream)
        torch.cuda.synchronize(self.device_id)
        self._elapsed = begin.elapsed_time(end)
        self._recording = False

    @property
    def elapsed_ms(self) -> float:
        return self._elapsed
