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

"""Accelerator helpers built on ``torch.cuda``.

PyTorch is imported lazily so host-only runs never initialize a device
runtime.
"""

from __future__ import annotations

from typing import Optional

from ..errors import DeviceUnavailableError


def is_device_available() -> bool:
    """True if PyTorch sees at least one CUDA (or ROCm) device."""
    import torch

    return torch.cuda.is_available()


def get_device_count() -> int:
    """Number of accelerator devices, 0 if none are usable."""
    import torch

    if torch.cuda.is_available():
        return torch.cuda.device_count()
    return 0


def require_device(device_id: int = 0) -> None:
    """Select ``device_id`` as the current device.

    Raises:
        DeviceUnavailableError: If no accelerator is usable or the index is
            out of range.
    """
    import torch

    count = get_device_count()
    if count == 0:
        raise DeviceUnavailableError("Accelerator device not available")
    if device_id >= count:
        raise DeviceUnavailableError(
            f"Device index {device_id} out of range ({count} device(s) visible)"
        )
    torch.cuda.set_device(device_id)


def sync_device(device_id: Optional[int] = None) -> None:
    """Block until all work queued on the device has finished.

    This is a no-op if no accelerator is available.
    """
    import torch

    if torch.cuda.is_available():
        if device_id is not None:
            torch.cuda.synchronize(device_id)
        else:
            torch.cuda.synchronize()


def release_cached_memory() -> None:
    """Return cached allocator blocks to the device."""
    import torch

    if torch.cuda.is_available():
        torch.cuda.empty_cache()


def device_label(device_id: int = 0) -> str:
    """Human-readable name used in report headers, e.g. ``GPU - NVIDIA A100``."""
    import torch

    runtime = "HIP" if torch.version.hip else "CUDA"
    return f"GPU - {runtime} {torch.cuda.get_device_name(device_id)}"


def uses_cusolver() -> bool:
    """True for CUDA builds, where cuSOLVER drivers can be selected by name."""
    import torch

    return torch.version.hip is None
