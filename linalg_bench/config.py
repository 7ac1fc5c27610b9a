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
Configuration types for batched linear-algebra benchmarks.

This module holds the validated value objects the harness runs on:
the batch geometry (:class:`BatchConfig`), the run protocol
(:class:`RunSettings`) and kernel tuning knobs (:class:`KernelParams`),
plus YAML loading for option defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Layout(str, Enum):
    """How the matrices of a batch are addressed."""

    STRIDED = "strided"
    POINTER_ARRAY = "pointer-array"


class Precision(str, Enum):
    """Element type of the batched matrices."""

    SINGLE = "single"
    DOUBLE = "double"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.float32 if self is Precision.SINGLE else np.float64)


class BackendKind(str, Enum):
    """Execution backend. AUTO picks the device when one is usable."""

    AUTO = "auto"
    DEVICE = "device"
    HOST = "host"


class SvectMode(str, Enum):
    """Which singular vectors an SVD computes for one side."""

    NONE = "none"
    SINGULAR = "singular"
    ALL = "all"


class EigenDriver(str, Enum):
    """Host LAPACK driver for the symmetric eigensolver."""

    EV = "ev"
    EVD = "evd"


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ConfigurationError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class BatchConfig:
    """Geometry of one batch of column-major matrices.

    Attributes:
        rows: Rows per matrix (M).
        cols: Columns per matrix (N).
        lda: Leading dimension, the element distance between columns.
        stride: Element distance between consecutive matrices (strided layout).
        batch_count: Number of matrices in the batch.
        layout: Strided (one buffer) or pointer-array (one buffer per matrix).
        precision: Single or double precision real elements.
        symmetric: Square symmetric matrices (eigensolver inputs).
    """

    rows: int
    cols: int
    lda: int
    stride: int
    batch_count: int
    layout: Layout = Layout.STRIDED
    precision: Precision = Precision.DOUBLE
    symmetric: bool = False

    @classmethod
    def create(
        cls,
        rows: int,
        cols: int,
        lda: Optional[int] = None,
        stride: Optional[int] = None,
        batch_count: int = 1,
        layout: Union[Layout, str] = Layout.STRIDED,
        precision: Union[Precision, str] = Precision.DOUBLE,
        symmetric: bool = False,
    ) -> "BatchConfig":
        """Validate raw values and apply the lda clamp and default stride.

        Raises:
            ConfigurationError: On negative sizes, a non-square symmetric
                shape, or an unknown layout/precision.
        """
        for name, value in (("rows", rows), ("cols", cols), ("batch_count", batch_count)):
            _require_non_negative(name, value)
        if lda is not None:
            _require_non_negative("lda", lda)
        if stride is not None:
            _require_non_negative("stride", stride)
        if symmetric and rows != cols:
            raise ConfigurationError(
                f"symmetric matrices must be square, got {rows} x {cols}"
            )

        try:
            layout = Layout(layout)
            precision = Precision(precision)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        governing = cols if symmetric else rows
        if lda is None:
            lda = governing
        elif lda < governing:
            logger.info("lda=%d is smaller than %d; using lda=%d", lda, governing, governing)
            lda = governing

        if stride is None:
            stride = lda * cols
        elif stride < lda * cols and batch_count > 1:
            logger.warning(
                "stride=%d is smaller than lda*cols=%d; consecutive matrices overlap",
                stride,
                lda * cols,
            )

        return cls(
            rows=rows,
            cols=cols,
            lda=lda,
            stride=stride,
            batch_count=batch_count,
            layout=layout,
            precision=precision,
            symmetric=symmetric,
        )

    @property
    def dtype(self) -> np.dtype:
        return self.precision.dtype

    @property
    def min_mn(self) -> int:
        return min(self.rows, self.cols)

    @property
    def matrix_elements(self) -> int:
        """Elements in one independently allocated matrix buffer."""
        return self.lda * self.cols

    @property
    def extent(self) -> int:
        """Elements spanned by the contiguous strided buffer."""
        if self.batch_count == 0:
            return 0
        return (self.batch_count - 1) * self.stride + self.matrix_elements

    def shape_label(self) -> str:
        return f"{self.rows} x {self.cols}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["layout"] = self.layout.value
        data["precision"] = self.precision.value
        return data


@dataclass(frozen=True)
class RunSettings:
    """Protocol of one benchmark run.

    Attributes:
        iterations: Timed iterations, at least one.
        warmup_ms: Minimum warm-up wall-clock budget. Zero or negative still
            performs one warm-up pass.
        seed: Non-negative seed for matrix generation.
        workers: Host worker pool size (defaults to the CPU count).
        device: Accelerator index for the device backend.
    """

    iterations: int = 10
    warmup_ms: int = 1000
    seed: int = 42
    workers: int = 1
    device: int = 0

    @classmethod
    def create(
        cls,
        iterations: int = 10,
        warmup_ms: int = 1000,
        seed: int = 42,
        workers: Optional[int] = None,
        device: int = 0,
    ) -> "RunSettings":
        if iterations < 1:
            raise ConfigurationError(f"iterations must be at least 1, got {iterations}")
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {workers}")
        _require_non_negative("seed", seed)
        _require_non_negative("device", device)
        return cls(
            iterations=iterations,
            warmup_ms=warmup_ms,
            seed=seed,
            workers=workers,
            device=device,
        )


@dataclass(frozen=True)
class KernelParams:
    """Kernel-specific knobs. Each kernel reads only the ones it uses."""

    tolerance: float = 1e-7
    max_sweeps: int = 100
    left_svect: SvectMode = SvectMode.ALL
    right_svect: SvectMode = SvectMode.ALL
    eigen_driver: EigenDriver = EigenDriver.EV

    @classmethod
    def create(
        cls,
        tolerance: float = 1e-7,
        max_sweeps: int = 100,
        left_svect: Union[SvectMode, str] = SvectMode.ALL,
        right_svect: Union[SvectMode, str] = SvectMode.ALL,
        eigen_driver: Union[EigenDriver, str] = EigenDriver.EV,
    ) -> "KernelParams":
        if tolerance < 0:
            raise ConfigurationError(f"tolerance must be non-negative, got {tolerance}")
        if max_sweeps < 1:
            raise ConfigurationError(f"max_sweeps must be at least 1, got {max_sweeps}")
        try:
            return cls(
                tolerance=float(tolerance),
                max_sweeps=max_sweeps,
                left_svect=SvectMode(left_svect),
                right_svect=SvectMode(right_svect),
                eigen_driver=EigenDriver(eigen_driver),
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


def load_yaml_mapping(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML file whose top level must be a mapping.

    Keys are normalized so that ``batch-count`` and ``batch_count`` are
    equivalent.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or not a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with path.open("r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        raise ConfigurationError(f"Empty config file: {path}")
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return normalize_keys(data)


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key).replace("-", "_"): value for key, value in data.items()}
