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

"""Benchmarked kernels, keyed by their command-line name."""

from typing import Dict, Optional, Type

from ..config import KernelParams
from ..errors import ConfigurationError
from .base import KernelOutputs, KernelVariant, Workspace
from .eigen import EigenOutputs, JacobiEigen
from .qr import QRFactorization, QROutputs
from .svd import JacobiSVD, SVDOutputs

KERNELS: Dict[str, Type[KernelVariant]] = {
    QRFactorization.name: QRFactorization,
    JacobiSVD.name: JacobiSVD,
    JacobiEigen.name: JacobiEigen,
}


def create_kernel(name: str, params: Optional[KernelParams] = None) -> KernelVariant:
    try:
        kernel_cls = KERNELS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown kernel '{name}'. Choose from: {', '.join(KERNELS)}"
        ) from None
    return kernel_cls(params)


__all__ = [
    "KERNELS",
    "create_kernel",
    "KernelVariant",
    "KernelOutputs",
    "Workspace",
    "QRFactorization",
    "QROutputs",
    "JacobiSVD",
    "SVDOutputs",
    "JacobiEigen",
    "EigenOutputs",
]
