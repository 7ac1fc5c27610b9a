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
Command-line entry point.

Usage:
    python -m linalg_bench geqrf -m 10 -n 10 -b 2
    python -m linalg_bench gesvdj --backend host --left-svect none
    python -m linalg_bench syevj -n 32 --driver evd
    python -m linalg_bench suite runs.yaml

Exit codes: 0 on success, 1 on invalid arguments or configuration, 2 when
the run fails (allocation, launch or missing device).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import BackendKind, EigenDriver, Layout, Precision, SvectMode, load_yaml_mapping
from .errors import BenchmarkError, ConfigurationError
from .harness import COMMON_DEFAULTS, KERNEL_DEFAULTS, plan_from_options
from .log import LOG_LEVELS, setup_logging
from .suite import load_suite, run_suite

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_RUNTIME = 2
EXIT_INTERRUPTED = 130

# Parsed attributes that are not benchmark options.
_CLI_ONLY = ("command", "config", "log_level", "suite_file")


class BenchParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on bad input."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {value}")
    return value


def positive_int(text: str) -> int:
    value = non_negative_int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _choices(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    d = COMMON_DEFAULTS
    parser.add_argument(
        "--backend",
        choices=_choices(BackendKind),
        default=None,
        help=f"Execution backend (default: {d['backend']})",
    )
    parser.add_argument(
        "--layout",
        choices=_choices(Layout),
        default=None,
        help=f"Batch addressing (default: {d['layout']})",
    )
    parser.add_argument(
        "--precision",
        choices=_choices(Precision),
        default=None,
        help="Element precision (default: per kernel)",
    )
    parser.add_argument(
        "--lda", "-l", type=non_negative_int, default=None,
        help=f"Leading dimension (default: {d['lda']}, raised to the matrix size if smaller)",
    )
    parser.add_argument(
        "--stride", "-s", type=non_negative_int, default=None,
        help="Elements between matrices in the strided layout (default: lda * cols)",
    )
    parser.add_argument(
        "--batch-count", "-b", type=non_negative_int, default=None,
        help=f"Number of matrices (default: {d['batch_count']})",
    )
    parser.add_argument(
        "--random-seed", "-r", type=non_negative_int, default=None,
        help=f"Seed for matrix generation (default: {d['random_seed']})",
    )
    parser.add_argument(
        "--iterations", "-i", type=positive_int, default=None,
        help=f"Timed iterations (default: {d['iterations']})",
    )
    parser.add_argument(
        "--warmup-time", "-w", type=int, default=None,
        help=f"Warm-up time in milliseconds before timing (default: {d['warmup_time']})",
    )
    parser.add_argument(
        "--workers", type=positive_int, default=None,
        help="Host worker threads (default: CPU count)",
    )
    parser.add_argument(
        "--device", type=non_negative_int, default=None,
        help=f"Accelerator index (default: {d['device']})",
    )
    parser.add_argument(
        "--config", default=None, help="YAML file of option defaults for this kernel"
    )
    _add_log_level(parser)


def _add_log_level(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Diagnostic verbosity on stderr (default: WARNING)",
    )


def _add_jacobi_options(parser: argparse.ArgumentParser, defaults: Dict[str, Any], sweeps_flag: str) -> None:
    parser.add_argument(
        "--tolerance", "-t", type=float, default=None,
        help=f"Convergence tolerance (default: {defaults['tolerance']:g})",
    )
    parser.add_argument(
        "--max-sweeps", sweeps_flag, type=positive_int, default=None,
        help=f"Maximum number of sweeps (default: {defaults['max_sweeps']})",
    )


def build_parser() -> BenchParser:
    parser = BenchParser(
        prog="linalg-bench",
        description="Latency benchmarks for batched dense linear algebra kernels.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # QR factorization of two 10 x 10 matrices, on the device if one is present
  linalg-bench geqrf -m 10 -n 10 -b 2

  # Host SVD of 256 matrices without singular vectors
  linalg-bench gesvdj --backend host -b 256 --left-svect none --right-svect none

  # Several runs from one file
  linalg-bench suite runs.yaml
""",
    )
    sub = parser.add_subparsers(dest="command", metavar="KERNEL")
    sub.required = True

    qr = KERNEL_DEFAULTS["geqrf"]
    geqrf = sub.add_parser("geqrf", help="Householder QR factorization")
    geqrf.add_argument("--rows", "-m", type=non_negative_int, default=None,
                       help=f"Number of rows (default: {qr['rows']})")
    geqrf.add_argument("--cols", "-n", type=non_negative_int, default=None,
                       help=f"Number of columns (default: {qr['cols']})")
    _add_common_options(geqrf)

    svd = KERNEL_DEFAULTS["gesvdj"]
    gesvdj = sub.add_parser("gesvdj", help="Jacobi singular value decomposition")
    gesvdj.add_argument("--rows", "-m", type=non_negative_int, default=None,
                        help=f"Number of rows (default: {svd['rows']})")
    gesvdj.add_argument("--cols", "-n", type=non_negative_int, default=None,
                        help=f"Number of columns (default: {svd['cols']})")
    _add_jacobi_options(gesvdj, svd, "-j")
    gesvdj.add_argument("--left-svect", choices=_choices(SvectMode), default=None,
                        help=f"Left singular vectors (default: {svd['left_svect']})")
    gesvdj.add_argument("--right-svect", choices=_choices(SvectMode), default=None,
                        help=f"Right singular vectors (default: {svd['right_svect']})")
    _add_common_options(gesvdj)

    eig = KERNEL_DEFAULTS["syevj"]
    syevj = sub.add_parser("syevj", help="Jacobi symmetric eigendecomposition")
    syevj.add_argument("--size", "-n", type=non_negative_int, default=None,
                       help=f"Matrix size N (default: {eig['size']})")
    _add_jacobi_options(syevj, eig, "-m")
    syevj.add_argument("--driver", choices=_choices(EigenDriver), default=None,
                       help=f"Host LAPACK driver, syev or syevd (default: {eig['driver']})")
    _add_common_options(syevj)

    suite = sub.add_parser("suite", help="Run the benchmarks listed in a YAML file")
    suite.add_argument("suite_file", help="YAML file with 'defaults' and 'runs'")
    _add_log_level(suite)

    return parser


def _options(args: argparse.Namespace) -> Dict[str, Any]:
    return {key: value for key, value in vars(args).items() if key not in _CLI_ONLY}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.command == "suite":
            plans = load_suite(args.suite_file)
        else:
            file_defaults = load_yaml_mapping(args.config) if args.config else None
            plans = [plan_from_options(args.command, file_defaults, _options(args))]
    except ConfigurationError as exc:
        parser.error(str(exc))

    try:
        run_suite(plans)
    except BenchmarkError as exc:
        logger.debug("Benchmark failed", exc_info=True)
        print(f"linalg-bench: error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME
    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
