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

"""Tests for the linalg_bench command line."""

import logging

import pytest

from linalg_bench.__main__ import EXIT_RUNTIME, EXIT_USAGE, build_parser, main

QUICK = ["--backend", "host", "--workers", "2", "-w", "0", "-i", "2"]


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParser:
    """Tests for argument parsing."""

    def test_short_flags(self):
        """Historical short flags map to option names."""
        args = build_parser().parse_args(
            ["geqrf", "-m", "8", "-n", "6", "-l", "9", "-s", "80", "-b", "3", "-r", "7", "-i", "4", "-w", "50"]
        )

        assert (args.rows, args.cols, args.lda, args.stride) == (8, 6, 9, 80)
        assert (args.batch_count, args.random_seed, args.iterations, args.warmup_time) == (3, 7, 4, 50)

    def test_gesvdj_sweeps_flag(self):
        """gesvdj uses -j for max sweeps."""
        args = build_parser().parse_args(["gesvdj", "-j", "20", "-t", "1e-5", "--left-svect", "none"])

        assert args.max_sweeps == 20
        assert args.tolerance == 1e-5
        assert args.left_svect == "none"

    def test_syevj_flags(self):
        """syevj uses -n for size and -m for max sweeps."""
        args = build_parser().parse_args(["syevj", "-n", "16", "-m", "30", "--driver", "evd"])

        assert (args.size, args.max_sweeps, args.driver) == (16, 30, "evd")

    def test_unset_options_are_none(self):
        """Defaults are applied later, so unset flags stay None."""
        args = build_parser().parse_args(["geqrf"])

        assert args.rows is None
        assert args.backend is None
        assert args.log_level == "WARNING"


class TestMain:
    """Tests for main()."""

    def test_qr_scenario(self, capsys):
        """A default-sized QR run prints the report and exits 0."""
        code = main(
            ["geqrf", "-m", "10", "-n", "10", "-l", "10", "-b", "2", "-r", "42",
             "-i", "10", "-w", "1000", "--backend", "host"]
        )
        out = capsys.readouterr().out

        assert code == 0
        assert "Performing warm-up for 1000 ms..." in out
        assert "Matrix size: 10 x 10" in out
        assert "Batch count: 2" in out
        assert "Timing iterations: 10" in out
        assert "Average execution time: " in out

    def test_non_numeric_rows(self, capsys):
        """Bad input prints usage and exits 1 without a report."""
        with pytest.raises(SystemExit) as excinfo:
            main(["geqrf", "--rows", "abc"])
        captured = capsys.readouterr()

        assert excinfo.value.code == EXIT_USAGE
        assert "usage:" in captured.err
        assert "abc" in captured.err
        assert captured.out == ""

    @pytest.mark.parametrize(
        "argv",
        [
            ["geqrf", "-i", "0"],
            ["geqrf", "--lda", "-3"],
            ["geqrf", "-r", "-1"],
            ["gesvdj", "--left-svect", "some"],
            ["syevj", "--driver", "evr"],
            [],
        ],
    )
    def test_invalid_arguments(self, argv, capsys):
        """Every parse failure exits with status 1."""
        with pytest.raises(SystemExit) as excinfo:
            main(argv)

        assert excinfo.value.code == EXIT_USAGE
        assert capsys.readouterr().out == ""

    def test_empty_batch(self, capsys):
        """batch_count = 0 exits 0 with a report."""
        assert main(["geqrf", "-b", "0"] + QUICK) == 0

        out = capsys.readouterr().out
        assert "Batch count: 0" in out

    def test_gesvdj_report(self, capsys):
        """SVD reports include vector modes."""
        assert main(["gesvdj", "--left-svect", "singular", "-t", "1e-6"] + QUICK) == 0

        out = capsys.readouterr().out
        assert "Left singular vectors: singular" in out
        assert "Tolerance: 1.000000e-06" in out

    def test_syevj_report(self, capsys):
        """Eigen reports include max sweeps."""
        assert main(["syevj", "-n", "8", "-m", "50", "--driver", "evd"] + QUICK) == 0

        out = capsys.readouterr().out
        assert "Matrix size: 8 x 8" in out
        assert "Max sweeps: 50" in out

    def test_config_file_defaults(self, tmp_path, capsys):
        """--config supplies defaults that flags override."""
        path = tmp_path / "qr.yaml"
        path.write_text("batch-count: 3\nrows: 6\ncols: 4\n")

        assert main(["geqrf", "--config", str(path), "--cols", "5"] + QUICK) == 0

        out = capsys.readouterr().out
        assert "Batch count: 3" in out
        assert "Matrix size: 6 x 5" in out

    def test_config_file_unknown_key(self, tmp_path, capsys):
        """Unknown keys in --config are usage errors."""
        path = tmp_path / "qr.yaml"
        path.write_text("size: 6\n")

        with pytest.raises(SystemExit) as excinfo:
            main(["geqrf", "--config", str(path)] + QUICK)

        assert excinfo.value.code == EXIT_USAGE
        assert "Unknown option" in capsys.readouterr().err

    def test_negative_seed_in_config_file(self, tmp_path, capsys):
        """Seeds from --config are validated like the flag."""
        path = tmp_path / "eig.yaml"
        path.write_text("random-seed: -7\n")

        with pytest.raises(SystemExit) as excinfo:
            main(["syevj", "--config", str(path)] + QUICK)

        assert excinfo.value.code == EXIT_USAGE
        assert "seed must be non-negative" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path):
        """A missing --config file is a usage error."""
        with pytest.raises(SystemExit) as excinfo:
            main(["geqrf", "--config", str(tmp_path / "absent.yaml")])

        assert excinfo.value.code == EXIT_USAGE

    @pytest.mark.nogpu
    def test_device_unavailable_exits_2(self, capsys):
        """Runtime failures exit 2 with a diagnostic."""
        code = main(["geqrf", "--backend", "device", "-w", "0"])
        captured = capsys.readouterr()

        assert code == EXIT_RUNTIME
        assert "error:" in captured.err
        assert "Performance Results" not in captured.out
