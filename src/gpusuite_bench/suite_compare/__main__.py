from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from .catalog import common_benchmarks
from .config import (
    DEFAULT_SUITES,
    MAX_BENCHMARK_RUNS,
    MAX_BENCHMARK_SECONDS,
    MAX_KERNEL_UNCERTAINTY,
    MIN_KERNEL_ITERATIONS,
    CompareConfig,
    ConvergenceSettings,
)
from .report import report_run
from .workflow import compare_run, run


def _abs_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


def _add_suite_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--suites",
        nargs="+",
        default=list(DEFAULT_SUITES),
        help=f"Suites to compare (default: {' '.join(DEFAULT_SUITES)}).",
    )
    p.add_argument("--baseline", default=None, help="Baseline suite (default: first of --suites).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gpusuite_bench.suite_compare",
        description="Compare per-kernel GPU times of benchmark suites against a baseline suite (nvprof).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    lst = sub.add_parser("list", help="List benchmarks present in every suite.")
    lst.add_argument("--root", type=_abs_path, required=True, help="Directory holding one sub-directory per suite.")
    _add_suite_args(lst)

    rn = sub.add_parser("run", help="Profile all common benchmarks and write the comparison.")
    rn.add_argument("--root", type=_abs_path, required=True, help="Directory holding one sub-directory per suite.")
    rn.add_argument("--out-dir", type=_abs_path, required=True)
    _add_suite_args(rn)
    rn.add_argument("--nvprof", type=_abs_path, default=None, help="nvprof executable (default: $GPUSUITE_BENCH_NVPROF or PATH).")
    rn.add_argument("--keep-going", action="store_true", help="Continue with other benchmarks after a measurement failure.")
    rn.add_argument("--min-iterations", type=int, default=MIN_KERNEL_ITERATIONS)
    rn.add_argument("--max-uncertainty", type=float, default=MAX_KERNEL_UNCERTAINTY)
    rn.add_argument("--max-runs", type=int, default=MAX_BENCHMARK_RUNS)
    rn.add_argument("--max-seconds", type=float, default=MAX_BENCHMARK_SECONDS)

    cmp_ = sub.add_parser("compare", help="Aggregate an existing samples.csv (no profiling).")
    cmp_.add_argument("--samples", type=_abs_path, required=True)
    cmp_.add_argument("--out-dir", type=_abs_path, required=True)
    _add_suite_args(cmp_)

    report = sub.add_parser("report", help="Regenerate report.md from comparison.json.")
    report.add_argument("--out-dir", type=_abs_path, required=True)

    return parser


def _config_from_args(ns: argparse.Namespace, *, root: Path) -> CompareConfig:
    kwargs: dict[str, Any] = {}
    if ns.baseline is not None:
        kwargs["baseline"] = ns.baseline
    if ns.cmd == "run":
        kwargs["convergence"] = ConvergenceSettings(
            min_iterations=ns.min_iterations,
            max_uncertainty=ns.max_uncertainty,
            max_runs=ns.max_runs,
            max_seconds=ns.max_seconds,
        )
        kwargs["profiler"] = ns.nvprof
    return CompareConfig(root=root, suites=ns.suites, **kwargs)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)

    if ns.cmd == "list":
        for name in common_benchmarks(ns.root, ns.suites):
            print(name)
        return 0
    if ns.cmd == "report":
        return report_run(out_dir=ns.out_dir)

    root = ns.root if ns.cmd == "run" else ns.samples.parent
    try:
        config = _config_from_args(ns, root=root)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if ns.cmd == "run":
        return run(config, out_dir=ns.out_dir, keep_going=ns.keep_going)
    if ns.cmd == "compare":
        return compare_run(config, samples_path=ns.samples, out_dir=ns.out_dir)

    raise AssertionError(f"Unhandled cmd: {ns.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
