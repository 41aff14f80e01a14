from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import attrs

from gpusuite_bench.profiling.errors import MeasurementError
from gpusuite_bench.profiling.nvprof import find_profiler_executable

from .catalog import DiscoveryError, require_common_benchmarks
from .compare import compare
from .config import CompareConfig
from .convergence import profile_benchmark
from .export import build_comparison_document, now_rfc3339, write_json
from .model import ComparisonTable, MeasurementOutcome, SamplePool
from .report import write_report

logger = logging.getLogger(__name__)

PairMeasurer = Callable[[str, str, Path], MeasurementOutcome]


@attrs.define(frozen=True, slots=True)
class GatherResult:
    pool: SamplePool
    outcomes: tuple[MeasurementOutcome, ...] = attrs.field(converter=tuple)
    failures: tuple[str, ...] = attrs.field(default=(), converter=tuple)


def nvprof_measurer(
    config: CompareConfig, *, disambiguation: Mapping[str, Iterable[str]] | None = None
) -> PairMeasurer:
    profiler = find_profiler_executable(config.profiler)

    def measure(suite: str, benchmark: str, bench_dir: Path) -> MeasurementOutcome:
        return profile_benchmark(
            suite=suite,
            benchmark=benchmark,
            bench_dir=bench_dir,
            profiler=profiler,
            settings=config.convergence,
            disambiguation=disambiguation,
        )

    return measure


def gather(
    config: CompareConfig,
    benchmarks: Iterable[str],
    *,
    measure: PairMeasurer,
    keep_going: bool = False,
) -> GatherResult:
    """
    Measure every (suite, benchmark) pair, one at a time, into a fresh sample pool.

    With `keep_going=False` the first `MeasurementError` propagates. Otherwise the
    failure is recorded and the remaining pairs are still measured.
    """
    benchmarks = list(benchmarks)
    pool = SamplePool()
    outcomes: list[MeasurementOutcome] = []
    failures: list[str] = []
    for suite in config.suites:
        for benchmark in benchmarks:
            try:
                outcome = measure(suite, benchmark, config.benchmark_dir(suite, benchmark))
            except MeasurementError as e:
                if not keep_going:
                    raise
                logger.error("%s/%s: %s", suite, benchmark, e)
                failures.append(f"{suite}/{benchmark}: {type(e).__name__}: {e}")
                continue
            pool.extend(outcome.samples)
            outcomes.append(outcome)
    return GatherResult(pool=pool, outcomes=outcomes, failures=failures)


def write_outputs(
    result: GatherResult,
    *,
    config: CompareConfig,
    out_dir: Path,
    started_at: str,
) -> ComparisonTable:
    table = compare(result.pool, suites=config.suites, baseline=config.baseline)

    out_dir.mkdir(parents=True, exist_ok=True)
    result.pool.write_csv(out_dir / "samples.csv")
    table.write_csv(out_dir / "comparison.csv")
    doc = build_comparison_document(
        table,
        config=config,
        outcomes=result.outcomes,
        started_at=started_at,
        finished_at=now_rfc3339(),
        failures=list(result.failures),
    )
    write_json(out_dir / "comparison.json", doc)
    write_report(doc, table, out_dir=out_dir)
    return table


def run(
    config: CompareConfig,
    *,
    out_dir: Path,
    keep_going: bool = False,
    measure: PairMeasurer | None = None,
) -> int:
    """Discover, measure, compare and export. Returns a process exit code."""
    started_at = now_rfc3339()
    try:
        benchmarks = require_common_benchmarks(config.root, config.suites)
    except DiscoveryError as e:
        logger.warning("%s", e)
        benchmarks = []

    if not benchmarks:
        result = GatherResult(pool=SamplePool(), outcomes=[])
    else:
        if measure is None:
            measure = nvprof_measurer(config)
        try:
            result = gather(config, benchmarks, measure=measure, keep_going=keep_going)
        except MeasurementError as e:
            print(f"Measurement failed: {e}", file=sys.stderr)
            return 1

    table = write_outputs(result, config=config, out_dir=out_dir, started_at=started_at)
    for suite, ratio in table.suite_totals().items():
        logger.info("%s vs %s: %.3f", suite, config.baseline, ratio)
    return 1 if result.failures else 0


def compare_run(config: CompareConfig, *, samples_path: Path, out_dir: Path) -> int:
    """Aggregate an existing pooled sample file without profiling anything."""
    if not samples_path.exists():
        raise FileNotFoundError(f"Missing samples file at {samples_path}")
    started_at = now_rfc3339()
    pool = SamplePool.read_csv(samples_path)
    result = GatherResult(pool=pool, outcomes=[])
    write_outputs(result, config=config, out_dir=out_dir, started_at=started_at)
    return 0
