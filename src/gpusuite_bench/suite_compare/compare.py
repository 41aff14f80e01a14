from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable

import attrs

from gpusuite_bench.profiling.trace import Sample

from .model import TOTAL, ComparisonTable, SamplePool

logger = logging.getLogger(__name__)

Key = tuple[str, str, str]

# A real kernel called `total` is reported under this name so it cannot merge with the synthetic row.
RENAMED_TOTAL_KERNEL = "total_kernel"


class IncompleteCoverageWarning(UserWarning):
    """A (benchmark, kernel) row is missing data for at least one suite."""


class ReservedNameWarning(UserWarning):
    """A real benchmark or kernel uses the name reserved for the synthetic `total` row."""


def benchmark_totals(samples: Iterable[Sample]) -> dict[tuple[str, str], float]:
    """
    Per-(suite, benchmark) total: the sum of all durations divided by the number of samples.

    It must be computed from the raw samples, before per-kernel collapsing
    discards how many iterations each kernel contributed.
    """
    sums: dict[tuple[str, str], float] = {}
    counts: dict[tuple[str, str], int] = {}
    for s in samples:
        key = (s.suite, s.benchmark)
        sums[key] = sums.get(key, 0.0) + s.time
        counts[key] = counts.get(key, 0) + 1
    return {key: sums[key] / counts[key] for key in sorted(sums)}


def collapse_minimum(samples: Iterable[Sample]) -> dict[Key, float]:
    """Reduce the samples of every (suite, benchmark, kernel) to their minimum duration."""
    out: dict[Key, float] = {}
    for s in samples:
        key = (s.suite, s.benchmark, s.kernel)
        prev = out.get(key)
        if prev is None or s.time < prev:
            out[key] = s.time
    return out


def _without_reserved_names(samples: Iterable[Sample]) -> list[Sample]:
    out: list[Sample] = []
    dropped: set[str] = set()
    renamed: set[str] = set()
    for s in samples:
        if s.benchmark == TOTAL:
            dropped.add(s.suite)
            continue
        if s.kernel == TOTAL:
            renamed.add(s.benchmark)
            s = attrs.evolve(s, kernel=RENAMED_TOTAL_KERNEL)
        out.append(s)
    if dropped:
        warnings.warn(
            f"Ignoring benchmark named {TOTAL!r} (suite(s) {', '.join(sorted(dropped))}): the name is reserved",
            ReservedNameWarning,
            stacklevel=3,
        )
    for benchmark in sorted(renamed):
        warnings.warn(
            f"Reporting kernel {TOTAL!r} of {benchmark} as {RENAMED_TOTAL_KERNEL!r}: the name is reserved",
            ReservedNameWarning,
            stacklevel=3,
        )
    return out


def _row_order(row: tuple[str, str]) -> tuple[str, bool, str]:
    benchmark, kernel = row
    return (benchmark, kernel == TOTAL, kernel)


def compare(pool: SamplePool, *, suites: Iterable[str], baseline: str) -> ComparisonTable:
    """
    Build the baseline-normalized comparison table from all gathered samples.

    Rows lacking data for any suite are skipped with an `IncompleteCoverageWarning`.
    Each benchmark ends with a synthetic `total` row, and the final (`total`, `total`)
    row holds, per suite, the mean of its per-benchmark total ratios.
    """
    suites = list(suites)
    if baseline not in suites:
        raise ValueError(f"Baseline {baseline!r} is not one of the suites {suites}")
    others = [s for s in suites if s != baseline]
    in_scope = set(suites)

    samples = _without_reserved_names(s for s in pool if s.suite in in_scope)
    times = collapse_minimum(samples)
    for (suite, benchmark), total in benchmark_totals(samples).items():
        times[(suite, benchmark, TOTAL)] = total

    rows = sorted({(benchmark, kernel) for (_suite, benchmark, kernel) in times}, key=_row_order)
    benchmarks: list[str] = []
    kernels: list[str] = []
    ratios: dict[str, list[float]] = {s: [] for s in others}
    for benchmark, kernel in rows:
        missing = [s for s in suites if (s, benchmark, kernel) not in times]
        if missing:
            warnings.warn(
                f"Skipping {benchmark}/{kernel}: no samples for suite(s) {', '.join(missing)}",
                IncompleteCoverageWarning,
                stacklevel=2,
            )
            continue

        base = times[(baseline, benchmark, kernel)]
        if base == 0:
            logger.warning("Skipping %s/%s: baseline time is zero", benchmark, kernel)
            continue
        benchmarks.append(benchmark)
        kernels.append(kernel)
        for s in others:
            ratios[s].append(times[(s, benchmark, kernel)] / base)

    total_rows = [i for i, k in enumerate(kernels) if k == TOTAL]
    if total_rows:
        benchmarks.append(TOTAL)
        kernels.append(TOTAL)
        for s in others:
            column = ratios[s]
            ratios[s].append(sum(column[i] for i in total_rows) / len(total_rows))

    return ComparisonTable(baseline=baseline, suites=others, benchmarks=benchmarks, kernels=kernels, ratios=ratios)
