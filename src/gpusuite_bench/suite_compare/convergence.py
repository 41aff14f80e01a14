"""Adaptive sampling of one (suite, benchmark) pair until its kernel timings are stable."""

from __future__ import annotations

import logging
import math
import statistics
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from gpusuite_bench.profiling.nvprof import run_profiler
from gpusuite_bench.profiling.trace import Sample, parse_trace

from .config import CACHE_FILE, ConvergenceSettings
from .model import KernelStat, MeasurementOutcome, read_samples_csv, write_samples_csv

logger = logging.getLogger(__name__)

MeasureFn = Callable[[], list[Sample]]


def _relative_uncertainty(std: float, minimum: float) -> float:
    if minimum == 0:
        return 0.0 if std == 0 else math.inf
    return std / minimum


def kernel_stats(samples: Iterable[Sample]) -> list[KernelStat]:
    by_kernel: dict[str, list[float]] = {}
    for s in samples:
        by_kernel.setdefault(s.kernel, []).append(s.time)

    out: list[KernelStat] = []
    for kernel, times in sorted(by_kernel.items()):
        std = statistics.stdev(times) if len(times) > 1 else math.nan
        minimum = min(times)
        out.append(
            KernelStat(
                kernel=kernel,
                iterations=len(times),
                minimum=minimum,
                std=std,
                uncertainty=_relative_uncertainty(std, minimum),
            )
        )
    return out


def noisy_kernels(stats: Iterable[KernelStat], settings: ConvergenceSettings) -> list[str]:
    """Kernels that are under-sampled or whose relative uncertainty is too high."""
    # NaN compares false, so single-sample kernels are always reported.
    return [
        st.kernel
        for st in stats
        if st.iterations < settings.min_iterations or not st.uncertainty < settings.max_uncertainty
    ]


def is_accurate(samples: Iterable[Sample], settings: ConvergenceSettings) -> bool:
    stats = kernel_stats(samples)
    return bool(stats) and not noisy_kernels(stats, settings)


def cache_path(bench_dir: Path) -> Path:
    return bench_dir / CACHE_FILE


def measure_benchmark(
    *,
    suite: str,
    benchmark: str,
    bench_dir: Path,
    measure: MeasureFn,
    settings: ConvergenceSettings,
    clock: Callable[[], float] = time.monotonic,
) -> MeasurementOutcome:
    """
    Collect samples for one pair until they are accurate or the budget is spent.

    A cache file in `bench_dir` short-circuits measurement entirely. Otherwise
    `measure` is called repeatedly (one profiler run per call) and any error it
    raises propagates; nothing is cached for a failed pair.
    """
    cached = cache_path(bench_dir)
    if cached.exists():
        loaded = read_samples_csv(cached)
        logger.info("%s/%s: loaded %d cached sample(s) from %s", suite, benchmark, len(loaded), cached)
        return MeasurementOutcome(suite=suite, benchmark=benchmark, state="cached", runs=0, samples=loaded)

    samples: list[Sample] = []
    runs = 0
    start = clock()
    while True:
        samples.extend(measure())
        runs += 1
        if is_accurate(samples, settings):
            state = "converged"
            break
        if clock() - start >= settings.max_seconds or runs >= settings.max_runs:
            state = "exhausted"
            break

    noisy = noisy_kernels(kernel_stats(samples), settings)
    if state == "exhausted":
        logger.warning(
            "%s/%s: measurement budget exhausted after %d run(s); unverified kernel(s): %s",
            suite,
            benchmark,
            runs,
            ", ".join(noisy) or "(none)",
        )
    else:
        logger.info("%s/%s: converged after %d run(s)", suite, benchmark, runs)

    write_samples_csv(cached, samples)
    return MeasurementOutcome(
        suite=suite, benchmark=benchmark, state=state, runs=runs, samples=samples, noisy_kernels=noisy
    )


def profile_benchmark(
    *,
    suite: str,
    benchmark: str,
    bench_dir: Path,
    profiler: Path,
    settings: ConvergenceSettings,
    disambiguation: Mapping[str, Iterable[str]] | None = None,
) -> MeasurementOutcome:
    """Measure one pair with nvprof (see `measure_benchmark`)."""

    def measure() -> list[Sample]:
        trace = run_profiler(bench_dir, profiler=profiler)
        return parse_trace(trace, suite=suite, benchmark=benchmark, disambiguation=disambiguation)

    return measure_benchmark(suite=suite, benchmark=benchmark, bench_dir=bench_dir, measure=measure, settings=settings)
