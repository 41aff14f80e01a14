from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Literal

import attrs

from gpusuite_bench.profiling.trace import Sample

MeasurementState = Literal["cached", "converged", "exhausted"]

SAMPLE_COLUMNS: tuple[str, ...] = ("suite", "benchmark", "kernel", "time")
TOTAL = "total"


def read_samples_csv(path: Path) -> list[Sample]:
    with path.open(newline="") as f:
        reader = csv.DictReader(f)
        missing = set(SAMPLE_COLUMNS) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path} is missing column(s): {sorted(missing)}")
        return [Sample(suite=r["suite"], benchmark=r["benchmark"], kernel=r["kernel"], time=r["time"]) for r in reader]


def write_samples_csv(path: Path, samples: Iterable[Sample]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(SAMPLE_COLUMNS))
        writer.writeheader()
        for s in samples:
            writer.writerow(s.to_row())


@attrs.define(slots=True)
class SamplePool:
    """Append-only collection of samples gathered across all (suite, benchmark) pairs."""

    samples: list[Sample] = attrs.field(factory=list)

    def extend(self, samples: Iterable[Sample]) -> None:
        self.samples.extend(samples)

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.samples)

    def pairs(self) -> list[tuple[str, str]]:
        return sorted({(s.suite, s.benchmark) for s in self.samples})

    def write_csv(self, path: Path) -> None:
        write_samples_csv(path, self.samples)

    @classmethod
    def read_csv(cls, path: Path) -> "SamplePool":
        return cls(samples=read_samples_csv(path))


@attrs.define(frozen=True, slots=True)
class KernelStat:
    kernel: str
    iterations: int
    minimum: float
    std: float
    uncertainty: float


@attrs.define(frozen=True, slots=True)
class MeasurementOutcome:
    suite: str
    benchmark: str
    state: MeasurementState
    runs: int
    samples: tuple[Sample, ...] = attrs.field(converter=tuple)
    noisy_kernels: tuple[str, ...] = attrs.field(default=(), converter=tuple)

    @property
    def verified(self) -> bool:
        return self.state != "exhausted"

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite": self.suite,
            "benchmark": self.benchmark,
            "state": self.state,
            "runs": self.runs,
            "samples": len(self.samples),
            "noisy_kernels": list(self.noisy_kernels),
        }


@attrs.define(frozen=True, slots=True)
class ComparisonTable:
    """
    Baseline-normalized kernel timings.

    Row `i` is (`benchmarks[i]`, `kernels[i]`); `ratios[suite][i]` is that
    suite's time divided by the baseline's time for the row.
    """

    baseline: str
    suites: tuple[str, ...] = attrs.field(converter=tuple)
    benchmarks: tuple[str, ...] = attrs.field(converter=tuple)
    kernels: tuple[str, ...] = attrs.field(converter=tuple)
    ratios: dict[str, tuple[float, ...]] = attrs.field(converter=lambda d: {k: tuple(v) for k, v in d.items()})

    @ratios.validator
    def _check_ratios(self, attribute: attrs.Attribute, value: dict[str, tuple[float, ...]]) -> None:
        if self.baseline in self.suites:
            raise ValueError(f"Baseline {self.baseline!r} cannot be a compared suite")
        if set(value) != set(self.suites):
            raise ValueError(f"Ratio columns {sorted(value)} do not match suites {sorted(self.suites)}")
        if len(self.benchmarks) != len(self.kernels):
            raise ValueError("benchmarks and kernels must have the same length")
        seen: set[tuple[str, str]] = set()
        for row in zip(self.benchmarks, self.kernels):
            if row in seen:
                raise ValueError(f"Duplicate row {row}")
            seen.add(row)
        for suite, column in value.items():
            if len(column) != len(self.benchmarks):
                raise ValueError(f"Column {suite!r} has {len(column)} values, expected {len(self.benchmarks)}")

    def __len__(self) -> int:
        return len(self.benchmarks)

    def rows(self) -> Iterator[dict[str, Any]]:
        for i, (benchmark, kernel) in enumerate(zip(self.benchmarks, self.kernels)):
            yield {"benchmark": benchmark, "kernel": kernel, **{s: self.ratios[s][i] for s in self.suites}}

    def by_suite(self, suite: str) -> dict[str, float]:
        """Per-benchmark total ratio of one suite (the overall mean is keyed `total`)."""
        column = self.ratios[suite]
        return {b: column[i] for i, (b, k) in enumerate(zip(self.benchmarks, self.kernels)) if k == TOTAL}

    def by_benchmark(self, benchmark: str) -> dict[str, dict[str, float]]:
        return {
            k: {s: self.ratios[s][i] for s in self.suites}
            for i, (b, k) in enumerate(zip(self.benchmarks, self.kernels))
            if b == benchmark
        }

    def suite_totals(self) -> dict[str, float]:
        out: dict[str, float] = {}
        for s in self.suites:
            totals = self.by_suite(s)
            if TOTAL in totals:
                out[s] = totals[TOTAL]
        return out

    def write_csv(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=["benchmark", "kernel", *self.suites])
            writer.writeheader()
            for row in self.rows():
                writer.writerow(row)
