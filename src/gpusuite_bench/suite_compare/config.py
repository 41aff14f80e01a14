from __future__ import annotations

from pathlib import Path

import attrs

DEFAULT_SUITES: tuple[str, ...] = ("cuda", "julia_cuda")
CACHE_FILE = "profile.csv"

MIN_KERNEL_ITERATIONS = 10
MAX_KERNEL_UNCERTAINTY = 0.02
MAX_BENCHMARK_RUNS = 100
MAX_BENCHMARK_SECONDS = 300.0


def _positive(instance: object, attribute: attrs.Attribute, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value!r}")


@attrs.define(frozen=True, slots=True)
class ConvergenceSettings:
    min_iterations: int = attrs.field(default=MIN_KERNEL_ITERATIONS, validator=_positive)
    max_uncertainty: float = attrs.field(default=MAX_KERNEL_UNCERTAINTY, validator=_positive)
    max_runs: int = attrs.field(default=MAX_BENCHMARK_RUNS, validator=_positive)
    max_seconds: float = attrs.field(default=MAX_BENCHMARK_SECONDS, validator=_positive)

    def to_dict(self) -> dict[str, float]:
        return {
            "min_iterations": self.min_iterations,
            "max_uncertainty": self.max_uncertainty,
            "max_runs": self.max_runs,
            "max_seconds": self.max_seconds,
        }


def _default_baseline(self: "CompareConfig") -> str:
    return self.suites[0]


@attrs.define(frozen=True, slots=True)
class CompareConfig:
    root: Path
    suites: tuple[str, ...] = attrs.field(default=DEFAULT_SUITES, converter=tuple)
    baseline: str = attrs.field(default=attrs.Factory(_default_baseline, takes_self=True))
    convergence: ConvergenceSettings = attrs.field(factory=ConvergenceSettings)
    profiler: Path | None = None

    @suites.validator
    def _check_suites(self, attribute: attrs.Attribute, value: tuple[str, ...]) -> None:
        if len(value) < 2:
            raise ValueError(f"At least two suites are required to compare, got {list(value)}")
        if len(set(value)) != len(value):
            raise ValueError(f"Duplicate suite names: {list(value)}")

    @baseline.validator
    def _check_baseline(self, attribute: attrs.Attribute, value: str) -> None:
        if value not in self.suites:
            raise ValueError(f"Baseline {value!r} is not one of the suites {list(self.suites)}")

    @property
    def others(self) -> tuple[str, ...]:
        """Suites compared against the baseline, in configured order."""
        return tuple(s for s in self.suites if s != self.baseline)

    def benchmark_dir(self, suite: str, benchmark: str) -> Path:
        return self.root / suite / benchmark
