"""
Parsing of `nvprof --print-gpu-trace --csv` logs into kernel duration samples.

An nvprof CSV log starts with `==PID==` preamble lines, followed by the column
header, a units row and then one row per GPU activity. Only kernel launches are
kept; memory operations (rows named `[CUDA memcpy ...]` and similar) are
dropped.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import attrs

from .errors import EmptyTraceError, TraceFormatError

API_MARKER = "[CUDA "
NAME_COLUMN = "Name"
DURATION_COLUMN = "Duration"
_MAX_PREAMBLE_LINES = 16
_ERROR_CONTEXT_LINES = 5


@attrs.define(frozen=True, slots=True)
class Sample:
    suite: str
    benchmark: str
    kernel: str
    time: float = attrs.field(converter=float)

    def to_row(self) -> dict[str, str]:
        return {"suite": self.suite, "benchmark": self.benchmark, "kernel": self.kernel, "time": repr(self.time)}


# Evaluated in order; the first pattern that matches decides the kernel name.
DEMANGLE_RULES: tuple[tuple[re.Pattern[str], Callable[[re.Match[str]], str]], ...] = (
    # Managed-language launch wrappers: `wrapper_<name>_<id> (<args>)`.
    (re.compile(r"^wrapper_(?P<name>.+)_\d+\s"), lambda m: m.group("name")),
    # Native call signatures: `<name>(<args>)`.
    (re.compile(r"^(?P<name>[^(]+)\("), lambda m: m.group("name")),
)

# Benchmarks whose kernels share a name across logically different launches.
DISAMBIGUATED_KERNELS: dict[str, tuple[str, ...]] = {
    "bfs": ("Kernel", "Kernel2"),
}


def demangle(name: str) -> str:
    for pattern, extract in DEMANGLE_RULES:
        m = pattern.match(name)
        if m is not None:
            return extract(m)
    return name


def disambiguate(names: list[str], kernels: Iterable[str]) -> list[str]:
    """Suffix every occurrence of the listed kernels with its row position."""
    listed = set(kernels)
    return [f"{name}_{idx}" if name in listed else name for idx, name in enumerate(names)]


def _head(lines: list[str]) -> str:
    shown = "\n".join(f"  {line}" for line in lines[:_ERROR_CONTEXT_LINES])
    return shown or "  (empty file)"


def _find_header(lines: list[str], path: Path) -> int:
    for idx, line in enumerate(lines[:_MAX_PREAMBLE_LINES]):
        fields = next(csv.reader([line]), [])
        if NAME_COLUMN in fields and DURATION_COLUMN in fields:
            return idx
    raise TraceFormatError(
        f"No header row with {NAME_COLUMN!r} and {DURATION_COLUMN!r} columns in {path}; trace starts with:\n{_head(lines)}"
    )


def read_trace_rows(path: Path) -> list[dict[str, str]]:
    """Return the data rows of a trace, skipping the preamble and the units row."""
    lines = path.read_text(errors="replace").splitlines()
    header_idx = _find_header(lines, path)
    body = [lines[header_idx], *lines[header_idx + 2 :]]
    reader = csv.DictReader(io.StringIO("\n".join(body)))
    rows = [r for r in reader if any(isinstance(v, str) and v.strip() for v in r.values())]
    if not rows:
        raise EmptyTraceError(f"Trace has no data rows: {path}; trace starts with:\n{_head(lines)}")
    return rows


def parse_trace(
    path: Path,
    *,
    suite: str,
    benchmark: str,
    disambiguation: Mapping[str, Iterable[str]] | None = None,
) -> list[Sample]:
    """
    Parse one nvprof GPU-trace CSV into samples for a (suite, benchmark) pair.

    Parameters
    ----------
    path:
        Trace file produced by `run_profiler`.
    suite, benchmark:
        Labels attached to every resulting sample.
    disambiguation:
        Per-benchmark kernel names whose occurrences must be kept apart; defaults
        to `DISAMBIGUATED_KERNELS`.
    """
    table = DISAMBIGUATED_KERNELS if disambiguation is None else disambiguation

    names: list[str] = []
    durations: list[float] = []
    for row in read_trace_rows(path):
        raw = (row.get(NAME_COLUMN) or "").strip()
        if raw.startswith(API_MARKER):
            continue
        duration = (row.get(DURATION_COLUMN) or "").strip()
        try:
            durations.append(float(duration))
        except ValueError as e:
            raise TraceFormatError(f"Invalid {DURATION_COLUMN} value {duration!r} for {raw!r} in {path}") from e
        names.append(demangle(raw))

    if benchmark in table:
        names = disambiguate(names, table[benchmark])

    return [Sample(suite=suite, benchmark=benchmark, kernel=n, time=t) for n, t in zip(names, durations)]
