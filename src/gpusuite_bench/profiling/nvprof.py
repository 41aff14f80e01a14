"""
nvprof orchestration helpers.

This module runs a benchmark's `profile` entry point under `nvprof` and hands
back the single GPU-trace CSV that the run produced. The runner is not
reentrant per directory: each invocation deletes stale traces before it starts
and expects to find exactly one trace afterwards, so runs against the same
benchmark directory must be serialized.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

from .errors import AmbiguousOutputError, NoOutputError, ProfilerExecutionError

logger = logging.getLogger(__name__)

PROFILER_ENV_VAR = "GPUSUITE_BENCH_NVPROF"
PROFILE_TARGET = "profile"
PROFILE_TARGET_ARGS: tuple[str, ...] = ("--depwarn=no",)
TRACE_PATTERN = "nvprof.csv.*"
TRACE_LOG_FILE = "nvprof.csv.%p"

NVPROF_FLAGS: tuple[str, ...] = (
    "--profile-from-start",
    "off",
    "--profile-child-processes",
    "--unified-memory-profiling",
    "off",
    "--print-gpu-trace",
    "--normalized-time-unit",
    "us",
    "--csv",
    "--log-file",
    TRACE_LOG_FILE,
)


def find_profiler_executable(explicit: Path | None = None) -> Path:
    """Resolve the nvprof executable (explicit path, then env override, then PATH)."""
    if explicit is not None:
        p = explicit.expanduser().resolve()
        if not p.exists():
            raise FileNotFoundError(f"Profiler executable does not exist: {p}")
        return p

    env = os.environ.get(PROFILER_ENV_VAR)
    if env:
        p = Path(env).expanduser().resolve()
        if not p.exists():
            raise FileNotFoundError(f"{PROFILER_ENV_VAR} points to missing file: {p}")
        return p

    found = shutil.which("nvprof")
    if found is None:
        raise FileNotFoundError(f"nvprof not found on PATH. Install the CUDA toolkit or set {PROFILER_ENV_VAR}.")
    return Path(found)


def build_profiler_command(profiler: Path) -> list[str]:
    return [str(profiler), *NVPROF_FLAGS, f"./{PROFILE_TARGET}", *PROFILE_TARGET_ARGS]


def clean_trace_outputs(bench_dir: Path) -> list[Path]:
    """Delete trace files left behind by earlier runs; return what was removed."""
    removed: list[Path] = []
    for p in sorted(bench_dir.glob(TRACE_PATTERN)):
        p.unlink()
        removed.append(p)
    if removed:
        logger.debug("Removed %d stale trace file(s) from %s", len(removed), bench_dir)
    return removed


def run_profiler(bench_dir: Path, *, profiler: Path) -> Path:
    """
    Profile one benchmark directory and return the path of the trace it produced.

    Parameters
    ----------
    bench_dir:
        Directory containing the `profile` entry point. Used as the working
        directory of the profiler process; the caller's cwd is never changed.
    profiler:
        nvprof executable (see `find_profiler_executable`).
    """
    clean_trace_outputs(bench_dir)

    cmd = build_profiler_command(profiler)
    logger.debug("Running %s in %s", " ".join(cmd), bench_dir)
    proc = subprocess.run(cmd, cwd=bench_dir, capture_output=True, check=False)
    output = (proc.stdout + proc.stderr).decode(errors="replace")

    if proc.returncode != 0:
        print(output, file=sys.stderr)
        raise ProfilerExecutionError(returncode=proc.returncode, command=cmd, output=output)

    matches = sorted(bench_dir.glob(TRACE_PATTERN))
    if not matches:
        print(output, file=sys.stderr)
        raise NoOutputError(f"Profiler produced no trace matching {TRACE_PATTERN} in {bench_dir}")
    if len(matches) > 1:
        print(output, file=sys.stderr)
        raise AmbiguousOutputError(matches)
    if output.strip():
        logger.debug("Profiler output for %s:\n%s", bench_dir, output)
    return matches[0]
