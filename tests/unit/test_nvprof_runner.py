from __future__ import annotations

import os
from pathlib import Path

import pytest

from gpusuite_bench.profiling import nvprof
from gpusuite_bench.profiling.errors import AmbiguousOutputError, NoOutputError, ProfilerExecutionError


def _fake_profiler(tmp_path: Path, body: str) -> Path:
    exe = tmp_path / "bin" / "nvprof"
    exe.parent.mkdir(parents=True, exist_ok=True)
    exe.write_text("#!/bin/sh\n" + body + "\n")
    exe.chmod(0o755)
    return exe


def _bench_dir(tmp_path: Path) -> Path:
    d = tmp_path / "cuda" / "saxpy"
    d.mkdir(parents=True)
    (d / "profile").write_text("#!/bin/sh\n")
    return d


def test_build_profiler_command_uses_fixed_flags(tmp_path: Path) -> None:
    cmd = nvprof.build_profiler_command(tmp_path / "nvprof")
    assert cmd[0] == str(tmp_path / "nvprof")
    for flag in ("--profile-child-processes", "--print-gpu-trace", "--csv"):
        assert flag in cmd
    assert cmd[cmd.index("--profile-from-start") + 1] == "off"
    assert cmd[cmd.index("--unified-memory-profiling") + 1] == "off"
    assert cmd[cmd.index("--normalized-time-unit") + 1] == "us"
    assert cmd[cmd.index("--log-file") + 1] == "nvprof.csv.%p"
    assert cmd[-2:] == ["./profile", "--depwarn=no"]


def test_run_profiler_returns_single_trace_and_removes_stale(tmp_path: Path) -> None:
    bench = _bench_dir(tmp_path)
    stale = bench / "nvprof.csv.1"
    stale.write_text("stale")
    exe = _fake_profiler(tmp_path, 'pwd > "nvprof.csv.$$"')
    cwd_before = Path.cwd()

    trace = nvprof.run_profiler(bench, profiler=exe)

    assert not stale.exists()
    assert trace.parent == bench
    assert Path(trace.read_text().strip()).resolve() == bench.resolve()
    assert Path.cwd() == cwd_before


def test_run_profiler_without_output_raises(tmp_path: Path) -> None:
    bench = _bench_dir(tmp_path)
    exe = _fake_profiler(tmp_path, "exit 0")
    with pytest.raises(NoOutputError):
        nvprof.run_profiler(bench, profiler=exe)


def test_run_profiler_with_multiple_outputs_raises(tmp_path: Path) -> None:
    bench = _bench_dir(tmp_path)
    exe = _fake_profiler(tmp_path, "touch nvprof.csv.100 nvprof.csv.101")
    with pytest.raises(AmbiguousOutputError) as excinfo:
        nvprof.run_profiler(bench, profiler=exe)
    assert len(excinfo.value.matches) == 2


def test_run_profiler_failure_surfaces_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    bench = _bench_dir(tmp_path)
    exe = _fake_profiler(tmp_path, 'echo "==1== Error: unified memory profiling failed" >&2\nexit 3')
    with pytest.raises(ProfilerExecutionError) as excinfo:
        nvprof.run_profiler(bench, profiler=exe)

    assert excinfo.value.returncode == 3
    assert "unified memory profiling failed" in excinfo.value.output
    assert "unified memory profiling failed" in capsys.readouterr().err


def test_find_profiler_executable_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    exe = _fake_profiler(tmp_path, "exit 0")

    monkeypatch.delenv(nvprof.PROFILER_ENV_VAR, raising=False)
    monkeypatch.setenv("PATH", os.fspath(exe.parent))
    assert nvprof.find_profiler_executable() == exe

    monkeypatch.setenv("PATH", os.fspath(tmp_path))
    with pytest.raises(FileNotFoundError):
        nvprof.find_profiler_executable()

    monkeypatch.setenv(nvprof.PROFILER_ENV_VAR, os.fspath(exe))
    assert nvprof.find_profiler_executable() == exe.resolve()

    with pytest.raises(FileNotFoundError):
        nvprof.find_profiler_executable(tmp_path / "missing")
