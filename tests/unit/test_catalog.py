from __future__ import annotations

from pathlib import Path

import pytest

from gpusuite_bench.suite_compare.catalog import (
    DiscoveryError,
    common_benchmarks,
    require_common_benchmarks,
    suite_benchmarks,
)


def _make_benchmark(root: Path, suite: str, name: str, *, with_profile: bool = True) -> None:
    d = root / suite / name
    d.mkdir(parents=True)
    if with_profile:
        (d / "profile").write_text("#!/bin/sh\n")


def test_suite_benchmarks_requires_profile_file(tmp_path: Path) -> None:
    _make_benchmark(tmp_path, "cuda", "backprop")
    _make_benchmark(tmp_path, "cuda", "lud", with_profile=False)
    (tmp_path / "cuda" / "README").write_text("not a benchmark")
    assert suite_benchmarks(tmp_path, "cuda") == {"backprop"}


def test_common_benchmarks_is_intersection(tmp_path: Path) -> None:
    for name in ("backprop", "bfs", "leukocyte"):
        _make_benchmark(tmp_path, "cuda", name)
    for name in ("bfs", "backprop", "nw"):
        _make_benchmark(tmp_path, "julia_cuda", name)

    assert common_benchmarks(tmp_path, ["cuda", "julia_cuda"]) == ["backprop", "bfs"]

    _make_benchmark(tmp_path, "julia_cuda", "hotspot")
    assert common_benchmarks(tmp_path, ["cuda", "julia_cuda"]) == ["backprop", "bfs"]


def test_missing_suite_yields_no_work(tmp_path: Path) -> None:
    _make_benchmark(tmp_path, "cuda", "bfs")
    assert common_benchmarks(tmp_path, ["cuda", "opencl"]) == []
    with pytest.raises(DiscoveryError):
        require_common_benchmarks(tmp_path, ["cuda", "opencl"])


def test_benchmark_named_total_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    for suite in ("cuda", "julia_cuda"):
        _make_benchmark(tmp_path, suite, "nn")
        _make_benchmark(tmp_path, suite, "total")

    assert common_benchmarks(tmp_path, ["cuda", "julia_cuda"]) == ["nn"]
    assert any("reserved" in r.getMessage() for r in caplog.records)
