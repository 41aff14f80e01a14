from __future__ import annotations

from pathlib import Path

import jsonschema
import pytest

from gpusuite_bench.profiling.trace import Sample
from gpusuite_bench.suite_compare.compare import compare
from gpusuite_bench.suite_compare.config import CompareConfig
from gpusuite_bench.suite_compare.export import (
    build_comparison_document,
    table_from_document,
    validate_comparison_schema,
)
from gpusuite_bench.suite_compare.model import MeasurementOutcome, SamplePool


def _pool() -> SamplePool:
    pool = SamplePool()
    pool.extend(
        [
            Sample(suite="cuda", benchmark="backprop", kernel="bpnn_layerforward", time=40.0),
            Sample(suite="cuda", benchmark="backprop", kernel="bpnn_adjust_weights", time=20.0),
            Sample(suite="julia_cuda", benchmark="backprop", kernel="bpnn_layerforward", time=44.0),
            Sample(suite="julia_cuda", benchmark="backprop", kernel="bpnn_adjust_weights", time=21.0),
        ]
    )
    return pool


def test_comparison_document_validates(tmp_path: Path) -> None:
    config = CompareConfig(root=tmp_path)
    table = compare(_pool(), suites=config.suites, baseline=config.baseline)
    outcome = MeasurementOutcome(
        suite="julia_cuda",
        benchmark="backprop",
        state="exhausted",
        runs=100,
        samples=[],
        noisy_kernels=["bpnn_adjust_weights"],
    )

    doc = build_comparison_document(
        table,
        config=config,
        outcomes=[outcome],
        started_at="2026-01-01T00:00:00Z",
        finished_at="2026-01-01T00:05:00Z",
        failures=[],
    )

    assert doc["run"]["status"] == "pass"
    assert doc["run"]["baseline"] == "cuda"
    assert doc["measurements"][0]["state"] == "exhausted"
    assert doc["rows"][-1] == {"benchmark": "total", "kernel": "total", "ratios": {"julia_cuda": pytest.approx(65.0 / 60.0)}}
    assert set(doc["run"]["git"]) == {"branch", "commit", "dirty"}

    restored = table_from_document(doc)
    assert restored == table


def test_comparison_document_with_failures_is_marked_fail(tmp_path: Path) -> None:
    config = CompareConfig(root=tmp_path, suites=["cuda", "julia_cuda"])
    table = compare(_pool(), suites=config.suites, baseline=config.baseline)
    doc = build_comparison_document(
        table,
        config=config,
        outcomes=[],
        started_at="2026-01-01T00:00:00Z",
        finished_at="2026-01-01T00:00:01Z",
        failures=["julia_cuda/nw: NoOutputError: no trace"],
    )
    assert doc["run"]["status"] == "fail"


def test_schema_rejects_unknown_measurement_state() -> None:
    doc = {
        "schema_version": "0.1.0",
        "run": {
            "started_at": "2026-01-01T00:00:00Z",
            "finished_at": "2026-01-01T00:00:01Z",
            "status": "pass",
            "failures": [],
            "baseline": "cuda",
            "suites": ["cuda", "julia_cuda"],
            "root": "/tmp/rodinia",
            "git": {"branch": "main", "commit": "deadbeef", "dirty": False},
            "convergence": {"min_iterations": 10, "max_uncertainty": 0.02, "max_runs": 100, "max_seconds": 300},
        },
        "measurements": [
            {"suite": "cuda", "benchmark": "nn", "state": "measuring", "runs": 1, "samples": 1, "noisy_kernels": []}
        ],
        "rows": [],
        "suite_totals": {},
    }
    with pytest.raises(jsonschema.ValidationError):
        validate_comparison_schema(doc)

    doc["measurements"][0]["state"] = "converged"
    validate_comparison_schema(doc)


def test_config_validation(tmp_path: Path) -> None:
    assert CompareConfig(root=tmp_path).baseline == "cuda"
    assert CompareConfig(root=tmp_path, baseline="julia_cuda").others == ("cuda",)
    with pytest.raises(ValueError):
        CompareConfig(root=tmp_path, baseline="opencl")
    with pytest.raises(ValueError):
        CompareConfig(root=tmp_path, suites=["cuda"])
    with pytest.raises(ValueError):
        CompareConfig(root=tmp_path, suites=["cuda", "cuda"])
