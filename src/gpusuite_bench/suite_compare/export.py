from __future__ import annotations

import json
import subprocess
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .config import CompareConfig
from .model import ComparisonTable, MeasurementOutcome

SCHEMA_VERSION = "0.1.0"


def _default_schema_path() -> Path:
    return Path(__file__).resolve().parent / "schemas" / "comparison.schema.json"


def validate_comparison_schema(doc: dict[str, Any], *, schema_path: Path | None = None) -> None:
    schema_path = _default_schema_path() if schema_path is None else schema_path
    schema = json.loads(schema_path.read_text())
    Draft202012Validator(schema).validate(doc)


def now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def git_info(repo_root: Path) -> dict[str, Any]:
    try:
        branch = (
            subprocess.check_output(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        commit = (
            subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        dirty = bool(
            subprocess.check_output(["git", "status", "--porcelain"], cwd=repo_root, stderr=subprocess.DEVNULL)
            .decode()
            .strip()
        )
        return {"branch": branch, "commit": commit, "dirty": dirty}
    except (OSError, subprocess.CalledProcessError):
        return {"branch": "unknown", "commit": "unknown", "dirty": False}


def build_comparison_document(
    table: ComparisonTable,
    *,
    config: CompareConfig,
    outcomes: Iterable[MeasurementOutcome],
    started_at: str,
    finished_at: str,
    failures: list[str],
) -> dict[str, Any]:
    doc = {
        "schema_version": SCHEMA_VERSION,
        "run": {
            "started_at": started_at,
            "finished_at": finished_at,
            "status": "fail" if failures else "pass",
            "failures": list(failures),
            "baseline": config.baseline,
            "suites": list(config.suites),
            "root": str(config.root),
            "git": git_info(config.root),
            "convergence": config.convergence.to_dict(),
        },
        "measurements": [o.to_dict() for o in outcomes],
        "rows": [
            {
                "benchmark": row["benchmark"],
                "kernel": row["kernel"],
                "ratios": {s: row[s] for s in table.suites},
            }
            for row in table.rows()
        ],
        "suite_totals": table.suite_totals(),
    }
    validate_comparison_schema(doc)
    return doc


def table_from_document(doc: dict[str, Any]) -> ComparisonTable:
    validate_comparison_schema(doc)
    baseline = doc["run"]["baseline"]
    others = [s for s in doc["run"]["suites"] if s != baseline]
    rows = doc["rows"]
    return ComparisonTable(
        baseline=baseline,
        suites=others,
        benchmarks=[r["benchmark"] for r in rows],
        kernels=[r["kernel"] for r in rows],
        ratios={s: [r["ratios"][s] for r in rows] for s in others},
    )


def write_json(path: Path, doc: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc, indent=2, sort_keys=True) + "\n")


def load_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text())
