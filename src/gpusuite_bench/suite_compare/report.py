from __future__ import annotations

from pathlib import Path
from typing import Any

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

from .export import load_json, table_from_document
from .model import TOTAL, ComparisonTable


def _format_ratio(v: float | None) -> str:
    if v is None:
        return "NA"
    return f"{v:.3f}"


def _add_table(md: MdUtils, header: list[str], rows: list[list[str]]) -> None:
    cells = [*header]
    for r in rows:
        cells.extend(r)
    md.new_table(columns=len(header), rows=len(rows) + 1, text=cells, text_align="left")


def write_report(doc: dict[str, Any], table: ComparisonTable, *, out_dir: Path) -> Path:
    """Render `report.md` into out_dir and return its path."""
    run = doc.get("run", {})
    md = MdUtils(file_name=str(out_dir / "report"), title="GPU Suite Comparison Report")
    md.new_list(
        [
            f"Baseline: `{table.baseline}`",
            f"Compared suites: {', '.join(f'`{s}`' for s in table.suites) or 'none'}",
            f"Branch: `{run.get('git', {}).get('branch', '')}`",
            f"Commit: `{run.get('git', {}).get('commit', '')}`",
            f"Status: `{run.get('status', '')}`",
        ]
    )

    md.new_header(level=1, title="Suite Totals")
    md.new_paragraph(
        "Mean over all benchmarks of each suite's total time divided by the baseline's total time "
        "(lower than 1.0 means faster than the baseline)."
    )
    totals = table.suite_totals()
    _add_table(md, ["suite", "total ratio"], [[s, _format_ratio(totals.get(s))] for s in table.suites])

    benchmarks = sorted({b for b in table.benchmarks if b != TOTAL})
    md.new_header(level=1, title="Benchmarks")
    if not benchmarks:
        md.new_paragraph("No benchmark has data for every suite.")
    for benchmark in benchmarks:
        md.new_header(level=2, title=benchmark)
        by_kernel = table.by_benchmark(benchmark)
        _add_table(
            md,
            ["kernel", *table.suites],
            [[f"`{k}`", *(_format_ratio(v.get(s)) for s in table.suites)] for k, v in by_kernel.items()],
        )

    unverified = [m for m in doc.get("measurements", []) if m.get("state") == "exhausted"]
    md.new_header(level=1, title="Unverified Measurements")
    if unverified:
        md.new_paragraph("The measurement budget ran out before these pairs met the accuracy criterion.")
        md.new_list(
            [
                f"`{m['suite']}/{m['benchmark']}` after {m['runs']} run(s): {', '.join(m['noisy_kernels']) or 'n/a'}"
                for m in unverified
            ]
        )
    else:
        md.new_paragraph("All measured pairs met the accuracy criterion.")

    failures = run.get("failures") or []
    if failures:
        md.new_header(level=1, title="Failures")
        md.new_list([str(f) for f in failures])

    md.create_md_file()
    return out_dir / "report.md"


def report_run(*, out_dir: Path) -> int:
    doc_path = out_dir / "comparison.json"
    if not doc_path.exists():
        raise FileNotFoundError(f"Missing comparison.json at {doc_path}")

    doc = load_json(doc_path)
    write_report(doc, table_from_document(doc), out_dir=out_dir)
    return 0
