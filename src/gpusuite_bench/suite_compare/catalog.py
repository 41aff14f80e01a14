from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from gpusuite_bench.profiling.nvprof import PROFILE_TARGET

from .model import TOTAL

logger = logging.getLogger(__name__)


class DiscoveryError(RuntimeError):
    """No benchmark is present in every suite."""


def suite_benchmarks(root: Path, suite: str) -> set[str]:
    """Names of the sub-directories of `<root>/<suite>` that contain a `profile` entry point."""
    suite_dir = root / suite
    if not suite_dir.is_dir():
        logger.warning("Suite directory does not exist: %s", suite_dir)
        return set()
    found = {p.name for p in suite_dir.iterdir() if p.is_dir() and (p / PROFILE_TARGET).is_file()}
    if TOTAL in found:
        logger.warning("Ignoring benchmark directory %s: the name is reserved for the total row", suite_dir / TOTAL)
        found.discard(TOTAL)
    return found


def common_benchmarks(root: Path, suites: Iterable[str]) -> list[str]:
    per_suite = [suite_benchmarks(root, s) for s in suites]
    if not per_suite:
        return []
    common = set.intersection(*per_suite)
    logger.info("Found %d benchmark(s) common to all suites", len(common))
    return sorted(common)


def require_common_benchmarks(root: Path, suites: Iterable[str]) -> list[str]:
    suites = list(suites)
    common = common_benchmarks(root, suites)
    if not common:
        raise DiscoveryError(f"No benchmark directory with a `{PROFILE_TARGET}` file is shared by suites {suites} under {root}")
    return common
