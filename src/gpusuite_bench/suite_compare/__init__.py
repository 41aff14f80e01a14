"""GPU benchmark suite comparison (Python orchestrator layer).

This package discovers the benchmarks shared by several implementations of the
same benchmark suite, profiles each of them with nvprof until the per-kernel
timings are stable, and reports every suite's kernel times relative to a
baseline suite.
"""

from __future__ import annotations
