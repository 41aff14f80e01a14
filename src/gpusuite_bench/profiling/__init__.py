"""
Profiling utilities for GPU benchmark suites.

This package contains small, focused helpers that drive the external `nvprof`
profiler against a benchmark directory and turn its GPU-trace CSV output into
normalized per-kernel duration samples.
"""
