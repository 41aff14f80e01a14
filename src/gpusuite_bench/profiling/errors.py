from __future__ import annotations

from pathlib import Path


class MeasurementError(RuntimeError):
    """Base class for failures that abort the measurement of one (suite, benchmark) pair."""


class ProfilerExecutionError(MeasurementError):
    def __init__(self, *, returncode: int, command: list[str], output: str) -> None:
        self.returncode = returncode
        self.command = command
        self.output = output
        super().__init__(f"Profiler failed with exit code {returncode}: {' '.join(command)}")


class NoOutputError(MeasurementError):
    pass


class AmbiguousOutputError(MeasurementError):
    def __init__(self, matches: list[Path]) -> None:
        self.matches = matches
        names = ", ".join(p.name for p in matches)
        super().__init__(f"Expected exactly one profiler trace, found {len(matches)}: {names}")


class TraceFormatError(MeasurementError):
    pass


class EmptyTraceError(MeasurementError):
    pass
