"""Error types raised while benchmarking model backends.

Each inference phase has its own error so a failed run can be traced back to
the phase that stopped it.
"""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base class for errors raised by benchmark phases."""


class BackendLoadError(BenchmarkError):
    """The backend could not load the requested variant on the requested device."""


class PreprocessError(BenchmarkError):
    """The image could not be turned into backend input."""


class GenerationError(BenchmarkError):
    """The backend failed to generate text."""


class ProbeError(BenchmarkError):
    """Accelerator probing failed. Only used internally; callers see ``False``."""
