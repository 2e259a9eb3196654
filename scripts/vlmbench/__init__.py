"""Helper modules for vision-language model benchmarking.

This package contains the benchmark driver, the model backends it drives,
and the reporting and results handling around them, organised by
responsibility.
"""

from __future__ import annotations
