"""Results management for VLM benchmarking.

This module provides the ResultsManager class, which owns the results
directory of one benchmark session: the log file, captured system information,
the per-configuration CSV and the rendered text report.
"""

from __future__ import annotations

import csv
import logging
import platform
import subprocess
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .logger import LOG_FORMAT, logger
from .models import BenchmarkFailure, BenchmarkResult
from .report import render_comparison, render_table, throughput

if TYPE_CHECKING:
    from pathlib import Path

    from .models import BenchmarkOutcome

CSV_FIELDS = [
    "backend",
    "variant",
    "device",
    "status",
    "failed_phase",
    "load_seconds",
    "preprocess_seconds",
    "generate_seconds",
    "total_seconds",
    "images_per_second",
    "error",
    "output",
]

SYSTEM_COMMANDS = [
    (["nvidia-smi", "-q"], "GPU Information"),
    (["lscpu"], "CPU Information"),
    (["free", "-h"], "Memory Information"),
]


def outcome_row(outcome: BenchmarkOutcome) -> dict[str, object]:
    """Flatten an outcome into a CSV row. Failures carry zero durations."""
    config = outcome.configuration
    row: dict[str, object] = {
        "backend": config.backend,
        "variant": config.variant,
        "device": config.device,
    }
    if isinstance(outcome, BenchmarkFailure):
        row.update(
            status="failed",
            failed_phase=outcome.phase,
            load_seconds=0.0,
            preprocess_seconds=0.0,
            generate_seconds=0.0,
            total_seconds=0.0,
            images_per_second=0.0,
            error=outcome.error,
            output="",
        )
    else:
        row.update(
            status="ok",
            failed_phase="",
            load_seconds=round(outcome.load_seconds, 6),
            preprocess_seconds=round(outcome.preprocess_seconds, 6),
            generate_seconds=round(outcome.generate_seconds, 6),
            total_seconds=round(outcome.total_seconds, 6),
            images_per_second=round(throughput(outcome), 3),
            error="",
            output=outcome.output,
        )
    return row


class ResultsManager:
    """Manages benchmark results storage, file operations, and summary output.

    Outcomes are collected as the driver produces them, so an interrupted run
    can still be saved.
    """

    def __init__(self, output_path: Path) -> None:
        """Create a timestamped results directory under ``output_path`` and log into it."""
        timestamp = datetime.now(tz=UTC).strftime("%Y%m%d_%H%M%S")
        self.base_dir = output_path / f"benchmark_results_{timestamp}"
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.outcomes: list[BenchmarkOutcome] = []

        self.file_handler = logging.FileHandler(self.base_dir / "benchmark.log", encoding="utf-8")
        self.file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(self.file_handler)

    def close(self) -> None:
        """Detach and close the log file handler."""
        logger.removeHandler(self.file_handler)
        self.file_handler.close()

    def save_system_info(self, platform_name: str) -> None:
        """Capture host information next to the results for reproducibility.

        Each external command is optional; a missing tool or timeout is noted
        in the file instead of aborting.
        """
        info_file = self.base_dir / "system_info.txt"

        try:
            with info_file.open("w", encoding="utf-8") as f:
                f.write("=== System Information ===\n")
                f.write(f"Date: {datetime.now(tz=UTC)}\n")
                f.write(f"Platform: {platform_name}\n")
                f.write(f"Kernel: {platform.release()}\n")
                f.write(f"Architecture: {platform.machine()}\n")
                f.write(f"Python: {platform.python_version()}\n")

                for cmd, label in SYSTEM_COMMANDS:
                    f.write(f"\n=== {label} ===\n")
                    try:
                        result = subprocess.run(
                            cmd, check=False, capture_output=True, text=True, timeout=10
                        )
                        f.write(result.stdout or f"{cmd[0]} returned no output\n")
                    except subprocess.TimeoutExpired:
                        f.write(f"{label} timeout\n")
                    except OSError as e:
                        f.write(f"{label} unavailable: {e}\n")
        except OSError:
            logger.exception("Failed to save system info")

    def add_outcome(self, outcome: BenchmarkOutcome) -> None:
        """Add an outcome to the collection."""
        self.outcomes.append(outcome)

    def save_results(self) -> None:
        """Write the per-configuration CSV and the text report."""
        individual_file = self.base_dir / "individual_results.csv"
        with individual_file.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()
            writer.writerows(outcome_row(outcome) for outcome in self.outcomes)

        report_file = self.base_dir / "report.txt"
        comparison = render_comparison(self.outcomes)
        report_file.write_text(
            render_table(self.outcomes)
            + "\n\n=== Backend Comparison ===\n"
            + (comparison or "No variant/device pair has more than one successful backend.")
            + "\n",
            encoding="utf-8",
        )
        logger.info("💾 Saved %s outcomes to %s", len(self.outcomes), self.base_dir)

    def print_summary(self) -> None:
        """Log the timing table, the backend comparison and the success count."""
        if not self.outcomes:
            logger.warning("No results to summarise")
            return

        logger.info("=== BENCHMARK RESULTS ===")
        for line in render_table(self.outcomes).splitlines():
            logger.info("%s", line)

        comparison = render_comparison(self.outcomes)
        if comparison:
            logger.info("=== BACKEND COMPARISON ===")
            for line in comparison.splitlines():
                logger.info("%s", line)

        succeeded = sum(isinstance(o, BenchmarkResult) for o in self.outcomes)
        logger.info("✓ %s/%s configurations succeeded", succeeded, len(self.outcomes))
