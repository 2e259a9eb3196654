"""Reporting for benchmark outcomes.

Renders the per-configuration timing table, the image throughput figure and a
side-by-side comparison of backends that ran the same variant on the same
device.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import BenchmarkFailure, BenchmarkResult, device_label

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import BenchmarkOutcome

TIME_COLUMN_WIDTH = 15
TIME_HEADERS = ("Load Time", "Process Time", "Generate Time", "Total Time")
MIN_RESULTS_TO_COMPARE = 2


def format_duration(seconds: float) -> str:
    """Format seconds as milliseconds below one second, seconds above."""
    if seconds < 1:
        return f"{seconds * 1000:.3f}ms"
    return f"{seconds:.3f}s"


def throughput(result: BenchmarkResult) -> float:
    """Images per second implied by the preprocessing time.

    Returns:
        ``1 / preprocess_seconds``, or 0.0 when the measured time is zero.
    """
    seconds = result.preprocess_seconds
    return 1.0 / seconds if seconds > 0 else 0.0


def render_table(outcomes: Sequence[BenchmarkOutcome]) -> str:
    """Render one row per outcome, failures as a single error line.

    Returns:
        The table as text, header and rule included.
    """
    backend_width = max([len("Backend")] + [len(o.configuration.backend) for o in outcomes])
    variant_width = max([len("Variant")] + [len(o.configuration.variant) for o in outcomes])
    device_width = len("Device")

    def row(backend: str, variant: str, device: str, times: Sequence[str]) -> str:
        cells = [
            f"{backend:<{backend_width}}",
            f"{variant:<{variant_width}}",
            f"{device:<{device_width}}",
            *(f"{cell:<{TIME_COLUMN_WIDTH}}" for cell in times),
        ]
        return " ".join(cells).rstrip()

    header = row("Backend", "Variant", "Device", TIME_HEADERS)
    lines = [header, "-" * len(header)]
    for outcome in outcomes:
        config = outcome.configuration
        if isinstance(outcome, BenchmarkFailure):
            error = " ".join(outcome.error.split())
            lines.append(f"Error: {config.label} failed during {outcome.phase}: {error}")
            continue
        lines.append(
            row(
                config.backend,
                config.variant,
                device_label(config.device),
                [
                    format_duration(outcome.load_seconds),
                    format_duration(outcome.preprocess_seconds),
                    format_duration(outcome.generate_seconds),
                    format_duration(outcome.total_seconds),
                ],
            )
        )
    return "\n".join(lines)


def render_comparison(outcomes: Sequence[BenchmarkOutcome]) -> str:
    """Compare backends that ran the same variant on the same device.

    Successful results are grouped by (variant, device) in the order the groups
    first appear. Groups with a single result have nothing to compare and are
    left out.

    Returns:
        The comparison blocks as text, empty when no group qualifies.
    """
    groups: dict[tuple[str, str], list[BenchmarkResult]] = {}
    for outcome in outcomes:
        if isinstance(outcome, BenchmarkResult):
            key = (outcome.configuration.variant, outcome.configuration.device)
            groups.setdefault(key, []).append(outcome)

    sections = []
    for (variant, device), results in groups.items():
        if len(results) < MIN_RESULTS_TO_COMPARE:
            continue
        lines = [f"=== {variant} on {device_label(device)} ==="]
        lines.extend(
            f"{r.configuration.backend} - Process: {format_duration(r.preprocess_seconds)}, "
            f"Generate: {format_duration(r.generate_seconds)}, "
            f"Total: {format_duration(r.total_seconds)}, "
            f"FPS: {throughput(r):.2f}"
            for r in results
        )
        lines.append("")
        lines.append("Outputs:")
        lines.extend(f"{r.configuration.backend}: {r.output}" for r in results)
        sections.append("\n".join(lines))
    return "\n\n".join(sections)
