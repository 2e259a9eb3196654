"""Tests for the timing table, throughput and backend comparison."""

from __future__ import annotations

import pytest

from vlmbench.models import BenchmarkConfiguration, BenchmarkFailure, BenchmarkResult
from vlmbench.report import format_duration, render_comparison, render_table, throughput


def _result(
    backend: str,
    variant: str = "small",
    device: str = "cpu",
    preprocess: float = 0.25,
    output: str = "a cat",
) -> BenchmarkResult:
    return BenchmarkResult(
        configuration=BenchmarkConfiguration(backend, variant, device),  # type: ignore[arg-type]
        load_seconds=1.5,
        preprocess_seconds=preprocess,
        generate_seconds=2.0,
        output=output,
    )


def _failure(backend: str, variant: str = "small", device: str = "cpu") -> BenchmarkFailure:
    return BenchmarkFailure(
        configuration=BenchmarkConfiguration(backend, variant, device),  # type: ignore[arg-type]
        phase="load",
        error="model not found",
    )


class TestThroughput:
    def test_inverse_of_preprocess_time(self) -> None:
        assert throughput(_result("a", preprocess=0.25)) == 4.0

    def test_zero_preprocess_time_gives_zero(self) -> None:
        assert throughput(_result("a", preprocess=0.0)) == 0.0


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0.0, "0.000ms"), (0.0125, "12.500ms"), (1.0, "1.000s"), (75.25, "75.250s")],
    )
    def test_units(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected


class TestRenderTable:
    def test_header_and_rows(self) -> None:
        table = render_table([_result("ollama"), _result("smolvlm-web", device="gpu")])
        lines = table.splitlines()

        assert lines[0].split() == [
            "Backend", "Variant", "Device", "Load", "Time", "Process", "Time",
            "Generate", "Time", "Total", "Time",
        ]
        assert set(lines[1]) == {"-"}
        assert lines[2].split() == [
            "ollama", "small", "CPU", "1.500s", "250.000ms", "2.000s", "3.750s",
        ]
        assert lines[3].split()[:3] == ["smolvlm-web", "small", "GPU"]

    def test_failure_is_single_error_line(self) -> None:
        table = render_table([_failure("ollama")])

        assert table.splitlines()[2] == (
            "Error: ollama/small/CPU failed during load: model not found"
        )

    def test_multiline_error_stays_on_one_line(self) -> None:
        failure = BenchmarkFailure(
            configuration=BenchmarkConfiguration("ollama", "small", "cpu"),
            phase="load",
            error="HTTP 502: <html>\n<body>nginx</body>\n</html>\n",
        )

        lines = render_table([failure]).splitlines()

        assert len(lines) == 3
        assert lines[2] == (
            "Error: ollama/small/CPU failed during load: HTTP 502: <html> <body>nginx</body> </html>"
        )

    def test_failure_does_not_break_alignment(self) -> None:
        lines = render_table([_result("a"), _failure("b"), _result("c")]).splitlines()

        first, error, last = lines[2], lines[3], lines[4]
        assert error.startswith("Error:")
        assert first.index("1.500s") == last.index("1.500s")
        assert first.index("CPU") == last.index("CPU")
        assert lines[0].index("Load Time") == first.index("1.500s")

    def test_empty_outcomes_renders_header_only(self) -> None:
        assert len(render_table([]).splitlines()) == 2


class TestRenderComparison:
    def test_groups_with_two_results_included(self) -> None:
        text = render_comparison(
            [_result("a", output="a red square"), _result("b", output="a red box")]
        )

        assert "=== small on CPU ===" in text
        assert "a - Process: 250.000ms, Generate: 2.000s, Total: 3.750s, FPS: 4.00" in text
        assert "Outputs:" in text
        assert "a: a red square" in text
        assert "b: a red box" in text

    def test_single_result_groups_omitted(self) -> None:
        text = render_comparison(
            [
                _result("a", variant="small"),
                _result("b", variant="small"),
                _result("a", variant="large"),
                _result("a", variant="small", device="gpu"),
            ]
        )

        assert "=== small on CPU ===" in text
        assert "large" not in text
        assert "on GPU" not in text

    def test_failures_do_not_count_towards_group(self) -> None:
        assert render_comparison([_result("a"), _failure("b")]) == ""

    def test_arbitrary_variants_and_first_seen_order(self) -> None:
        text = render_comparison(
            [
                _result("a", variant="xl-int4"),
                _result("a", variant="256m"),
                _result("b", variant="xl-int4"),
                _result("b", variant="256m"),
            ]
        )

        assert text.index("=== xl-int4 on CPU ===") < text.index("=== 256m on CPU ===")

    def test_every_qualifying_group_present(self) -> None:
        outcomes = [
            _result(backend, variant, device)
            for backend in ("a", "b", "c")
            for variant in ("small", "medium")
            for device in ("cpu", "gpu")
        ]

        text = render_comparison(outcomes)

        assert text.count("=== ") == 4
