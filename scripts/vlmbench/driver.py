"""Benchmark driver for vision-language model backends.

Expands the (backend, variant, device) matrix, runs every configuration through
its three measured phases (load, preprocess, generate) one at a time and
collects one outcome per configuration in matrix order. A failing configuration
is recorded and the run moves on.
"""

from __future__ import annotations

import time
from itertools import product
from typing import TYPE_CHECKING

from .accelerator import probe_accelerator_available
from .errors import BenchmarkError
from .logger import logger
from .models import (
    DEVICE_GPU,
    DEVICES,
    BenchmarkConfiguration,
    BenchmarkFailure,
    BenchmarkResult,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path
    from typing import Any

    from .backends import ModelBackend
    from .models import BenchmarkOutcome, Device, Phase

    Clock = Callable[[], float]


def expand_matrix(
    backends: Sequence[str],
    variants: Sequence[str],
    devices: Sequence[str],
    *,
    accelerator_available: bool,
) -> list[BenchmarkConfiguration]:
    """Build the ordered configuration matrix.

    Backends vary slowest and devices fastest. Device names are matched
    case-insensitively. GPU entries are dropped, not failed, when no
    accelerator is available.

    Returns:
        Configurations in matrix order.

    Raises:
        ValueError: If a device is neither ``cpu`` nor ``gpu``.
    """
    usable = _usable_devices(devices, accelerator_available)
    return [
        BenchmarkConfiguration(backend=backend, variant=variant, device=device)
        for backend, variant, device in product(backends, variants, usable)
    ]


def _usable_devices(devices: Sequence[str], accelerator_available: bool) -> list[Device]:
    normalized = [device.lower() for device in devices]
    unknown = [device for device in normalized if device not in DEVICES]
    if unknown:
        msg = f"Unknown device(s): {', '.join(unknown)} (expected cpu or gpu)"
        raise ValueError(msg)
    return [
        device for device in normalized if accelerator_available or device != DEVICE_GPU
    ]


def _flatten(text: str) -> str:
    """Collapse newlines and runs of whitespace so an error fits on one line."""
    return " ".join(text.split())


def _probe_once(probe: Callable[[], bool]) -> bool:
    """Take the accelerator snapshot for one run. A raising probe means no accelerator."""
    try:
        return bool(probe())
    except Exception as e:
        logger.warning("⚠️ Accelerator probe failed, GPU configurations skipped: %s", e)
        return False


def _describe(error: Exception) -> str:
    if isinstance(error, BenchmarkError):
        return _flatten(str(error))
    return _flatten(f"{type(error).__name__}: {error}")


def _release(backend: ModelBackend, model: Any, configuration: BenchmarkConfiguration) -> None:
    try:
        backend.release(model)
    except Exception:
        logger.exception("❌ Failed to release %s", configuration.label)


def run_configuration(
    configuration: BenchmarkConfiguration,
    backend: ModelBackend,
    model_directory: Path,
    image_path: Path,
    prompt: str,
    clock: Clock = time.perf_counter,
) -> BenchmarkOutcome:
    """Run one configuration through load, preprocess and generate.

    Each phase is timed on its own. The first failing phase ends the run and
    the remaining phases are skipped. The loaded model is always released.

    Returns:
        BenchmarkResult on success, BenchmarkFailure naming the failed phase otherwise.
    """
    phase: Phase = "load"
    loaded = False
    model: Any = None
    try:
        start = clock()
        model = backend.load(configuration.variant, configuration.device, model_directory)
        loaded = True
        load_seconds = clock() - start

        phase = "preprocess"
        start = clock()
        inputs = backend.preprocess(model, image_path)
        preprocess_seconds = clock() - start

        phase = "generate"
        start = clock()
        output = backend.generate(model, inputs, prompt)
        generate_seconds = clock() - start
    except Exception as e:
        error = _describe(e)
        logger.error("❌ %s failed during %s: %s", configuration.label, phase, error)
        return BenchmarkFailure(configuration=configuration, phase=phase, error=error)
    finally:
        if loaded:
            _release(backend, model, configuration)

    result = BenchmarkResult(
        configuration=configuration,
        load_seconds=load_seconds,
        preprocess_seconds=preprocess_seconds,
        generate_seconds=generate_seconds,
        output=output,
    )
    logger.info(
        "  ✅ %s | load %.3fs | preprocess %.3fs | generate %.3fs | total %.3fs",
        configuration.label,
        result.load_seconds,
        result.preprocess_seconds,
        result.generate_seconds,
        result.total_seconds,
    )
    return result


def run_matrix(
    backends: Sequence[ModelBackend],
    variants: Sequence[str],
    devices: Sequence[str],
    model_directory: Path,
    image_path: Path,
    prompt: str,
    *,
    accelerator_probe: Callable[[], bool] = probe_accelerator_available,
    clock: Clock = time.perf_counter,
    on_outcome: Callable[[BenchmarkOutcome], None] | None = None,
) -> list[BenchmarkOutcome]:
    """Benchmark every (backend, variant, device) combination sequentially.

    The accelerator is probed once, so every configuration of the run sees the
    same availability. ``on_outcome`` is called after each configuration, which
    lets callers keep partial results if the run is interrupted. A backend
    listed more than once is run once per listing.

    Returns:
        One outcome per attempted configuration, in matrix order.

    Raises:
        ValueError: If a device is unknown.
    """
    accelerator_available = _probe_once(accelerator_probe)
    logger.info("🖥️ Accelerator available: %s", "yes" if accelerator_available else "no")

    usable = _usable_devices(devices, accelerator_available)
    runs = [
        (backend, BenchmarkConfiguration(backend=backend.name, variant=variant, device=device))
        for backend, variant, device in product(backends, variants, usable)
    ]
    logger.info("🎬 Starting benchmark with %s configurations", len(runs))

    outcomes: list[BenchmarkOutcome] = []
    for count, (backend, configuration) in enumerate(runs, start=1):
        logger.info("🧪 [%s/%s] Running %s", count, len(runs), configuration.label)
        outcome = run_configuration(
            configuration,
            backend,
            model_directory,
            image_path,
            prompt,
            clock=clock,
        )
        outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)

    failures = sum(isinstance(outcome, BenchmarkFailure) for outcome in outcomes)
    logger.info("🏁 Benchmark finished: %s succeeded, %s failed", len(outcomes) - failures, failures)
    return outcomes
