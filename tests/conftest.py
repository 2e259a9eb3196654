"""Shared pytest fixtures and fakes for the benchmark tests.

Provides:
- FakeBackend, a scripted ModelBackend that can fail in any phase
- FakeClock, a deterministic monotonic clock
- An on-disk test image generated with Pillow
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from vlmbench.errors import BackendLoadError, GenerationError, PreprocessError

PHASE_ERRORS = {
    "load": BackendLoadError,
    "preprocess": PreprocessError,
    "generate": GenerationError,
}


class FakeBackend:
    """ModelBackend that records its calls and fails where told to.

    ``failures`` maps ``(variant, device)`` to the phase that should raise.
    """

    def __init__(
        self,
        name: str,
        failures: dict[tuple[str, str], str] | None = None,
        release_error: Exception | None = None,
    ) -> None:
        self.name = name
        self.failures = failures or {}
        self.release_error = release_error
        self.calls: list[tuple[str, ...]] = []
        self.released: list[Any] = []
        self.closed = False

    def _maybe_fail(self, phase: str, model: dict[str, str]) -> None:
        if self.failures.get((model["variant"], model["device"])) == phase:
            msg = f"{self.name} {phase} exploded"
            raise PHASE_ERRORS[phase](msg)

    def load(self, variant: str, device: str, model_directory: Path) -> dict[str, str]:
        self.calls.append(("load", variant, device))
        model = {"variant": variant, "device": device}
        self._maybe_fail("load", model)
        return model

    def preprocess(self, model: dict[str, str], image_path: Path) -> str:
        self.calls.append(("preprocess", model["variant"], model["device"]))
        self._maybe_fail("preprocess", model)
        return f"pixels:{image_path.name}"

    def generate(self, model: dict[str, str], inputs: str, prompt: str) -> str:
        self.calls.append(("generate", model["variant"], model["device"]))
        self._maybe_fail("generate", model)
        return f"{self.name} says {prompt} about {inputs}"

    def release(self, model: dict[str, str]) -> None:
        self.released.append(model)
        if self.release_error is not None:
            raise self.release_error

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Clock returning scripted readings, or advancing by ``step`` once they run out."""

    def __init__(self, readings: list[float] | None = None, step: float = 0.5) -> None:
        self.readings = list(readings or [])
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        if self.readings:
            self.now = self.readings.pop(0)
        else:
            self.now += self.step
        return self.now


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    """A small RGB PNG on disk."""
    path = tmp_path / "test_image.png"
    Image.new("RGB", (32, 24), color=(200, 30, 30)).save(path)
    return path


@pytest.fixture
def model_dir(tmp_path: Path) -> Path:
    path = tmp_path / "models"
    path.mkdir()
    return path
