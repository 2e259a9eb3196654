"""Data models and configuration classes for VLM benchmarking.

This module contains the dataclasses shared across the benchmark harness:
the configuration of one run, its successful result or failure, and the
settings a whole benchmark session is driven by.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias

from dotenv import dotenv_values

Device: TypeAlias = Literal["cpu", "gpu"]
Phase: TypeAlias = Literal["load", "preprocess", "generate"]

DEVICE_CPU: Device = "cpu"
DEVICE_GPU: Device = "gpu"
DEVICES: tuple[Device, ...] = (DEVICE_CPU, DEVICE_GPU)


def device_label(device: str) -> str:
    """Return the label used for a device in reports ("CPU" or "GPU")."""
    return device.upper()


@dataclass(frozen=True)
class BenchmarkConfiguration:
    """One point of the benchmark matrix: which backend runs which variant where."""

    backend: str
    variant: str
    device: Device

    @property
    def label(self) -> str:
        """Short ``backend/variant/DEVICE`` label for logs and error lines."""
        return f"{self.backend}/{self.variant}/{device_label(self.device)}"


@dataclass(frozen=True)
class BenchmarkResult:
    """Timings and output of one successful configuration run.

    Durations are wall-clock seconds for each phase. The total is always derived
    from the three phases and never stored.
    """

    configuration: BenchmarkConfiguration
    load_seconds: float
    preprocess_seconds: float
    generate_seconds: float
    output: str

    @property
    def total_seconds(self) -> float:
        """Sum of the load, preprocess and generate durations."""
        return self.load_seconds + self.preprocess_seconds + self.generate_seconds


@dataclass(frozen=True)
class BenchmarkFailure:
    """A configuration run that stopped in one of its phases."""

    configuration: BenchmarkConfiguration
    phase: Phase
    error: str


BenchmarkOutcome: TypeAlias = BenchmarkResult | BenchmarkFailure


# Defaults applied when neither the environment nor the .env file sets a value
DEFAULTS = {
    "VLM_BACKENDS": "ollama",
    "VLM_VARIANTS": "small",
    "VLM_DEVICES": "cpu,gpu",
    "MODEL_PATH": "models/smolvlm",
    "IMAGE_PATH": "test_image.jpg",
    "PROMPT": "What objects are in this image?",
    "OUTPUT_PATH": ".",
    "OLLAMA_URL": "http://localhost:11434",
    "OLLAMA_MODEL_TEMPLATE": "smolvlm:{variant}",
    "SMOLVLM_API_URL": "http://localhost:5000",
    "REQUEST_TIMEOUT": "300",
}


@dataclass
class BenchmarkSettings:
    """Configuration settings for a benchmark session.

    Values come from the process environment first, then the .env file, then
    ``DEFAULTS``.
    """

    backends: list[str]
    variants: list[str]
    devices: list[Device]
    model_path: Path
    image_path: Path
    prompt: str
    output_path: Path
    ollama_url: str
    ollama_model_template: str
    smolvlm_api_url: str
    request_timeout: int

    @classmethod
    def from_env(cls, env_file: str | Path = ".env") -> BenchmarkSettings:
        """Create settings from the environment layered over a .env file.

        Returns:
            BenchmarkSettings populated from the environment, the .env file and defaults.

        Raises:
            ValueError: If a list is empty, a device is unknown or the timeout is invalid.
        """
        file_values = dotenv_values(env_file)

        def get(key: str) -> str:
            value = os.environ.get(key)
            if value is None:
                value = file_values.get(key)
            if value is None:
                value = DEFAULTS[key]
            return value.strip()

        def get_list(key: str) -> list[str]:
            items = [item.strip() for item in get(key).split(",") if item.strip()]
            if not items:
                msg = f"Environment variable {key} must list at least one value"
                raise ValueError(msg)
            return items

        def get_int(key: str) -> int:
            value = get(key)
            try:
                return int(value)
            except ValueError as e:
                msg = f"Invalid integer value for environment variable {key}: {value}"
                raise ValueError(msg) from e

        devices = [device.lower() for device in get_list("VLM_DEVICES")]
        unknown = [device for device in devices if device not in DEVICES]
        if unknown:
            msg = f"Unknown device(s) in VLM_DEVICES: {', '.join(unknown)} (expected cpu or gpu)"
            raise ValueError(msg)

        return cls(
            backends=get_list("VLM_BACKENDS"),
            variants=get_list("VLM_VARIANTS"),
            devices=devices,  # type: ignore[arg-type]
            model_path=Path(get("MODEL_PATH")),
            image_path=Path(get("IMAGE_PATH")),
            prompt=get("PROMPT"),
            output_path=Path(get("OUTPUT_PATH")),
            ollama_url=get("OLLAMA_URL").rstrip("/"),
            ollama_model_template=get("OLLAMA_MODEL_TEMPLATE"),
            smolvlm_api_url=get("SMOLVLM_API_URL").rstrip("/"),
            request_timeout=get_int("REQUEST_TIMEOUT"),
        )

    @property
    def total_configurations(self) -> int:
        """Upper bound on configurations, before accelerator filtering."""
        return len(self.backends) * len(self.variants) * len(self.devices)
