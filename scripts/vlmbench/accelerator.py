"""Accelerator detection for benchmarking.

This module answers two questions about the host: which platform the benchmark
runs on, and whether a GPU can be used. Both checks are best effort; probing
never raises.
"""

from __future__ import annotations

import platform
import subprocess
from pathlib import Path

from .errors import ProbeError
from .logger import logger

JETSON_RELEASE_FILE = Path("/etc/nv_tegra_release")
DEVICE_TREE_MODEL_FILE = Path("/proc/device-tree/model")
NVIDIA_SMI_TIMEOUT = 10


def detect_platform() -> str:
    """Detect the host platform family.

    Returns:
        ``nvidia_jetson``, ``raspberry_pi`` or ``desktop``.
    """
    if JETSON_RELEASE_FILE.is_file():
        return "nvidia_jetson"
    try:
        if "Raspberry Pi" in DEVICE_TREE_MODEL_FILE.read_text(errors="ignore"):
            return "raspberry_pi"
    except OSError:
        pass
    return "desktop"


def _is_apple_silicon() -> bool:
    return platform.system() == "Darwin" and platform.machine() == "arm64"


def _query_nvidia_smi() -> bool:
    """Run ``nvidia-smi`` and report whether it succeeded.

    Raises:
        ProbeError: If the tool is missing or does not answer in time.
    """
    try:
        result = subprocess.run(
            ["nvidia-smi"],
            check=False,
            capture_output=True,
            text=True,
            timeout=NVIDIA_SMI_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        msg = f"nvidia-smi could not be queried: {e}"
        raise ProbeError(msg) from e
    return result.returncode == 0


def probe_accelerator_available() -> bool:
    """Check whether a GPU is available for inference.

    Apple silicon is reported as unavailable, Jetson boards as available, and
    everything else depends on ``nvidia-smi`` exiting successfully.

    Returns:
        True if an accelerator was detected. Probe failures count as False.
    """
    if _is_apple_silicon():
        logger.debug("🍎 Apple silicon host, GPU benchmarks disabled")
        return False
    if detect_platform() == "nvidia_jetson":
        logger.debug("🟢 NVIDIA Jetson detected")
        return True
    try:
        available = _query_nvidia_smi()
    except ProbeError as e:
        logger.debug("GPU probe failed, treating as unavailable: %s", e)
        return False
    logger.debug("🔍 nvidia-smi reports GPU %s", "available" if available else "unavailable")
    return available
