#!/usr/bin/env python3
"""Vision-Language Model Backend Benchmark.

Benchmarking tool for comparing vision-language model inference backends on a
single image and prompt. Every combination of backend, model variant and device
is run through three measured phases:

1. Load the model variant on the requested device
2. Preprocess the image into the backend's input format
3. Generate text for the image and prompt

GPU configurations are skipped when no accelerator is detected. Results are
written to a timestamped directory together with system information, and a
comparison of backends running the same variant on the same device is logged.
"""

from __future__ import annotations

import argparse

from vlmbench.accelerator import detect_platform
from vlmbench.backends import BACKENDS, create_backend
from vlmbench.driver import run_matrix
from vlmbench.logger import logger
from vlmbench.models import DEFAULTS, BenchmarkSettings
from vlmbench.results_manager import ResultsManager


class BenchmarkRunner:
    """Main benchmark execution coordinator.

    Builds the configured backends, runs the matrix and hands every outcome to
    the results manager as soon as it is produced.
    """

    def __init__(self, settings: BenchmarkSettings) -> None:
        """Initialise runner with settings, backends and a results manager."""
        self.settings = settings
        self.backends = [create_backend(name, settings) for name in settings.backends]
        self.results_manager = ResultsManager(settings.output_path)

        logger.info("🎯 Benchmark initialised")
        logger.info("📁 Results directory: %s", self.results_manager.base_dir)

    def setup_environment(self) -> None:
        """Check inputs and record the host before any backend is touched.

        Raises:
            FileNotFoundError: If the benchmark image does not exist.
        """
        logger.info("⚙️ Setting up benchmark environment...")
        if not self.settings.image_path.is_file():
            msg = f"Image file not found: {self.settings.image_path}"
            raise FileNotFoundError(msg)

        platform_name = detect_platform()
        logger.info("🖥️ Detected platform: %s", platform_name)
        self.results_manager.save_system_info(platform_name)

    def run_benchmark(self) -> None:
        """Run every configuration, then save results and print the summary."""
        try:
            run_matrix(
                self.backends,
                self.settings.variants,
                self.settings.devices,
                self.settings.model_path,
                self.settings.image_path,
                self.settings.prompt,
                on_outcome=self.results_manager.add_outcome,
            )
        finally:
            self.results_manager.save_results()
            self.results_manager.print_summary()
            logger.info("🎉 Results saved to: %s", self.results_manager.base_dir)

    def close(self) -> None:
        """Close backend HTTP sessions and detach the results log file."""
        for backend in self.backends:
            close = getattr(backend, "close", None)
            if close is not None:
                close()
        self.results_manager.close()


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments for benchmark configuration.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Vision-Language Model Backend Benchmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Configuration (environment variables or .env file):
  VLM_BACKENDS           {DEFAULTS['VLM_BACKENDS']!r} (available: {', '.join(sorted(BACKENDS))})
  VLM_VARIANTS           {DEFAULTS['VLM_VARIANTS']!r}
  VLM_DEVICES            {DEFAULTS['VLM_DEVICES']!r}
  MODEL_PATH             {DEFAULTS['MODEL_PATH']!r}
  IMAGE_PATH             {DEFAULTS['IMAGE_PATH']!r}
  PROMPT                 {DEFAULTS['PROMPT']!r}
  OUTPUT_PATH            {DEFAULTS['OUTPUT_PATH']!r}
  OLLAMA_URL             {DEFAULTS['OLLAMA_URL']!r}
  OLLAMA_MODEL_TEMPLATE  {DEFAULTS['OLLAMA_MODEL_TEMPLATE']!r}
  SMOLVLM_API_URL        {DEFAULTS['SMOLVLM_API_URL']!r}
  REQUEST_TIMEOUT        {DEFAULTS['REQUEST_TIMEOUT']!r}
        """,
    )

    return parser.parse_args()


def main() -> None:
    """Main entry point for benchmark execution."""
    parse_arguments()  # Parse arguments for help message support

    settings = BenchmarkSettings.from_env()
    logger.info("🚀 Starting VLM benchmark")
    logger.info("🧩 Backends: %s", settings.backends)
    logger.info("📐 Variants: %s", settings.variants)
    logger.info("🖥️ Devices: %s", settings.devices)
    logger.info("🖼️ Image: %s", settings.image_path)
    logger.info("💬 Prompt: %s", settings.prompt)
    logger.info("🧮 Configurations before GPU check: %s", settings.total_configurations)

    runner = BenchmarkRunner(settings)
    try:
        runner.setup_environment()
        runner.run_benchmark()
    except KeyboardInterrupt:
        logger.info("⏹️ Benchmark interrupted by user")
    except Exception:
        logger.exception("💥 Benchmark failed")
        raise
    finally:
        runner.close()


if __name__ == "__main__":
    main()
