"""Model backends driven by the benchmark.

This module defines the capability set every backend provides (load,
preprocess, generate, release) and two HTTP implementations: an Ollama server
running a vision model, and the SmolVLM demo web API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import requests

from .errors import BackendLoadError, GenerationError
from .imaging import encode_png, encode_png_base64, load_image
from .logger import logger
from .models import DEVICE_CPU, DEVICE_GPU

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from .models import BenchmarkSettings, Device


@runtime_checkable
class ModelBackend(Protocol):
    """Contract for every inference backend the driver can benchmark.

    ``load`` returns an opaque handle that is passed back to the other methods.
    The driver calls ``release`` on it once the configuration is finished,
    whatever the outcome.
    """

    name: str

    def load(self, variant: str, device: Device, model_directory: Path) -> Any:
        """Load ``variant`` on ``device``. Raises BackendLoadError."""
        ...

    def preprocess(self, model: Any, image_path: Path) -> Any:
        """Turn the image into backend input. Raises PreprocessError."""
        ...

    def generate(self, model: Any, inputs: Any, prompt: str) -> str:
        """Generate text for the preprocessed image. Raises GenerationError."""
        ...

    def release(self, model: Any) -> None:
        """Free whatever ``load`` acquired."""
        ...


def _error_detail(response: requests.Response) -> str:
    """Pull the ``error`` field out of a JSON error body, falling back to the raw text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text.strip() or response.reason or "no response body"


@dataclass(frozen=True)
class OllamaModel:
    """Handle for a model loaded on an Ollama server."""

    tag: str
    options: dict[str, Any] = field(default_factory=dict)


class OllamaBackend:
    """Vision model served by Ollama's ``/api/generate`` endpoint.

    Variants are mapped to Ollama model tags with ``model_template``. CPU runs
    are forced by offloading zero layers to the GPU.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model_template: str = "smolvlm:{variant}",
        timeout: int = 300,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the backend with the server URL and a shared HTTP session."""
        self.base_url = base_url.rstrip("/")
        self.model_template = model_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/api/generate"
        logger.debug("📤 Sending POST request to %s (model=%s)", url, payload.get("model"))
        response = self.session.post(url, json=payload, timeout=self.timeout)
        logger.debug("📥 Response status: %d", response.status_code)
        if not response.ok:
            msg = f"Ollama returned HTTP {response.status_code}: {_error_detail(response)}"
            raise requests.HTTPError(msg, response=response)
        return response.json() or {}

    def load(self, variant: str, device: Device, model_directory: Path) -> OllamaModel:
        """Ask the server to load the model tag for ``variant`` into memory.

        Returns:
            Handle naming the tag and the options every later request must repeat.

        Raises:
            BackendLoadError: If the server is unreachable or cannot load the model.
        """
        tag = self.model_template.format(variant=variant)
        options: dict[str, Any] = {"num_gpu": 0} if device == DEVICE_CPU else {}
        logger.debug("Ollama serves weights itself, ignoring model directory %s", model_directory)
        try:
            # A generate request without a prompt only loads the model
            self._post({"model": tag, "stream": False, "options": options})
        except (requests.RequestException, ValueError) as e:
            msg = f"Failed to load {tag} on Ollama at {self.base_url}: {e}"
            raise BackendLoadError(msg) from e
        return OllamaModel(tag=tag, options=options)

    def preprocess(self, model: OllamaModel, image_path: Path) -> str:
        """Decode the image and encode it as base64 PNG for the JSON payload."""
        return encode_png_base64(load_image(image_path))

    def generate(self, model: OllamaModel, inputs: str, prompt: str) -> str:
        """Generate a description of the image.

        Returns:
            The generated text.

        Raises:
            GenerationError: If the request fails or the reply has no text.
        """
        payload = {
            "model": model.tag,
            "prompt": prompt,
            "images": [inputs],
            "stream": False,
            "options": model.options,
        }
        try:
            result = self._post(payload)
        except (requests.RequestException, ValueError) as e:
            msg = f"Generation with {model.tag} failed: {e}"
            raise GenerationError(msg) from e

        if "response" not in result:
            msg = f"Ollama reply for {model.tag} has no response field"
            raise GenerationError(msg)
        logger.debug(
            "📋 Response stats: eval_count=%d, total_duration=%dms",
            result.get("eval_count", 0),
            result.get("total_duration", 0) // 1_000_000,
        )
        return str(result["response"])

    def release(self, model: OllamaModel) -> None:
        """Unload the model so the next configuration starts from a cold server."""
        try:
            self._post({"model": model.tag, "keep_alive": 0})
        except (requests.RequestException, ValueError) as e:
            logger.warning("⚠️ Could not unload %s: %s", model.tag, e)

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()


@dataclass(frozen=True)
class WebModel:
    """Handle for the model held by a SmolVLM web API server."""

    variant: str
    device: str


class SmolVLMWebBackend:
    """SmolVLM demo web API (``/api/load``, ``/api/info``, ``/api/analyze``).

    The server is started with a fixed model size and picks its own device, so
    loading only succeeds when the requested variant matches the served one.
    """

    name = "smolvlm-web"

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        timeout: int = 300,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the backend with the server URL and a shared HTTP session."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self, variant: str, device: Device, model_directory: Path) -> WebModel:
        """Load the server's model and check it serves ``variant``.

        Returns:
            Handle for the served model.

        Raises:
            BackendLoadError: If loading fails or the server serves another size.
        """
        if device == DEVICE_GPU:
            logger.debug("SmolVLM web API selects its own device, GPU preference is advisory")
        logger.debug("SmolVLM web API loads from its own MODEL_PATH, not %s", model_directory)
        try:
            response = self.session.post(f"{self.base_url}/api/load", timeout=self.timeout)
            if not response.ok:
                msg = f"HTTP {response.status_code}: {_error_detail(response)}"
                raise BackendLoadError(msg)
            info = self.session.get(f"{self.base_url}/api/info", timeout=self.timeout)
            info.raise_for_status()
            data = info.json() or {}
        except (requests.RequestException, ValueError) as e:
            msg = f"Failed to load model on SmolVLM web API at {self.base_url}: {e}"
            raise BackendLoadError(msg) from e

        if not data.get("loaded"):
            msg = "SmolVLM web API reports the model is not loaded"
            raise BackendLoadError(msg)
        served = str(data.get("model_size", "")).lower()
        if served != variant.lower():
            msg = f"SmolVLM web API serves '{served}', requested '{variant}'"
            raise BackendLoadError(msg)
        return WebModel(variant=variant, device=device)

    def preprocess(self, model: WebModel, image_path: Path) -> bytes:
        """Decode the image and re-encode it as PNG for the multipart upload."""
        return encode_png(load_image(image_path))

    def generate(self, model: WebModel, inputs: bytes, prompt: str) -> str:
        """Upload the image with the prompt to ``/api/analyze``.

        Returns:
            The ``result`` text from the server.

        Raises:
            GenerationError: If the request fails or the server reports an error.
        """
        url = f"{self.base_url}/api/analyze"
        logger.debug("📤 Uploading %d byte image to %s", len(inputs), url)
        try:
            response = self.session.post(
                url,
                files={"image": ("image.png", inputs, "image/png")},
                data={"prompt": prompt},
                timeout=self.timeout,
            )
            if not response.ok:
                msg = f"HTTP {response.status_code}: {_error_detail(response)}"
                raise GenerationError(msg)
            data = response.json() or {}
        except (requests.RequestException, ValueError) as e:
            msg = f"Analysis request to {url} failed: {e}"
            raise GenerationError(msg) from e

        if "result" not in data:
            msg = "SmolVLM web API reply has no result field"
            raise GenerationError(msg)
        logger.debug("📋 Server processing time: %sms", data.get("processing_time_ms", "?"))
        return str(data["result"])

    def release(self, model: WebModel) -> None:
        """Nothing to free, the server keeps its model loaded."""

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()


def _ollama_from_settings(settings: BenchmarkSettings) -> OllamaBackend:
    return OllamaBackend(
        base_url=settings.ollama_url,
        model_template=settings.ollama_model_template,
        timeout=settings.request_timeout,
    )


def _smolvlm_web_from_settings(settings: BenchmarkSettings) -> SmolVLMWebBackend:
    return SmolVLMWebBackend(base_url=settings.smolvlm_api_url, timeout=settings.request_timeout)


# Backend identifier -> constructor taking the session settings
BACKENDS: dict[str, Callable[[BenchmarkSettings], ModelBackend]] = {
    OllamaBackend.name: _ollama_from_settings,
    SmolVLMWebBackend.name: _smolvlm_web_from_settings,
}


def create_backend(name: str, settings: BenchmarkSettings) -> ModelBackend:
    """Build the backend registered under ``name``.

    Returns:
        A configured backend instance.

    Raises:
        ValueError: If no backend is registered under ``name``.
    """
    try:
        factory = BACKENDS[name]
    except KeyError as e:
        msg = f"Unknown backend '{name}' (available: {', '.join(sorted(BACKENDS))})"
        raise ValueError(msg) from e
    return factory(settings)
