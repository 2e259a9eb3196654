"""Image loading and encoding for backend preprocessing.

Backends call these helpers during the preprocess phase, so decoding and
re-encoding the benchmark image is part of the measured time.
"""

from __future__ import annotations

import base64
import io
from typing import TYPE_CHECKING

from PIL import Image, UnidentifiedImageError

from .errors import PreprocessError

if TYPE_CHECKING:
    from pathlib import Path


def load_image(path: Path) -> Image.Image:
    """Open and fully decode an image file as RGB.

    Returns:
        The decoded RGB image.

    Raises:
        PreprocessError: If the file is missing or is not a readable image.
    """
    try:
        with Image.open(path) as image:
            image.load()
            return image.convert("RGB")
    except FileNotFoundError as e:
        msg = f"Image file not found: {path}"
        raise PreprocessError(msg) from e
    except (UnidentifiedImageError, OSError) as e:
        msg = f"Malformed image {path}: {e}"
        raise PreprocessError(msg) from e


def encode_png(image: Image.Image) -> bytes:
    """Encode an image as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def encode_png_base64(image: Image.Image) -> str:
    """Encode an image as base64 PNG text for JSON payloads."""
    return base64.b64encode(encode_png(image)).decode("ascii")
