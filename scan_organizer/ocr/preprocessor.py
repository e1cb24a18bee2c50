"""Page image preparation for the vision model.

Synchronous, pure Pillow. Takes the rendered first page (PNG bytes),
downsizes it for the vision model, lifts faint scans, and returns JPEG
bytes plus the base64 string Ollama expects.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

DEFAULT_MAX_LONG_SIDE = 1600
JPEG_QUALITY = 85
LOW_CONTRAST_CUTOFF = 0.05


class ImagePreprocessingError(Exception):
    """Raised when a page image cannot be decoded or encoded."""

    def __init__(self, message: str, user_message: str) -> None:
        super().__init__(message)
        self.user_message = user_message


@dataclass(frozen=True)
class PreprocessedImage:
    """Result of image preprocessing."""

    jpeg_bytes: bytes
    base64_str: str
    original_width: int
    original_height: int
    final_width: int
    final_height: int


def preprocess_image(raw_bytes: bytes, max_long_side: int = DEFAULT_MAX_LONG_SIDE) -> PreprocessedImage:
    """Prepare a rendered page for the image-description call.

    Steps:
        1. Decode image bytes
        2. Resize if the longer side exceeds `max_long_side`
        3. Stretch contrast of washed-out scans
        4. Convert to RGB JPEG and base64-encode

    Raises:
        ImagePreprocessingError: If the image cannot be decoded or encoded.
    """
    try:
        img = Image.open(io.BytesIO(raw_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImagePreprocessingError(
            f"Cannot decode page image: {exc}",
            user_message="The rendered page could not be read.",
        ) from exc

    original_width, original_height = img.size

    long_side = max(img.size)
    if long_side > max_long_side:
        ratio = max_long_side / long_side
        img = img.resize((max(1, int(img.width * ratio)), max(1, int(img.height * ratio))), Image.LANCZOS)

    if img.mode != "RGB":
        img = img.convert("RGB")

    if _is_low_contrast(img):
        img = ImageOps.autocontrast(img)

    buf = io.BytesIO()
    try:
        img.save(buf, format="JPEG", quality=JPEG_QUALITY)
    except OSError as exc:
        raise ImagePreprocessingError(
            f"Cannot encode page image: {exc}",
            user_message="The rendered page could not be converted for the vision model.",
        ) from exc
    jpeg_bytes = buf.getvalue()

    return PreprocessedImage(
        jpeg_bytes=jpeg_bytes,
        base64_str=base64.b64encode(jpeg_bytes).decode("ascii"),
        original_width=original_width,
        original_height=original_height,
        final_width=img.width,
        final_height=img.height,
    )


def _is_low_contrast(img: Image.Image) -> bool:
    """Check whether the grayscale extrema spread is below the cutoff."""
    lo, hi = img.convert("L").getextrema()
    return (hi - lo) / 255.0 < LOW_CONTRAST_CUTOFF
