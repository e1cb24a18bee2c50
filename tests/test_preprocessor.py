"""Tests for page image preparation. No mocks, in-memory Pillow images."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from scan_organizer.ocr.preprocessor import (
    DEFAULT_MAX_LONG_SIDE,
    ImagePreprocessingError,
    PreprocessedImage,
    preprocess_image,
)


def _make_image(width: int = 100, height: int = 100, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    img = Image.new(mode, (width, height), color="red")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestPreprocessImage:
    def test_small_image_preserved(self) -> None:
        result = preprocess_image(_make_image(200, 150))
        assert isinstance(result, PreprocessedImage)
        assert (result.final_width, result.final_height) == (200, 150)

    def test_large_image_resized(self) -> None:
        result = preprocess_image(_make_image(3000, 2000))
        assert max(result.final_width, result.final_height) == DEFAULT_MAX_LONG_SIDE
        assert (result.original_width, result.original_height) == (3000, 2000)

    def test_custom_long_side(self) -> None:
        result = preprocess_image(_make_image(400, 800), max_long_side=200)
        assert (result.final_width, result.final_height) == (100, 200)

    def test_rgba_converted_to_rgb_jpeg(self) -> None:
        result = preprocess_image(_make_image(100, 100, mode="RGBA"))
        img = Image.open(io.BytesIO(result.jpeg_bytes))
        assert img.format == "JPEG"
        assert img.mode == "RGB"

    def test_corrupt_bytes_raises(self) -> None:
        with pytest.raises(ImagePreprocessingError) as exc_info:
            preprocess_image(b"not an image at all")
        assert exc_info.value.user_message == "The rendered page could not be read."

    def test_base64_matches_jpeg(self) -> None:
        result = preprocess_image(_make_image(300, 200))
        assert base64.b64decode(result.base64_str) == result.jpeg_bytes

    def test_low_contrast_stretched(self) -> None:
        img = Image.new("L", (100, 100), color=120)
        img.paste(125, (0, 0, 50, 100))
        buf = io.BytesIO()
        img.save(buf, format="PNG")

        result = preprocess_image(buf.getvalue())

        lo, hi = Image.open(io.BytesIO(result.jpeg_bytes)).convert("L").getextrema()
        assert hi - lo > 200
