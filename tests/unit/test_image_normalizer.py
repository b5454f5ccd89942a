"""
Unit tests for image normalization.
"""

from __future__ import annotations

import pytest
from PIL import Image

from docintake.config import ImageLimits
from docintake.exceptions import ImageProcessingError
from docintake.models import DocumentFile
from docintake.normalizers.image import ImageNormalizer, fit_dimensions


@pytest.fixture
def normalizer() -> ImageNormalizer:
    return ImageNormalizer()


# =============================================================================
# DIMENSIONS
# =============================================================================


class TestFitDimensions:
    """Test aspect-preserving dimension fitting."""

    def test_within_bounds_unchanged(self):
        assert fit_dimensions(800, 600, 2048, 2048) == (800, 600)

    def test_wide_image_bounded_by_width(self):
        assert fit_dimensions(4096, 1024, 2048, 2048) == (2048, 512)

    def test_tall_image_bounded_by_height(self):
        assert fit_dimensions(1000, 4000, 2048, 2048) == (512, 2048)

    def test_never_upscales(self):
        assert fit_dimensions(60, 60, 2048, 2048) == (60, 60)

    @pytest.mark.parametrize("size", [(3000, 2999), (2049, 100), (5000, 5000), (777, 3333)])
    def test_result_within_bounds(self, size):
        width, height = fit_dimensions(*size, 2048, 2048)
        assert width <= 2048 and height <= 2048
        assert abs(width / height - size[0] / size[1]) < 0.05


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:
    """Input errors raise ImageProcessingError with a code."""

    def test_unsupported_type(self, normalizer, make_image):
        file = DocumentFile("scan.tiff", "image/tiff", make_image(fmt="TIFF"))

        with pytest.raises(ImageProcessingError) as exc_info:
            normalizer.normalize(file)

        assert exc_info.value.code == ImageProcessingError.UNSUPPORTED_TYPE

    def test_file_too_large(self, make_image):
        normalizer = ImageNormalizer(ImageLimits(max_file_bytes=100))
        file = DocumentFile("big.bmp", "image/bmp", make_image(fmt="BMP"))

        with pytest.raises(ImageProcessingError) as exc_info:
            normalizer.normalize(file)

        assert exc_info.value.code == ImageProcessingError.FILE_TOO_LARGE

    def test_image_too_small(self, normalizer, make_image):
        file = DocumentFile("tiny.png", "image/png", make_image((40, 40)))

        with pytest.raises(ImageProcessingError) as exc_info:
            normalizer.normalize(file)

        assert exc_info.value.code == ImageProcessingError.IMAGE_TOO_SMALL

    def test_undecodable_data(self, normalizer):
        file = DocumentFile("broken.png", "image/png", b"not an image at all")

        with pytest.raises(ImageProcessingError) as exc_info:
            normalizer.normalize(file)

        assert exc_info.value.code == ImageProcessingError.DECODE_FAILED

    def test_mime_type_case_insensitive(self, normalizer, make_image):
        file = DocumentFile("scan.PNG", "IMAGE/PNG", make_image())

        assert normalizer.normalize(file).size == (200, 100)


# =============================================================================
# NORMALIZATION
# =============================================================================


class TestNormalize:
    """Test the enhancement pipeline."""

    @pytest.mark.parametrize(
        "mime_type,fmt",
        [("image/png", "PNG"), ("image/jpeg", "JPEG"), ("image/bmp", "BMP"), ("image/webp", "WEBP")],
    )
    def test_supported_formats_become_grayscale(self, normalizer, make_image, mime_type, fmt):
        file = DocumentFile("scan", mime_type, make_image(fmt=fmt, text="Total"))

        image = normalizer.normalize(file)

        assert image.mode == "L"
        assert image.size == (200, 100)

    def test_large_image_fitted(self, normalizer, make_image):
        file = DocumentFile("wide.png", "image/png", make_image((4096, 1024)))

        image = normalizer.normalize(file)

        assert image.size == (2048, 512)

    def test_transparency_flattened_to_white(self, normalizer, make_image):
        file = DocumentFile("clear.png", "image/png", make_image(mode="RGBA", color=(0, 0, 0, 0)))

        image = normalizer.normalize(file)

        assert image.getpixel((100, 50)) == 255

    def test_dark_text_stays_dark(self, normalizer, make_image):
        file = DocumentFile("black.png", "image/png", make_image(color=(0, 0, 0)))

        image = normalizer.normalize(file)

        assert image.getpixel((100, 50)) == 0

    def test_enhancement_failure_returns_decoded_image(self, normalizer, make_image, monkeypatch):
        def broken(image):
            raise RuntimeError("filter crashed")

        monkeypatch.setattr(normalizer, "enhance", broken)
        file = DocumentFile("wide.png", "image/png", make_image((4096, 1024)))

        image = normalizer.normalize(file)

        assert isinstance(image, Image.Image)
        assert image.mode == "RGB"
        assert image.size == (2048, 512)

    def test_decode_does_not_enhance(self, normalizer, make_image):
        file = DocumentFile("scan.png", "image/png", make_image())

        assert normalizer.decode(file).mode == "RGB"
