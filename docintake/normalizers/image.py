"""
Image normalization ahead of OCR.

Decoding and validation are strict: a file that cannot be accepted raises
ImageProcessingError and is never retried. Enhancement (white background,
grayscale, contrast, brightness, sharpen) is best-effort: if any filter
fails, the dimension-fit image is returned unprocessed.
"""

from __future__ import annotations

import io
import logging
import math

from PIL import Image, ImageFilter, UnidentifiedImageError

from docintake.config import ImageLimits
from docintake.exceptions import ImageProcessingError
from docintake.models import DocumentFile

logger = logging.getLogger(__name__)

SHARPEN_KERNEL = (0, -1, 0, -1, 5, -1, 0, -1, 0)


def _clamp(value: float) -> int:
    return max(0, min(255, int(round(value))))


def fit_dimensions(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """
    Scale (width, height) down to fit within the bounds, preserving aspect ratio.

    Images already within bounds are returned unchanged; images are never
    scaled up.
    """
    scale = min(1.0, max_width / width, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


class ImageNormalizer:
    """Loads uploaded images and prepares them for recognition.

    Usage:
        normalizer = ImageNormalizer()
        image = normalizer.normalize(file)  # PIL image, grayscale, sharpened
    """

    def __init__(self, limits: ImageLimits | None = None):
        self.limits = limits or ImageLimits()

    def validate(self, file: DocumentFile) -> None:
        """Reject unsupported types and oversize files without decoding."""
        if file.mime_type.lower() not in self.limits.allowed_types:
            raise ImageProcessingError(
                f"Unsupported image type: {file.mime_type}",
                ImageProcessingError.UNSUPPORTED_TYPE,
            )
        if file.size > self.limits.max_file_bytes:
            raise ImageProcessingError(
                f"Image too large: {file.size} bytes (max {self.limits.max_file_bytes})",
                ImageProcessingError.FILE_TOO_LARGE,
            )

    def decode(self, file: DocumentFile) -> Image.Image:
        """
        Validate and decode a file, fitting it within the maximum dimensions.

        Raises:
            ImageProcessingError: For unsupported type, oversize file,
                undecodable data or an image below the minimum dimensions.
        """
        self.validate(file)

        try:
            image = Image.open(io.BytesIO(file.data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(
                f"Failed to decode image {file.name}: {e}",
                ImageProcessingError.DECODE_FAILED,
            ) from e

        width, height = image.size
        if width < self.limits.min_width or height < self.limits.min_height:
            raise ImageProcessingError(
                f"Image too small: {width}x{height} "
                f"(min {self.limits.min_width}x{self.limits.min_height})",
                ImageProcessingError.IMAGE_TOO_SMALL,
            )

        target = fit_dimensions(width, height, self.limits.max_width, self.limits.max_height)
        if target != (width, height):
            logger.debug("Resizing %s from %dx%d to %dx%d", file.name, width, height, *target)
            image = image.resize(target, Image.Resampling.LANCZOS)

        return image

    def normalize(self, file: DocumentFile) -> Image.Image:
        """Decode a file and apply the OCR enhancement filters."""
        image = self.decode(file)
        try:
            return self.enhance(image)
        except Exception as e:
            logger.warning("Image enhancement failed for %s, using unprocessed image: %s", file.name, e)
            return image

    def enhance(self, image: Image.Image) -> Image.Image:
        """Flatten onto white, convert to grayscale, adjust contrast/brightness, sharpen."""
        flattened = self._flatten_on_white(image)

        # ITU-R 601-2 luma weights
        gray = flattened.convert("L")

        contrast = self.limits.contrast
        gray = gray.point([_clamp((v - 128) * contrast + 128) for v in range(256)])

        brightness = self.limits.brightness
        gray = gray.point([_clamp(v * brightness) for v in range(256)])

        return gray.filter(ImageFilter.Kernel((3, 3), SHARPEN_KERNEL, scale=1))

    @staticmethod
    def _flatten_on_white(image: Image.Image) -> Image.Image:
        """Composite onto a white canvas so transparent regions read as paper."""
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            canvas = Image.new("RGB", rgba.size, (255, 255, 255))
            canvas.paste(rgba, mask=rgba.getchannel("A"))
            return canvas
        return image.convert("RGB")
