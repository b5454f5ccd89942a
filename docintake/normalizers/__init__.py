"""
Normalizers applied around recognition.

- ImageNormalizer: validation, decoding and enhancement of input images
- clean_ocr_text: whitespace cleanup of recognized text
- sanitize_for_storage: NUL replacement before persistence
"""

from docintake.normalizers.image import ImageNormalizer, fit_dimensions
from docintake.normalizers.text import clean_ocr_text, sanitize_for_storage

__all__ = [
    "ImageNormalizer",
    "fit_dimensions",
    "clean_ocr_text",
    "sanitize_for_storage",
]
