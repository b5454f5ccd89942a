"""
OCR providers, engine lifecycle and recognition post-processing.

Example:
    >>> from docintake.ocr import OcrProviderFactory
    >>> factory = OcrProviderFactory()
    >>> provider = factory.get_provider("doctr")
    >>> result = await provider.extract_text(file, language="auto")
    >>> result.detected_language
    'eng'
"""

from docintake.ocr.engine import EngineState, OcrEngineManager
from docintake.ocr.factory import (
    OcrProviderFactory,
    ProviderHealth,
    TrackedOcrProvider,
)
from docintake.ocr.language import LanguageDetection, LanguageDetector
from docintake.ocr.layout import group_lines, reading_order_text
from docintake.ocr.providers import (
    DoctrProvider,
    OcrProvider,
    RecognitionCache,
    TesseractProvider,
)

__all__ = [
    # Providers
    "OcrProvider",
    "DoctrProvider",
    "TesseractProvider",
    "RecognitionCache",
    # Factory
    "OcrProviderFactory",
    "TrackedOcrProvider",
    "ProviderHealth",
    # Engine
    "OcrEngineManager",
    "EngineState",
    # Language
    "LanguageDetector",
    "LanguageDetection",
    # Layout
    "group_lines",
    "reading_order_text",
]
