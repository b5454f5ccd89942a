"""
OCR providers.

Two interchangeable providers implement the OcrProvider contract:

- DoctrProvider: docTR engine behind an OcrEngineManager. Higher accuracy,
  language auto-detection, per-image result cache, retried recognition and
  spatial reading-order reassembly of the returned blocks.
- TesseractProvider: pytesseract with a fixed language set. No cache, no
  auto-detection; text and confidence come straight from Tesseract.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import TYPE_CHECKING, Any

from docintake.exceptions import (
    DocIntakeError,
    EngineInitializationError,
    ImageProcessingError,
    RecognitionError,
)
from docintake.models import AUTO_LANGUAGE, DEFAULT_LANGUAGE, OcrBlock, OcrResult
from docintake.normalizers.image import ImageNormalizer
from docintake.normalizers.text import clean_ocr_text
from docintake.ocr.engine import OcrEngineManager, predict_raw_blocks
from docintake.ocr.language import LanguageDetector
from docintake.ocr.layout import DEFAULT_LINE_THRESHOLD_PX, reading_order_text

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from PIL import Image

    from docintake.models import DocumentFile

    ProgressCallback = Callable[[float], None]

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_RECOGNITION_ATTEMPTS = 3
RECOGNITION_RETRY_DELAY = 1.0  # seconds, multiplied by attempt number
CACHE_MAX_ENTRIES = 10
CACHE_TTL_SECONDS = 300.0


def _no_progress(_progress: float) -> None:
    pass


# =============================================================================
# PROVIDER CONTRACT
# =============================================================================


class OcrProvider(ABC):
    """Abstract base for OCR providers."""

    name: str = "base"
    supported_languages: tuple[str, ...] = ()

    @abstractmethod
    async def extract_text(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str = AUTO_LANGUAGE,
        options: Mapping[str, Any] | None = None,
    ) -> OcrResult:
        """Recognize the text of an image file.

        Args:
            file: Image to recognize.
            on_progress: Called with progress from 0 to 100.
            language: Language tag, or "auto" where supported.
            options: Provider-specific options.
        """
        pass

    @abstractmethod
    def get_supported_file_types(self) -> list[str]:
        """MIME types this provider accepts."""
        pass

    def supports_file_type(self, mime_type: str) -> bool:
        return mime_type.lower() in self.get_supported_file_types()

    async def dispose(self) -> None:
        """Release provider resources. Safe to call repeatedly."""
        return None


# =============================================================================
# RESULT CACHE
# =============================================================================


def image_key(image: Image.Image) -> str:
    """Content identity of a decoded image."""
    digest = hashlib.sha1()
    digest.update(f"{image.mode}:{image.width}x{image.height}:".encode())
    digest.update(image.tobytes())
    return digest.hexdigest()


class RecognitionCache:
    """
    Bounded map of image identity to OcrResult.

    Entries expire after ``ttl`` seconds, checked lazily on lookup. When full,
    inserting evicts the entry with the oldest timestamp.
    """

    def __init__(
        self,
        max_entries: int = CACHE_MAX_ENTRIES,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, OcrResult]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> OcrResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.ttl:
            del self._entries[key]
            return None
        return result

    def put(self, key: str, result: OcrResult) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            self.evict_oldest()
        self._entries[key] = (self._clock(), result)

    def evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k][0])
        del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()


# =============================================================================
# RAW BLOCK HANDLING
# =============================================================================


def validate_raw_blocks(raw: Any) -> list[dict[str, Any]]:
    """
    Check the engine returned a list of blocks, each with text or words.

    Raises:
        RecognitionError: If the shape is not as expected.
    """
    if not isinstance(raw, list):
        raise RecognitionError(f"Invalid recognition result: expected list, got {type(raw).__name__}")
    for index, block in enumerate(raw):
        if not isinstance(block, dict):
            raise RecognitionError(f"Invalid recognition result: block {index} is not a mapping")
        has_text = isinstance(block.get("text"), str)
        has_words = isinstance(block.get("words"), list)
        if not (has_text or has_words):
            raise RecognitionError(f"Invalid recognition result: block {index} has no text or words")
    return raw


def _word_text(word: Mapping[str, Any]) -> str:
    return str(word.get("value") or word.get("text") or "")


def block_confidence(raw: Mapping[str, Any]) -> float:
    """Block score when present, otherwise the mean of the word scores."""
    score = raw.get("confidence", raw.get("score"))
    if score is None:
        scores = [
            w.get("confidence", w.get("score"))
            for w in raw.get("words") or []
            if w.get("confidence", w.get("score")) is not None
        ]
        score = sum(scores) / len(scores) if scores else 0.0
    return max(0.0, min(1.0, float(score)))


def to_block(raw: Mapping[str, Any]) -> OcrBlock:
    """Convert one raw engine block to an OcrBlock with cleaned text."""
    text = raw.get("text")
    if not isinstance(text, str):
        text = " ".join(_word_text(w) for w in raw.get("words") or [])
    box = raw.get("box")
    polygon = tuple(float(v) for v in box) if box is not None and len(box) == 8 else None
    return OcrBlock(text=clean_ocr_text(text), confidence=block_confidence(raw), box=polygon)


# =============================================================================
# DOCTR PROVIDER
# =============================================================================


class DoctrProvider(OcrProvider):
    """
    docTR-backed provider with caching, retries and reading-order reassembly.

    Attributes:
        engine_manager: Lifecycle owner of the docTR predictor.
        normalizer: Image normalizer applied before recognition.
        detector: Language detector used when language is "auto".
        cache: Per-image result cache.

    Example:
        >>> provider = DoctrProvider()
        >>> result = await provider.extract_text(file, print, "auto")
        >>> result.detected_language
        'spa'
    """

    name = "doctr"
    supported_languages = ("auto", "eng", "spa", "fra", "deu", "por", "ita", "cat")

    def __init__(
        self,
        engine_manager: OcrEngineManager | None = None,
        normalizer: ImageNormalizer | None = None,
        detector: LanguageDetector | None = None,
        cache: RecognitionCache | None = None,
        *,
        predict: Callable[[Any, Image.Image], Any] = predict_raw_blocks,
        attempts: int = MAX_RECOGNITION_ATTEMPTS,
        retry_delay: float = RECOGNITION_RETRY_DELAY,
        line_threshold: float = DEFAULT_LINE_THRESHOLD_PX,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.engine_manager = engine_manager or OcrEngineManager()
        self.normalizer = normalizer or ImageNormalizer()
        self.detector = detector or LanguageDetector()
        self.cache = cache if cache is not None else RecognitionCache()
        self._predict = predict
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.line_threshold = line_threshold
        self._sleep = sleep

    def get_supported_file_types(self) -> list[str]:
        return list(self.normalizer.limits.allowed_types)

    async def extract_text(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str = AUTO_LANGUAGE,
        options: Mapping[str, Any] | None = None,
    ) -> OcrResult:
        report = on_progress or _no_progress
        options = options or {}

        try:
            report(10)
            image = self.normalizer.normalize(file)
            key = f"{image_key(image)}:{language}"

            if options.get("use_cache", True):
                cached = self.cache.get(key)
                if cached is not None:
                    logger.debug("Cache hit for %s", file.name)
                    report(100)
                    return cached

            report(20)
            engine = await self.engine_manager.get_engine()
            report(40)

            raw = await self._recognize_with_retry(engine, image)
            report(80)

            result = self._build_result(raw, language)
            self.cache.put(key, result)
            report(100)
            return result

        except ImageProcessingError:
            raise
        except EngineInitializationError:
            self.cache.clear()
            raise
        except Exception as e:
            logger.error("docTR OCR failed for %s: %s", file.name, e)
            await self.dispose()
            if isinstance(e, DocIntakeError):
                raise
            raise RecognitionError(f"OCR processing failed: {e}") from e

    async def _recognize_with_retry(self, engine: Any, image: Image.Image) -> list[dict[str, Any]]:
        """Recognize with linear backoff, validating each raw result."""
        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                raw = await asyncio.to_thread(self._predict, engine, image)
                return validate_raw_blocks(raw)
            except Exception as e:
                last_error = e
                logger.warning("Recognition attempt %d/%d failed: %s", attempt, self.attempts, e)
                if attempt < self.attempts:
                    await self._sleep(self.retry_delay * attempt)

        raise RecognitionError(
            f"Recognition failed after {self.attempts} attempts: {last_error}"
        ) from last_error

    def _build_result(self, raw: list[dict[str, Any]], language: str) -> OcrResult:
        """Post-process raw blocks into a reading-ordered OcrResult."""
        blocks = [to_block(b) for b in raw]
        blocks = [b for b in blocks if b.text]
        text = clean_ocr_text(reading_order_text(blocks, self.line_threshold))
        confidence = sum(b.confidence for b in blocks) / len(blocks) if blocks else 0.0

        detected = None
        if language == AUTO_LANGUAGE:
            detection = self.detector.detect(text)
            detected = detection.language
            language = detection.language
            logger.debug("Detected language %s (%.2f)", detection.language, detection.confidence)

        return OcrResult(
            text=text,
            confidence=confidence,
            language=language,
            detected_language=detected,
            blocks=tuple(blocks),
        )

    async def dispose(self) -> None:
        self.cache.clear()
        await self.engine_manager.dispose()


# =============================================================================
# TESSERACT PROVIDER
# =============================================================================


def tesseract_image_to_data(image: Image.Image, lang: str, config: str = "") -> dict[str, list]:
    """Run Tesseract and return its word-level data table."""
    import pytesseract

    return pytesseract.image_to_data(
        image, lang=lang, config=config, output_type=pytesseract.Output.DICT
    )


class TesseractProvider(OcrProvider):
    """
    pytesseract-backed provider with a fixed language set.

    "auto" (or any unsupported tag) recognizes with all supported languages
    at once; no language is detected.
    """

    name = "tesseract"
    supported_languages = ("eng", "spa")

    def __init__(
        self,
        normalizer: ImageNormalizer | None = None,
        *,
        image_to_data: Callable[..., dict[str, list]] = tesseract_image_to_data,
        default_language: str = DEFAULT_LANGUAGE,
    ):
        self.normalizer = normalizer or ImageNormalizer()
        self._image_to_data = image_to_data
        self.default_language = default_language

    def get_supported_file_types(self) -> list[str]:
        return list(self.normalizer.limits.allowed_types)

    async def extract_text(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str = AUTO_LANGUAGE,
        options: Mapping[str, Any] | None = None,
    ) -> OcrResult:
        report = on_progress or _no_progress
        options = options or {}

        if language in self.supported_languages:
            lang, reported = language, language
        else:
            lang, reported = "+".join(self.supported_languages), self.default_language

        try:
            report(0)
            image = self.normalizer.decode(file)
            report(20)
            data = await asyncio.to_thread(
                self._image_to_data, image, lang, options.get("config", "")
            )
            report(90)
            text, confidence = self._parse_data(data)
            report(100)
        except DocIntakeError:
            raise
        except Exception as e:
            logger.error("Tesseract OCR failed for %s: %s", file.name, e)
            raise RecognitionError(f"OCR processing failed: {e}") from e

        return OcrResult(text=text, confidence=confidence, language=reported)

    @staticmethod
    def _parse_data(data: Mapping[str, list]) -> tuple[str, float]:
        """Rebuild lines from Tesseract's block/paragraph/line numbering."""
        lines: list[list[str]] = []
        line_blocks: list[int] = []
        current: tuple[int, int, int] | None = None
        confidences: list[float] = []

        for i, word in enumerate(data.get("text", [])):
            if not word or not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            if key != current:
                lines.append([])
                line_blocks.append(key[0])
                current = key
            lines[-1].append(word.strip())

            conf = float(data["conf"][i])
            if conf >= 0:  # -1 means no confidence
                confidences.append(conf / 100.0)

        parts: list[str] = []
        for index, words in enumerate(lines):
            if index > 0:
                parts.append("\n\n" if line_blocks[index] != line_blocks[index - 1] else "\n")
            parts.append(" ".join(words))

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return "".join(parts), confidence
