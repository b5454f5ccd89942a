"""
Pytest configuration and fixtures for docintake tests.

OCR engines, the classification model and the database are replaced by
in-process fakes; images and PDFs are generated with Pillow and PyMuPDF.
"""

from __future__ import annotations

import io

import fitz
import pytest
from PIL import Image, ImageDraw

from docintake.models import AUTO_LANGUAGE, DocumentFile, OcrResult
from docintake.ocr.providers import OcrProvider
from docintake.services import ClassificationService, InMemoryPersistenceService

# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeEngine:
    """Stand-in for a loaded recognition engine."""

    def __init__(self, name: str = "engine"):
        self.name = name
        self.disposed = False

    def dispose(self):
        self.disposed = True


class FakeOcrProvider(OcrProvider):
    """Provider returning canned text, or raising a configured error."""

    def __init__(
        self,
        name: str = "fake",
        text: str = "recognized text",
        confidence: float = 0.9,
        detected_language: str | None = None,
        error: Exception | None = None,
        supported_languages: tuple[str, ...] = ("auto", "eng", "spa"),
    ):
        self.name = name
        self.text = text
        self.confidence = confidence
        self.detected_language = detected_language
        self.error = error
        self.supported_languages = supported_languages
        self.calls: list[tuple[str, str]] = []
        self.disposed = 0

    def get_supported_file_types(self) -> list[str]:
        return ["image/png", "image/jpeg"]

    async def extract_text(self, file, on_progress=None, language=AUTO_LANGUAGE, options=None):
        self.calls.append((file.name, language))
        if on_progress is not None:
            on_progress(50)
        if self.error is not None:
            raise self.error
        if on_progress is not None:
            on_progress(100)
        return OcrResult(
            text=self.text,
            confidence=self.confidence,
            language=self.detected_language or language,
            detected_language=self.detected_language,
        )

    async def dispose(self) -> None:
        self.disposed += 1


class FakeClassifier(ClassificationService):
    """Returns a fixed label and records what it was asked to classify."""

    def __init__(self, label: str = "Invoice", error: Exception | None = None):
        self.label = label
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def classify(self, text, model_id, on_progress=None):
        self.calls.append((text, model_id))
        if on_progress is not None:
            on_progress(100)
        if self.error is not None:
            raise self.error
        return self.label


class RecordingPersistence(InMemoryPersistenceService):
    """In-memory persistence that logs call order and can fail on demand."""

    def __init__(self, fail_on: str | None = None):
        super().__init__()
        self.fail_on = fail_on
        self.calls: list[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")

    async def store_document(self, file, metadata):
        self._record("store_document")
        return await super().store_document(file, metadata)

    async def save_document_record(self, fields):
        self._record("save_document_record")
        return await super().save_document_record(fields)

    async def save_segments(self, document_id, segments):
        self._record("save_segments")
        await super().save_segments(document_id, segments)


# =============================================================================
# BUILDERS
# =============================================================================


def image_bytes(
    size: tuple[int, int] = (200, 100),
    mode: str = "RGB",
    color=(255, 255, 255),
    fmt: str = "PNG",
    text: str | None = None,
) -> bytes:
    """Encode a solid image, optionally with black text drawn on it."""
    image = Image.new(mode, size, color)
    if text:
        ImageDraw.Draw(image).text((10, 10), text, fill=0 if mode == "L" else (0, 0, 0))
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def pdf_bytes(pages: list[str | None]) -> bytes:
    """
    Build a PDF; a string page gets a text layer, None gets only an image.
    """
    doc = fitz.open()
    for content in pages:
        page = doc.new_page(width=595, height=842)
        if content is None:
            scan = image_bytes((400, 200), text="Scanned text")
            page.insert_image(fitz.Rect(72, 72, 472, 272), stream=scan)
        else:
            page.insert_text((72, 72), content, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_image():
    """Factory for encoded image bytes."""
    return image_bytes


@pytest.fixture
def make_pdf():
    """Factory for PDF bytes from a list of page texts (None = scanned page)."""
    return pdf_bytes


@pytest.fixture
def png_file() -> DocumentFile:
    """A small valid PNG upload."""
    return DocumentFile("scan.png", "image/png", image_bytes((300, 120), text="Hello"))


@pytest.fixture
def make_provider():
    """Factory for FakeOcrProvider instances."""
    return FakeOcrProvider


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def make_classifier():
    return FakeClassifier


@pytest.fixture
def persistence() -> RecordingPersistence:
    return RecordingPersistence()


@pytest.fixture
def make_persistence():
    return RecordingPersistence


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    sleep.delays = delays
    return sleep
