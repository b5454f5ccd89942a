"""
Document intake orchestrator.

This module wires the processing stages together for one uploaded file:

- OCR: PdfPageProcessor for PDFs, an OCR provider for images, nothing for DOCX
- Extraction: classification text selection, structure detection, markup
- Classification: the ClassificationService, normalized to the closed label set
- Storage: PersistenceService, blob first, then the record, then segments

Progress is reported on one 0-100 scale (OCR 5-75, classification 75-90,
storage 90-100). Every failure surfaces as a ProcessingError naming its stage.
Nothing is persisted until all core outputs have been computed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from docintake.config import IntakeConfig
from docintake.exceptions import ProcessingError, UnsupportedFormatError
from docintake.extractors.markup import render
from docintake.extractors.segments import build_segments
from docintake.extractors.selection import select_classification_text
from docintake.extractors.structure import DocumentStructureDetector
from docintake.models import DOCX_MIME, PDF_MIME, ExtractionStrategy, ProcessedDocument
from docintake.normalizers.text import sanitize_for_storage
from docintake.ocr.factory import OcrProviderFactory
from docintake.readers.pdf_reader import PdfPageProcessor
from docintake.services import normalize_classification

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from docintake.models import DocumentFile, DocumentStructure
    from docintake.ocr.providers import ProgressCallback
    from docintake.services import ClassificationService, PersistenceService

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/bmp")
EXTRACTABLE_TYPES = (PDF_MIME, *IMAGE_TYPES, DOCX_MIME)

# Slices of the overall progress scale
OCR_PROGRESS = (5.0, 75.0)
CLASSIFICATION_PROGRESS = (75.0, 90.0)
STORAGE_PROGRESS = (90.0, 100.0)


def needs_ocr(mime_type: str) -> bool:
    """PDFs and images go through the OCR path."""
    mime_type = mime_type.lower()
    return mime_type == PDF_MIME or mime_type.startswith("image/")


def can_extract_content(mime_type: str) -> bool:
    return mime_type.lower() in EXTRACTABLE_TYPES


def _scaled(callback: ProgressCallback | None, bounds: tuple[float, float]) -> ProgressCallback:
    """Map a stage's 0-100 progress into its slice of the overall scale."""
    low, high = bounds

    def report(progress: float) -> None:
        if callback is not None:
            progress = max(0.0, min(100.0, progress))
            callback(low + (high - low) * progress / 100.0)

    return report


@contextmanager
def processing_stage(stage: str, file_name: str) -> Iterator[None]:
    """Re-raise any failure inside the block as a ProcessingError for ``stage``."""
    try:
        yield
    except ProcessingError:
        raise
    except Exception as e:
        logger.error("%s failed for %s: %s", stage, file_name, e)
        raise ProcessingError.for_stage(stage, e) from e


@dataclass
class TextExtraction:
    """Raw text of a document as produced by the OCR stage."""

    text: str
    detected_language: str | None = None
    ocr_processed: bool = False


@dataclass
class BatchResult:
    """Outcome of process_batch."""

    succeeded: list[ProcessedDocument] = field(default_factory=list)
    failed: list[tuple[str, ProcessingError]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class DocumentIntake:
    """
    Runs uploaded documents through OCR, extraction, classification and storage.

    Example:
        >>> intake = DocumentIntake()
        >>> doc = await intake.process(file, classifier, persistence, print)
        >>> doc.classification, doc.document_id
        ('Invoice', '7f0c...')
        >>> await intake.dispose()
    """

    def __init__(
        self,
        config: IntakeConfig | None = None,
        factory: OcrProviderFactory | None = None,
    ) -> None:
        self.config = config or IntakeConfig()
        self.factory = factory or OcrProviderFactory.from_config(self.config.ocr, self.config.images)
        self.pdf_processor = PdfPageProcessor(self.factory, self.config.ocr)
        self.detector = DocumentStructureDetector(self.config.extraction.page_break_markers)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def extract_text(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str | None = None,
        provider_name: str | None = None,
    ) -> TextExtraction:
        """
        Extract the raw text of a file.

        Raises:
            UnsupportedFormatError: If the file type cannot be processed.
        """
        mime_type = file.mime_type.lower()
        if not can_extract_content(mime_type):
            raise UnsupportedFormatError(f'File type "{file.mime_type}" is not supported')

        language = language or self.config.ocr.language
        provider_name = provider_name or self.config.ocr.provider

        if mime_type == PDF_MIME:
            extraction = await self.pdf_processor.extract(file, on_progress, language, provider_name)
            logger.info(
                "Extracted %d pages from %s (%d via OCR)",
                extraction.page_count,
                file.name,
                len(extraction.ocr_pages),
            )
            return TextExtraction(
                text=sanitize_for_storage(extraction.text),
                detected_language=extraction.detected_language,
                ocr_processed=True,
            )

        if needs_ocr(mime_type):
            provider = self.factory.get_provider(provider_name)
            result = await provider.extract_text(file, on_progress, language)
            logger.info("Recognized %s with %s (confidence %.2f)", file.name, provider.name, result.confidence)
            return TextExtraction(
                text=sanitize_for_storage(result.text),
                detected_language=result.detected_language,
                ocr_processed=True,
            )

        # DOCX content is not extracted
        logger.debug("No text extraction for %s", file.mime_type)
        return TextExtraction(text="")

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def process(
        self,
        file: DocumentFile,
        classifier: ClassificationService,
        persistence: PersistenceService,
        on_progress: ProgressCallback | None = None,
        *,
        language: str | None = None,
        provider_name: str | None = None,
        strategy: ExtractionStrategy | None = None,
    ) -> ProcessedDocument:
        """
        Process one document end to end.

        Raises:
            ProcessingError: With the failing stage and the original message.
        """
        extraction_config = self.config.extraction
        strategy = strategy or extraction_config.strategy
        report = on_progress or (lambda _p: None)
        report(0)

        with processing_stage("OCR", file.name):
            report(OCR_PROGRESS[0])
            extracted = await self.extract_text(
                file, _scaled(on_progress, OCR_PROGRESS), language, provider_name
            )
            report(OCR_PROGRESS[1])

        with processing_stage("EXTRACTION", file.name):
            selection = select_classification_text(
                extracted.text,
                extraction_config.page_break_markers,
                replace(extraction_config, strategy=strategy),
            )
            structure = self.detector.detect(extracted.text)
            rendered = render(structure, self.config.markup)

        with processing_stage("CLASSIFICATION", file.name):
            label = await classifier.classify(
                selection.classification_text,
                self.config.model_id,
                _scaled(on_progress, CLASSIFICATION_PROGRESS),
            )
            classification = normalize_classification(label)
            report(CLASSIFICATION_PROGRESS[1])

        document = ProcessedDocument(
            file_name=file.name,
            mime_type=file.mime_type,
            extracted_text=extracted.text,
            classification_text=selection.classification_text,
            classification=classification,
            markdown=rendered["markdown"],
            structured=rendered["structure"],
            detected_language=extracted.detected_language,
            extraction_strategy=strategy,
            ocr_processed=extracted.ocr_processed,
            extraction_complete=True,
        )

        with processing_stage("STORAGE", file.name):
            await self._persist(document, file, structure, persistence, report)

        logger.info("Processed %s as %s", file.name, classification)
        return document

    async def _persist(
        self,
        document: ProcessedDocument,
        file: DocumentFile,
        structure: DocumentStructure,
        persistence: PersistenceService,
        report: ProgressCallback,
    ) -> None:
        """Store blob, record and segments, in that order."""
        document.storage_path = await persistence.store_document(
            file,
            {"classification": document.classification, "project_id": self.config.project_id},
        )
        report(95)

        document.document_id = await persistence.save_document_record(
            self.document_fields(document, file)
        )
        document.segments = build_segments(document.document_id, structure)
        if document.segments:
            await persistence.save_segments(document.document_id, document.segments)
        report(STORAGE_PROGRESS[1])

    def document_fields(self, document: ProcessedDocument, file: DocumentFile) -> dict[str, Any]:
        """Column mapping for the document record."""
        return {
            "filename": file.name,
            "file_type": file.mime_type,
            "file_size": file.size,
            "storage_path": document.storage_path,
            "classification": document.classification,
            "extracted_text": document.extracted_text,
            "classification_text": document.classification_text,
            "extraction_strategy": document.extraction_strategy.value,
            "detected_language": document.detected_language,
            "content_markdown": document.markdown,
            "content_structured": document.structured,
            "ocr_processed": document.ocr_processed,
            "extraction_complete": document.extraction_complete,
            "model_id": self.config.model_id,
            "project_id": self.config.project_id,
        }

    async def process_batch(
        self,
        files: Sequence[DocumentFile],
        classifier: ClassificationService,
        persistence: PersistenceService,
        on_progress: ProgressCallback | None = None,
        is_cancelled: Callable[[], bool] | None = None,
        **options: Any,
    ) -> BatchResult:
        """
        Process files one after another.

        ``is_cancelled`` is checked between documents, never during one.
        A failed document is recorded and the batch continues.
        """
        result = BatchResult()
        total = len(files)

        for index, file in enumerate(files):
            if is_cancelled is not None and is_cancelled():
                logger.info("Batch cancelled after %d of %d documents", index, total)
                result.cancelled = True
                break

            bounds = (100.0 * index / total, 100.0 * (index + 1) / total)
            try:
                document = await self.process(
                    file, classifier, persistence, _scaled(on_progress, bounds), **options
                )
            except ProcessingError as e:
                logger.warning("Failed to process %s: %s", file.name, e)
                result.failed.append((file.name, e))
                continue
            result.succeeded.append(document)

        return result

    async def dispose(self) -> None:
        """Release every OCR provider."""
        await self.factory.dispose_all()


def supported_file_types() -> list[str]:
    """MIME types the intake pipeline accepts."""
    return list(EXTRACTABLE_TYPES)
