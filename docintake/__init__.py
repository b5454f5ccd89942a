"""
docintake: OCR-backed document intake.

This library turns uploaded PDFs and images into plain text, markdown and a
structured description of the document (headings, paragraphs, lists,
key-value pairs, tables), then hands the results to pluggable
classification and persistence services.

Example:
    >>> import asyncio
    >>> import docintake
    >>> intake = docintake.DocumentIntake()
    >>> file = docintake.DocumentFile.from_path("invoice.pdf")
    >>> doc = asyncio.run(intake.process(file, classifier, persistence))
    >>> print(doc.markdown)

    >>> # Structure detection on its own
    >>> structure = docintake.detect_structure("INVOICE\\n\\nTotal: 500")
    >>> structure.key_value_pairs[0].value
    '500'
"""

from docintake.config import (
    ExtractionConfig,
    ImageLimits,
    IntakeConfig,
    MarkupOptions,
    OcrConfig,
)
from docintake.exceptions import (
    ConfigurationError,
    DocIntakeError,
    EngineInitializationError,
    ImageProcessingError,
    ProcessingError,
    RecognitionError,
    UnsupportedFormatError,
)
from docintake.extractors import (
    DocumentStructureDetector,
    ExtractionResult,
    build_segments,
    convert_to_markdown,
    detect_structure,
    render,
    select_classification_text,
)
from docintake.intake import (
    BatchResult,
    DocumentIntake,
    can_extract_content,
    needs_ocr,
    supported_file_types,
)
from docintake.models import (
    DEFAULT_PAGE_BREAK,
    DocumentFile,
    DocumentList,
    DocumentStructure,
    ExtractionStrategy,
    Heading,
    KeyValuePair,
    ListItem,
    OcrBlock,
    OcrResult,
    PageExtraction,
    Paragraph,
    PdfExtraction,
    ProcessedDocument,
    Segment,
    SegmentType,
    Table,
)
from docintake.ocr import (
    DoctrProvider,
    LanguageDetector,
    OcrEngineManager,
    OcrProvider,
    OcrProviderFactory,
    TesseractProvider,
)
from docintake.services import (
    ClassificationService,
    DocumentClassification,
    InMemoryPersistenceService,
    PersistenceService,
    normalize_classification,
)

__version__ = "0.1.0"
__all__ = [
    # Main API
    "DocumentIntake",
    "BatchResult",
    "needs_ocr",
    "can_extract_content",
    "supported_file_types",
    # Configuration
    "IntakeConfig",
    "OcrConfig",
    "ImageLimits",
    "ExtractionConfig",
    "MarkupOptions",
    # Input
    "DocumentFile",
    # Enums
    "ExtractionStrategy",
    "SegmentType",
    "DocumentClassification",
    # OCR
    "OcrBlock",
    "OcrResult",
    "PageExtraction",
    "PdfExtraction",
    "OcrProvider",
    "DoctrProvider",
    "TesseractProvider",
    "OcrProviderFactory",
    "OcrEngineManager",
    "LanguageDetector",
    # Structure
    "DocumentStructure",
    "Heading",
    "Paragraph",
    "ListItem",
    "DocumentList",
    "KeyValuePair",
    "Table",
    "DocumentStructureDetector",
    "detect_structure",
    "render",
    "convert_to_markdown",
    "select_classification_text",
    "ExtractionResult",
    "build_segments",
    # Output
    "ProcessedDocument",
    "Segment",
    "DEFAULT_PAGE_BREAK",
    # Services
    "ClassificationService",
    "PersistenceService",
    "InMemoryPersistenceService",
    "normalize_classification",
    # Exceptions
    "DocIntakeError",
    "UnsupportedFormatError",
    "ConfigurationError",
    "ImageProcessingError",
    "EngineInitializationError",
    "RecognitionError",
    "ProcessingError",
]
