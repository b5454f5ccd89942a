"""
Collaborator contracts for classification and persistence.

The intake pipeline produces text, markdown, structure and segments; it
delegates the model call and storage to implementations of these interfaces.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docintake.models import DocumentFile, Segment
    from docintake.ocr.providers import ProgressCallback

logger = logging.getLogger(__name__)


class DocumentClassification(Enum):
    """Closed set of classification labels."""

    INVOICE = "Invoice"
    RESUME = "Resume"
    CONTRACT = "Contract"
    REPORT = "Report"
    FORM = "Form"
    RECEIPT = "Receipt"
    LETTER = "Letter"
    OTHER = "Other"


DEFAULT_CLASSIFICATION = DocumentClassification.REPORT

_LABELS = {c.value.lower(): c for c in DocumentClassification}


def is_valid_classification(label: str) -> bool:
    return label.strip().lower() in _LABELS


def normalize_classification(label: str | None) -> str:
    """
    Map a model's label onto the closed set.

    Known labels match case-insensitively; anything else becomes the
    default label.
    """
    if label and is_valid_classification(label):
        return _LABELS[label.strip().lower()].value
    logger.warning("Unrecognized classification %r, using %s", label, DEFAULT_CLASSIFICATION.value)
    return DEFAULT_CLASSIFICATION.value


# =============================================================================
# CONTRACTS
# =============================================================================


class ClassificationService(ABC):
    """Assigns a document one label from DocumentClassification."""

    @abstractmethod
    async def classify(
        self,
        text: str,
        model_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """
        Classify the selected text of a document.

        Args:
            text: Classification text chosen by the extraction strategy.
            model_id: Model identifier, e.g. "openai".
            on_progress: Called with progress from 0 to 100.

        Returns:
            A label from DocumentClassification, or a flagged fallback.
        """
        pass


class PersistenceService(ABC):
    """
    Stores the file blob, the document record and its segments.

    Ordering is the caller's: the blob is stored before the record so a failed
    record write can roll back the blob.
    """

    @abstractmethod
    async def store_document(self, file: DocumentFile, metadata: dict[str, Any]) -> str:
        """Store the file and return its storage path."""
        pass

    @abstractmethod
    async def save_document_record(self, fields: dict[str, Any]) -> str:
        """Insert the document record and return its id."""
        pass

    @abstractmethod
    async def save_segments(self, document_id: str, segments: list[Segment]) -> None:
        pass


class InMemoryPersistenceService(PersistenceService):
    """Keeps everything in dictionaries. Useful for scripts and tests."""

    def __init__(self):
        self.files: dict[str, DocumentFile] = {}
        self.records: dict[str, dict[str, Any]] = {}
        self.segments: dict[str, list[Segment]] = {}

    async def store_document(self, file: DocumentFile, metadata: dict[str, Any]) -> str:
        path = f"{uuid.uuid4().hex}-{file.name}"
        self.files[path] = file
        return path

    async def save_document_record(self, fields: dict[str, Any]) -> str:
        document_id = str(uuid.uuid4())
        self.records[document_id] = dict(fields)
        return document_id

    async def save_segments(self, document_id: str, segments: list[Segment]) -> None:
        self.segments.setdefault(document_id, []).extend(segments)
