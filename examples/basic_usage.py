#!/usr/bin/env python3
"""
Basic docintake Usage Example

This example demonstrates the core workflow:
1. Process one uploaded document end to end
2. Inspect the markdown, structure and segments
3. Run structure detection on plain text
4. Process a batch with progress reporting

Run with a path to a PDF or image:
    python examples/basic_usage.py path/to/invoice.pdf
"""

import asyncio
import logging
import sys

from docintake import (
    ClassificationService,
    DocumentFile,
    DocumentIntake,
    ExtractionStrategy,
    InMemoryPersistenceService,
    IntakeConfig,
    OcrConfig,
    ProcessingError,
    convert_to_markdown,
)


class KeywordClassifier(ClassificationService):
    """Stand-in for a model-backed classifier: picks a label by keyword."""

    KEYWORDS = {
        "invoice": "Invoice",
        "receipt": "Receipt",
        "agreement": "Contract",
        "experience": "Resume",
        "dear": "Letter",
    }

    async def classify(self, text, model_id, on_progress=None):
        lowered = text.lower()
        for keyword, label in self.KEYWORDS.items():
            if keyword in lowered:
                return label
        return "Other"


def print_progress(progress: float) -> None:
    print(f"\r  progress: {progress:5.1f}%", end="", flush=True)


async def main(paths: list[str]) -> None:
    # ─────────────────────────────────────────────────────────────────────────
    # 1. Process a single document
    # ─────────────────────────────────────────────────────────────────────────

    config = IntakeConfig(ocr=OcrConfig(provider="doctr", language="auto"))
    intake = DocumentIntake(config)
    classifier = KeywordClassifier()
    persistence = InMemoryPersistenceService()

    files = [DocumentFile.from_path(p) for p in paths]

    try:
        doc = await intake.process(files[0], classifier, persistence, print_progress)
    except ProcessingError as e:
        print(f"\n{e.stage} failed: {e}")
        await intake.dispose()
        return
    print()

    print(f"Processed: {doc.file_name}")
    print(f"  Classification: {doc.classification}")
    print(f"  Language: {doc.detected_language or 'n/a'}")
    print(f"  OCR used: {doc.ocr_processed}")
    print(f"  Stored at: {doc.storage_path} (id {doc.document_id})")

    # ─────────────────────────────────────────────────────────────────────────
    # 2. Inspect the outputs
    # ─────────────────────────────────────────────────────────────────────────

    print("\nMarkdown:")
    print(doc.markdown[:500])

    print("\nKey-value pairs:")
    for pair in doc.structured["keyValuePairs"]:
        print(f"  {pair['key']} = {pair['value']}")

    print(f"\nSegments: {len(doc.segments)}")
    for segment in doc.segments[:5]:
        print(f"  [{segment.segment_type.value}] {segment.segment_text[:60]}")

    # ─────────────────────────────────────────────────────────────────────────
    # 3. Structure detection without OCR
    # ─────────────────────────────────────────────────────────────────────────

    output = convert_to_markdown("INVOICE\n\nVendor: Acme Co\nTotal: 500\n\n- Item A\n- Item B")
    print("\nPlain-text conversion:")
    print(output["markdown"])

    # ─────────────────────────────────────────────────────────────────────────
    # 4. Batch processing
    # ─────────────────────────────────────────────────────────────────────────

    if len(files) > 1:
        result = await intake.process_batch(
            files,
            classifier,
            persistence,
            print_progress,
            strategy=ExtractionStrategy.FIRST_LAST,
        )
        print(f"\nBatch: {len(result.succeeded)} processed, {len(result.failed)} failed")
        for name, error in result.failed:
            print(f"  {name}: {error.stage} - {error}")

    await intake.dispose()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main(sys.argv[1:]))
