"""
Unit tests for docintake data models.
"""

from __future__ import annotations

import pytest

from docintake.models import (
    PDF_MIME,
    DocumentFile,
    DocumentList,
    DocumentStructure,
    Heading,
    KeyValuePair,
    ListItem,
    OcrBlock,
    PageExtraction,
    Paragraph,
    PdfExtraction,
    Segment,
    SegmentType,
    Table,
)


def box(x0, y0, x1, y1):
    return (x0, y0, x1, y0, x1, y1, x0, y1)


class TestDocumentFile:
    """Test DocumentFile loading."""

    def test_size(self):
        assert DocumentFile("a.png", "image/png", b"12345").size == 5

    def test_from_path_guesses_mime(self, tmp_path, make_image):
        path = tmp_path / "scan.png"
        path.write_bytes(make_image())

        file = DocumentFile.from_path(path)

        assert file.name == "scan.png"
        assert file.mime_type == "image/png"

    def test_from_path_sniffs_pdf_without_extension(self, tmp_path, make_pdf):
        path = tmp_path / "upload"
        path.write_bytes(make_pdf(["hello"]))

        assert DocumentFile.from_path(path).mime_type == PDF_MIME

    def test_from_path_unknown_binary(self, tmp_path):
        path = tmp_path / "blob"
        path.write_bytes(b"\x00\x01\x02")

        assert DocumentFile.from_path(path).mime_type == "application/octet-stream"

    def test_from_path_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DocumentFile.from_path(tmp_path / "missing.pdf")

    def test_repr_hides_data(self):
        assert "data" not in repr(DocumentFile("a.png", "image/png", b"x" * 100))


class TestOcrBlock:
    """Test polygon centers."""

    def test_centers(self):
        block = OcrBlock("Total", 0.9, box(10, 20, 50, 40))

        assert block.center_x == 30
        assert block.center_y == 30

    def test_no_box(self):
        block = OcrBlock("Total", 0.9)

        assert block.center_x is None
        assert block.center_y is None


class TestPdfExtraction:
    def test_page_properties(self):
        extraction = PdfExtraction(
            text="a\n\n=== PAGE BREAK ===\n\nb",
            pages=[
                PageExtraction(0, "a", "text_layer"),
                PageExtraction(1, "b", "ocr", confidence=0.8),
            ],
        )

        assert extraction.page_count == 2
        assert extraction.ocr_pages == [1]


class TestDocumentStructure:
    """Test the JSON-ready structure output."""

    @pytest.fixture
    def structure(self) -> DocumentStructure:
        return DocumentStructure(
            headings=[Heading("INVOICE", 1, 0)],
            paragraphs=[Paragraph("Thanks for your business.", 8)],
            lists=[DocumentList(False, [ListItem("Item A", 5), ListItem("Item B", 6)])],
            key_value_pairs=[KeyValuePair("Total", "500", 3)],
            tables=[Table(["Name", "Qty"], [["Widget", "2"]], 10, 11)],
        )

    def test_empty(self):
        assert DocumentStructure().is_empty

    def test_not_empty(self, structure):
        assert not structure.is_empty

    def test_to_dict_keys(self, structure):
        data = structure.to_dict()

        assert list(data) == ["headings", "paragraphs", "lists", "keyValuePairs", "tables"]
        assert data["headings"] == [{"text": "INVOICE", "level": 1, "lineIndex": 0}]
        assert data["keyValuePairs"] == [{"key": "Total", "value": "500", "lineIndex": 3}]
        assert data["tables"][0]["startLineIndex"] == 10
        assert data["tables"][0]["endLineIndex"] == 11

    def test_to_dict_without_positions(self, structure):
        data = structure.to_dict(include_positions=False)

        assert data["headings"] == [{"text": "INVOICE", "level": 1}]
        assert data["lists"] == [{"ordered": False, "items": [{"text": "Item A"}, {"text": "Item B"}]}]
        assert data["tables"] == [{"headers": ["Name", "Qty"], "rows": [["Widget", "2"]]}]

    def test_list_last_line_index(self):
        assert DocumentList(True).last_line_index is None
        assert DocumentList(True, [ListItem("a", 2), ListItem("b", 4)]).last_line_index == 4


class TestSegment:
    def test_to_record(self):
        segment = Segment(
            document_id="doc-1",
            segment_type=SegmentType.KEY_VALUE,
            segment_text="Total: 500",
            segment_markdown="**Total:** 500",
            segment_data={"key": "Total", "value": "500"},
            position_data={"lineIndex": 3},
            confidence_score=0.85,
        )

        record = segment.to_record()

        assert record["segment_type"] == "key_value"
        assert record["document_id"] == "doc-1"
        assert record["confidence_score"] == 0.85
