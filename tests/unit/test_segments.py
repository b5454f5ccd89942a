"""
Unit tests for segment building.
"""

from __future__ import annotations

from docintake.extractors.segments import SEGMENT_CONFIDENCE, build_segments
from docintake.extractors.structure import detect_structure
from docintake.models import DocumentStructure, SegmentType, Table

INVOICE_TEXT = "INVOICE\n\nVendor: Acme Co\nTotal: 500\n\n- Item A\n- Item B"


class TestBuildSegments:
    def test_invoice_segments(self):
        segments = build_segments("doc-1", detect_structure(INVOICE_TEXT))

        assert [s.segment_type for s in segments] == [
            SegmentType.HEADING,
            SegmentType.KEY_VALUE,
            SegmentType.KEY_VALUE,
            SegmentType.LIST,
            SegmentType.LIST,
        ]
        assert all(s.document_id == "doc-1" for s in segments)

    def test_heading_segment(self):
        (heading,) = build_segments("d", detect_structure("INVOICE"))

        assert heading.segment_text == "INVOICE"
        assert heading.segment_markdown == "# INVOICE"
        assert heading.segment_data == {"level": 1}
        assert heading.position_data == {"lineIndex": 0}
        assert heading.confidence_score == 0.9

    def test_key_value_segment(self):
        (pair,) = build_segments("d", detect_structure("Vendor: Acme Co"))

        assert pair.segment_text == "Vendor: Acme Co"
        assert pair.segment_markdown == "**Vendor:** Acme Co"
        assert pair.segment_data == {"key": "Vendor", "value": "Acme Co"}
        assert pair.confidence_score == 0.85

    def test_one_segment_per_list_item(self):
        segments = build_segments("d", detect_structure("1. Sign\n2. Date"))

        assert [s.segment_markdown for s in segments] == ["1. Sign", "2. Date"]
        assert [s.position_data["lineIndex"] for s in segments] == [0, 1]
        assert all(s.segment_data == {"ordered": True} for s in segments)

    def test_paragraph_segment(self):
        (paragraph,) = build_segments("d", detect_structure("plain prose\nover two lines"))

        assert paragraph.segment_type is SegmentType.PARAGRAPH
        assert paragraph.segment_text == "plain prose over two lines"
        assert paragraph.segment_data == {}
        assert paragraph.confidence_score == 0.8

    def test_table_segment(self):
        (table,) = build_segments("d", detect_structure("Name | Qty\nWidget | 2"))

        assert table.segment_text == "Name | Qty\nWidget | 2"
        assert table.segment_markdown == "| Name | Qty |\n| --- | --- |\n| Widget | 2 |"
        assert table.segment_data == {"headers": ["Name", "Qty"], "rows": [["Widget", "2"]]}
        assert table.position_data == {"startLineIndex": 0, "endLineIndex": 1}
        assert table.confidence_score == 0.75

    def test_headerless_table_skipped(self):
        structure = DocumentStructure(tables=[Table([], [], 0, 0)])

        assert build_segments("d", structure) == []

    def test_empty_structure(self):
        assert build_segments("d", DocumentStructure()) == []

    def test_record_columns(self):
        (heading,) = build_segments("d", detect_structure("INVOICE"))

        assert heading.to_record()["segment_type"] == "heading"

    def test_confidence_table_covers_every_kind(self):
        assert set(SEGMENT_CONFIDENCE) == set(SegmentType)
