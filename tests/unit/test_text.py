"""
Unit tests for OCR text cleanup.
"""

from docintake.normalizers.text import clean_ocr_text, sanitize_for_storage


class TestCleanOcrText:
    def test_collapses_inline_whitespace(self):
        assert clean_ocr_text("Total   due:\t\t500") == "Total due: 500"

    def test_trims_line_edges(self):
        assert clean_ocr_text("  first  \n   second ") == "first\nsecond"

    def test_collapses_blank_lines(self):
        assert clean_ocr_text("a\n\n\n\n\nb") == "a\n\nb"

    def test_keeps_single_blank_line(self):
        assert clean_ocr_text("a\n\nb") == "a\n\nb"

    def test_normalizes_carriage_returns(self):
        assert clean_ocr_text("a\r\nb\rc") == "a\nb\nc"

    def test_empty(self):
        assert clean_ocr_text("") == ""
        assert clean_ocr_text("   \n\n  ") == ""


class TestSanitizeForStorage:
    def test_replaces_nul(self):
        assert sanitize_for_storage("Total\x00500\x00") == "Total 500 "

    def test_untouched_without_nul(self):
        assert sanitize_for_storage("plain text") == "plain text"

    def test_empty(self):
        assert sanitize_for_storage("") == ""
