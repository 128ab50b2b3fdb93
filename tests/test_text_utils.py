"""Tests for the text helpers."""

import pytest
from ratemate.src.utils.text_utils import clean_text, error_reason, normalize_for_embedding, to_data_url, truncate


class TestNormalizeForEmbedding:
    def test_real_and_escaped_newlines_become_spaces(self):
        assert normalize_for_embedding("line one\nline two\\nline three\r\nend") == "line one line two line three end"


class TestCleanText:
    def test_strips_invisible_characters_and_collapses_whitespace(self):
        assert clean_text("\ufeffHello\u200b   world\t!") == "Hello world !"

    def test_keeps_paragraphs_but_collapses_blank_runs(self):
        assert clean_text("  first  \n\n\n\n  second\n") == "first\n\nsecond"


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("abc", 5) == "abc"

    def test_exact_length_unchanged(self):
        assert truncate("abcde", 5) == "abcde"

    def test_long_text_cut_with_suffix(self):
        assert truncate("abcdefgh", 5) == "abcde..."


class TestErrorReason:
    def test_message_is_capped(self):
        assert error_reason(RuntimeError("x" * 400)) == "x" * 150

    @pytest.mark.parametrize("exc", [TimeoutError(), ConnectionError()])
    def test_empty_message_falls_back_to_class_name(self, exc):
        assert error_reason(exc) == type(exc).__name__


def test_to_data_url():
    assert to_data_url("image/jpeg", b"hi") == "data:image/jpeg;base64,aGk="
