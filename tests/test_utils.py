"""Tests for shared utility functions."""

from copilot.utils import clean_optional_text, normalize_phone


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("11 99999 8888") == "11999998888"

    def test_strips_dashes(self):
        assert normalize_phone("11-99999-8888") == "11999998888"

    def test_strips_parentheses(self):
        assert normalize_phone("(11) 99999-8888") == "11999998888"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+55 11 99999 8888") == "+5511999998888"

    def test_strips_whitespace(self):
        assert normalize_phone("  11999998888  ") == "11999998888"


class TestCleanOptionalText:
    def test_none_stays_none(self):
        assert clean_optional_text(None) is None

    def test_null_sentinel_is_none(self):
        assert clean_optional_text("null") is None
        assert clean_optional_text(" NULL ") is None
        assert clean_optional_text("undefined") is None

    def test_blank_is_none(self):
        assert clean_optional_text("   ") is None

    def test_bool_is_none(self):
        assert clean_optional_text(True) is None

    def test_text_is_stripped(self):
        assert clean_optional_text("  Ana ") == "Ana"

    def test_numbers_become_text(self):
        assert clean_optional_text(2) == "2"
