"""Tests for shared utility functions."""

from datetime import datetime, timedelta, timezone

import pytest

from lessonbook.utils import is_blank, is_valid_email, normalize_phone, today_in


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("0412 345 678") == "0412345678"

    def test_strips_dashes(self):
        assert normalize_phone("0412-345-678") == "0412345678"

    def test_strips_parentheses(self):
        assert normalize_phone("(04) 1234 5678") == "0412345678"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+61 412 345 678") == "+61412345678"

    def test_strips_whitespace(self):
        assert normalize_phone("  0412345678  ") == "0412345678"


class TestEmail:
    @pytest.mark.parametrize("value", ["sam@example.com", " sam@example.com.au "])
    def test_valid(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["", "sam", "sam@example", "sam smith@example.com"])
    def test_invalid(self, value):
        assert not is_valid_email(value)


class TestIsBlank:
    @pytest.mark.parametrize("value", [None, "", "   ", "\t"])
    def test_blank(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", 0, False])
    def test_not_blank(self, value):
        assert not is_blank(value)


class TestTodayIn:
    def test_brisbane_is_utc_plus_ten(self):
        expected = (datetime.now(timezone.utc) + timedelta(hours=10)).date()
        assert today_in("Australia/Brisbane") == expected
