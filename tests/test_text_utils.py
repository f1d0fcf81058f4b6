"""Tests for common/text_utils.py: amount parsing and username handling."""

import pytest

from common.text_utils import (
    clean_username,
    is_ui_text,
    normalize_username,
    parse_amount,
    validate_username,
)


class TestParseAmount:
    @pytest.mark.parametrize("raw, expected", [
        ("$1,234.56", 1234.56),
        ("1.234,56", 1234.56),
        ("10k", 10000.0),
        ("1.5M", 1500000.0),
        ("◆ 2,500 coins", 2500.0),
        ("€ 99", 99.0),
        (42, 42.0),
    ])
    def test_formats(self, raw, expected):
        assert parse_amount(raw) == pytest.approx(expected)

    def test_garbage_is_zero(self):
        assert parse_amount("n/a") == 0.0
        assert parse_amount(None) == 0.0
        assert parse_amount("-") == 0.0

    def test_nan_is_zero(self):
        assert parse_amount(float("nan")) == 0.0

    def test_bool_is_not_an_amount(self):
        assert parse_amount(True) == 0.0

    def test_markdown_image_icon_ignored(self):
        assert parse_amount("![coin](https://cdn.example/coin.png) 1,000") == 1000.0


class TestUsernames:
    def test_clean_strips_rank_prefixes(self):
        assert clean_username("#4 PlayerOne") == "PlayerOne"
        assert clean_username("4. PlayerOne") == "PlayerOne"
        assert clean_username("RANK 4 PlayerOne") == "PlayerOne"
        assert clean_username("2nd - PlayerOne") == "PlayerOne"

    def test_clean_empty(self):
        assert clean_username("") is None
        assert clean_username("   ") is None

    def test_normalize_strips_punctuation_and_case(self):
        assert normalize_username("Jo_Hn.123") == "john123"
        assert normalize_username("***") == ""
        assert normalize_username(None) == ""


class TestValidateUsername:
    def test_standard_name(self):
        check = validate_username("HighRoller99")
        assert check.valid
        assert check.reason == "standard_pattern"

    def test_masked_name(self):
        assert validate_username("Jo***").valid

    def test_ui_text_rejected(self):
        check = validate_username("Total Wagered")
        assert not check.valid

    def test_too_long_rejected(self):
        check = validate_username("a" * 101)
        assert not check.valid
        assert check.reason == "too_long"

    def test_pure_number_rejected(self):
        assert not validate_username("12345").valid

    def test_hidden_placeholder_accepted(self):
        assert validate_username("[hidden]").valid

    def test_is_ui_text(self):
        assert is_ui_text("leaderboard")
        assert is_ui_text("View all")
        assert not is_ui_text("crash_king")
