"""Tests for entry clean-up."""

import pytest

from common.models import LeaderboardEntry
from extraction.validation import (
    is_aggregate_row,
    looks_like_website,
    rejection_reason,
    validate_and_clean_entries,
)


def entry(username, wager=1000.0, prize=0.0):
    return LeaderboardEntry(rank=1, username=username, wager=wager, prize=prize)


class TestPatterns:
    @pytest.mark.parametrize("name", ["Gamdom", "stake", "www.example.net", "https://site.io", "clash.gg"])
    def test_websites(self, name):
        assert looks_like_website(name)

    @pytest.mark.parametrize("name", ["bob@site.com", "alpha", "K***y"])
    def test_not_websites(self, name):
        assert not looks_like_website(name)

    @pytest.mark.parametrize("text", ["Grand Total", "Total prize", "30 days", "Time left", "participants"])
    def test_aggregate_rows(self, text):
        assert is_aggregate_row(text)

    def test_regular_name_not_aggregate(self):
        assert not is_aggregate_row("totalwinner")


class TestRejection:
    def test_valid_entry(self):
        assert rejection_reason(entry("alpha")) == ""

    def test_ui_text(self):
        assert rejection_reason(entry("Leaderboard")) == "ui_text"

    def test_website(self):
        assert rejection_reason(entry("Gamdom")) == "website_name_as_username"

    def test_aggregate(self):
        assert rejection_reason(entry("Grand Total")) == "aggregate_row"

    def test_hidden_placeholder(self):
        assert rejection_reason(entry("[hidden]", wager=0)) == "hidden_placeholder_no_data"
        assert rejection_reason(entry("[hidden]", wager=0, prize=50)) == ""

    @pytest.mark.parametrize("wager", [float("nan"), -5.0, "100"])
    def test_invalid_wager(self, wager):
        assert rejection_reason(entry("alpha", wager=wager)) == "invalid_wager"

    def test_clean_preserves_order(self):
        entries = [entry("alpha"), entry("stake"), entry("bravo"), entry("Total")]
        cleaned, rejected = validate_and_clean_entries(entries)
        assert [e.username for e in cleaned] == ["alpha", "bravo"]
        assert [r["reason"] for r in rejected] == ["website_name_as_username", "ui_text"]
        assert rejected[0]["entry"] is entries[1]
