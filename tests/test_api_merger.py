"""Tests for extraction/api_merger.py: filtering and merging captured API responses."""

import pytest

from common.models import RawJsonResponse
from extraction.api_merger import (
    RESPONSE_PRIZES,
    RESPONSE_USERS,
    detect_response_type,
    is_historical_url,
    mentions_other_leaderboard,
    merge_api_responses,
    strip_pagination,
)
from extraction.json_search import MERGED_POOL_KEY, MERGED_PRIZES_KEY, PRIZE_INJECTED_KEY, find_leaderboard

BASE = "https://api.site.com"


def _users(url, names, start=1):
    return RawJsonResponse(url=url, data={"users": [
        {"username": n, "wagered": 1000 - i * 100, "rank": start + i} for i, n in enumerate(names)
    ]})


PRIZES = RawJsonResponse(url=f"{BASE}/leaderboard/prizes", data={
    "prizes": [{"rank": 1, "prize": 300}, {"rank": 2, "prize": 100}],
    "totalPrizePool": 400,
})


# ── URL rules ───────────────────────────────────────────────

class TestUrlRules:
    @pytest.mark.parametrize("url", [
        f"{BASE}/api/past-winners",
        f"{BASE}/leaderboard?year=2024&month=5",
        f"{BASE}/leaderboard/history",
    ])
    def test_historical(self, url):
        assert is_historical_url(url)

    def test_current_is_not_historical(self):
        assert not is_historical_url(f"{BASE}/leaderboard/current")

    def test_foreign_keyword_in_path(self):
        url = f"{BASE}/leaderboard/roobet/users"
        assert mentions_other_leaderboard(url, "stake", ["roobet", "stake"]) == "roobet"

    def test_own_keyword_kept(self):
        url = f"{BASE}/leaderboard/stake/users"
        assert mentions_other_leaderboard(url, "stake", ["roobet", "stake"]) is None

    def test_short_keyword_ignored(self):
        url = f"{BASE}/leaderboard/gg/users"
        assert mentions_other_leaderboard(url, "stake", ["gg"]) is None

    def test_strip_pagination(self):
        url = "https://a.com/x?page=2&limit=10&type=weekly"
        assert strip_pagination(url) == "https://a.com/x?type=weekly"


class TestResponseType:
    def test_users_by_url(self):
        assert detect_response_type(_users(f"{BASE}/leaderboard/users", ["a1", "a2"])) == RESPONSE_USERS

    def test_prizes_by_url(self):
        assert detect_response_type(PRIZES) == RESPONSE_PRIZES

    def test_structure_fallback(self):
        response = RawJsonResponse(url=f"{BASE}/v2/feed", data={"prizeTable": [100, 50]})
        assert detect_response_type(response) == RESPONSE_PRIZES


# ── merge_api_responses ─────────────────────────────────────

class TestMergeApiResponses:
    def test_empty(self):
        assert merge_api_responses([]) == []

    def test_historical_dropped(self):
        current = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        past = _users(f"{BASE}/past-winners", ["old1", "old2"])
        assert merge_api_responses([current, past]) == [current]

    def test_duplicates_dropped(self):
        current = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        again = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        assert len(merge_api_responses([current, again])) == 1

    def test_foreign_site_dropped(self):
        own = _users(f"{BASE}/leaderboard/stake/users", ["alpha", "bravo"])
        other = _users(f"{BASE}/leaderboard/roobet/users", ["zed", "yan"])
        assert merge_api_responses([own, other], "stake", ["stake", "roobet"]) == [own]

    def test_prizes_injected_into_users(self):
        users = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        merged = merge_api_responses([users, PRIZES])

        assert len(merged) == 1
        data = merged[0].data
        assert data["users"][0]["prize"] == 300
        assert data["users"][0][PRIZE_INJECTED_KEY] is True
        assert data[MERGED_POOL_KEY] == 400.0
        assert [row["rank"] for row in data[MERGED_PRIZES_KEY]] == [1, 2]
        assert merged[0].merged_from == (users.url, PRIZES.url)

    def test_injection_does_not_mutate_input(self):
        users = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        merge_api_responses([users, PRIZES])
        assert "prize" not in users.data["users"][0]

    def test_injected_prizes_flow_into_entries(self):
        users = _users(f"{BASE}/leaderboard/users", ["alpha", "bravo"])
        merged = merge_api_responses([users, PRIZES])
        entries, prizes, total = find_leaderboard(merged[0].data)
        assert entries[0].prize == 300.0
        assert entries[0].prize_injected
        assert total == 400.0
        assert [(p.rank, p.prize) for p in prizes] == [(1, 300.0), (2, 100.0)]

    def test_paginated_users_concatenated(self):
        page1 = _users(f"{BASE}/leaderboard/users?page=1", ["alpha", "bravo"])
        page2 = _users(f"{BASE}/leaderboard/users?page=2", ["charlie", "delta"], start=3)
        merged = merge_api_responses([page1, page2])

        assert len(merged) == 1
        assert [u["username"] for u in merged[0].data["users"]] == ["alpha", "bravo", "charlie", "delta"]
        assert merged[0].merged_from == (page1.url, page2.url)

    def test_repolled_url_keeps_newest(self):
        url = f"{BASE}/leaderboard/users"
        older = RawJsonResponse(url=url, data=_users(url, ["alpha", "bravo", "charlie"]).data, timestamp=1.0)
        newer = RawJsonResponse(url=url, data={"users": [
            {"username": n, "wagered": 1250 - i * 100, "rank": 1 + i}
            for i, n in enumerate(["alpha", "bravo", "charlie"])
        ]}, timestamp=2.0)
        merged = merge_api_responses([older, newer])

        assert len(merged) == 1
        assert merged[0] is newer
        entries, _, _ = find_leaderboard(merged[0].data)
        assert [(e.username, e.wager) for e in entries] == [
            ("alpha", 1250.0), ("bravo", 1150.0), ("charlie", 1050.0)
        ]

    def test_repolled_page_does_not_duplicate_pages(self):
        page1 = _users(f"{BASE}/leaderboard/users?page=1", ["alpha", "bravo"])
        again = RawJsonResponse(url=page1.url, data={"users": [
            {"username": "alpha", "wagered": 999, "rank": 1},
            {"username": "bravo", "wagered": 800, "rank": 2},
        ]}, timestamp=5.0)
        page2 = _users(f"{BASE}/leaderboard/users?page=2", ["charlie"], start=3)
        merged = merge_api_responses([page1, again, page2])

        assert len(merged) == 1
        assert [u["username"] for u in merged[0].data["users"]] == ["alpha", "bravo", "charlie"]
        assert merged[0].data["users"][0]["wagered"] == 999
        assert merged[0].merged_from == (page1.url, page2.url)
