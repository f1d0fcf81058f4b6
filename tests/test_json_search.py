"""Tests for extraction/json_search.py: structural search over JSON bodies."""

import pytest

from extraction.json_search import (
    entries_from_array,
    find_entry_arrays,
    find_leaderboard,
    find_prize_table,
    pick_field,
    score_leaderboard_quality,
    split_format_entries,
)


def _nested(depth_keys, items):
    node = items
    for key in reversed(depth_keys):
        node = {key: node}
    return node


ITEMS = [
    {"username": "alpha", "wagered": "1,000", "rank": 1},
    {"username": "bravo", "wagered": 500, "rank": 2},
]


# ── pick_field ──────────────────────────────────────────────

class TestPickField:
    def test_first_positive_amount_wins(self):
        assert pick_field({"wager": 0, "amount": "12.5"}, "wager") == 12.5

    def test_present_but_zero_amount(self):
        assert pick_field({"wager": 0}, "wager") == 0.0

    def test_absent_amount(self):
        assert pick_field({}, "wager") is None

    def test_dotted_username(self):
        assert pick_field({"user": {"name": "alpha"}}, "username") == "alpha"

    def test_case_insensitive_key(self):
        assert pick_field({"UserName": "alpha"}, "username") == "alpha"

    def test_rank_from_string(self):
        assert pick_field({"position": "7"}, "rank") == 7

    def test_learned_mapping_tried_first(self):
        item = {"name": "wrong", "nick": "right"}
        assert pick_field(item, "username", {"username": "nick"}) == "right"

    def test_list_valued_mapping_ignored(self):
        item = {"name": "alpha"}
        assert pick_field(item, "username", {"username": ["api", "dom"]}) == "alpha"


# ── entry arrays ────────────────────────────────────────────

class TestEntryArrays:
    def test_container_keys_visited_first(self):
        data = {
            "meta": [{"name": "sponsor1"}, {"name": "sponsor2"}],
            "leaderboard": ITEMS,
        }
        path, array = next(find_entry_arrays(data))
        assert path == "leaderboard"
        assert array is ITEMS

    def test_depth_bound(self):
        data = _nested(["a", "b", "c", "d"], ITEMS)
        assert find_leaderboard(data, max_depth=2) is None
        assert find_leaderboard(data) is not None

    def test_underscore_keys_skipped(self):
        data = {"_debug": ITEMS}
        assert list(find_entry_arrays(data)) == []

    def test_entries_standardized(self):
        entries = entries_from_array(ITEMS)
        assert [(e.rank, e.username, e.wager) for e in entries] == [(1, "alpha", 1000.0), (2, "bravo", 500.0)]
        assert all(e.source == "api" for e in entries)

    def test_ranks_renumbered_when_not_sequential(self):
        items = [{"name": "alpha", "wager": 900, "rank": 5}, {"name": "bravo", "wager": 100, "rank": 9}]
        entries = entries_from_array(items)
        assert [e.rank for e in entries] == [1, 2]

    def test_ranks_sorted(self):
        items = [{"name": "charlie", "wager": 1, "rank": 3},
                 {"name": "alpha", "wager": 3, "rank": 1},
                 {"name": "bravo", "wager": 2, "rank": 2}]
        assert [e.username for e in entries_from_array(items)] == ["alpha", "bravo", "charlie"]

    def test_missing_rank_uses_position(self):
        items = [{"name": "alpha", "wager": 2}, {"name": "bravo", "wager": 1}]
        assert [e.rank for e in entries_from_array(items)] == [1, 2]

    def test_unmapped_fields_need_learned_mapping(self):
        items = [{"nick": "zed", "turnover": 700}, {"nick": "yan", "turnover": 300}]
        assert entries_from_array(items) == []
        entries = entries_from_array(items, {"username": "nick", "wager": "turnover"})
        assert [(e.username, e.wager) for e in entries] == [("zed", 700.0), ("yan", 300.0)]


# ── find_leaderboard ────────────────────────────────────────

class TestFindLeaderboard:
    def test_nested_leaderboard(self):
        entries, prizes, total = find_leaderboard({"data": {"leaderboard": ITEMS}})
        assert len(entries) == 2
        assert prizes == []
        assert total == 0.0

    def test_split_format(self):
        data = {
            "top_three": [{"name": "a1", "wager": 300}, {"name": "a2", "wager": 200}, {"name": "a3", "wager": 150}],
            "rest_of_users": [{"name": "b1", "wager": 90}, {"name": "b2", "wager": 80}],
        }
        entries = split_format_entries(data)
        assert [e.rank for e in entries] == [1, 2, 3, 4, 5]
        assert entries[3].username == "b1"

    def test_per_entry_prizes_become_table(self):
        items = [{"name": "alpha", "wager": 900, "prize": 50}, {"name": "bravo", "wager": 100, "prize": 20}]
        _entries, prizes, _total = find_leaderboard({"entries": items})
        assert [(p.rank, p.prize) for p in prizes] == [(1, 50.0), (2, 20.0)]

    def test_none_body(self):
        assert find_leaderboard(None) is None


# ── prize tables ────────────────────────────────────────────

class TestPrizeTable:
    def test_numbered_prizes_and_pool(self):
        rows, total = find_prize_table({"prize1": "$500", "prize2": 250, "prize3": 100, "totalPrizePool": 850})
        assert [(r.rank, r.prize) for r in rows] == [(1, 500.0), (2, 250.0), (3, 100.0)]
        assert total == 850.0

    def test_additional_prizes(self):
        rows, _ = find_prize_table({"prize1": 500, "additionalPrizes": [{"prizeNumber": 4, "amount": 50}]})
        assert [(r.rank, r.prize) for r in rows] == [(1, 500.0), (4, 50.0)]

    def test_rank_keyed_map(self):
        rows, _ = find_prize_table({"prizes": {"1": "1,000", "2": "500"}})
        assert [(r.rank, r.prize) for r in rows] == [(1, 1000.0), (2, 500.0)]

    def test_numeric_array(self):
        rows, _ = find_prize_table({"payoutList": [400, 200, 100, 50]})
        assert [r.prize for r in rows] == [400.0, 200.0, 100.0, 50.0]

    def test_no_table(self):
        assert find_prize_table({"title": "Monthly"}) == ([], 0.0)


class TestQualityScore:
    def test_empty(self):
        assert score_leaderboard_quality([]) == 0

    def test_complete_beats_partial(self):
        full = entries_from_array([{"name": "alpha", "wager": 900, "prize": 50},
                                   {"name": "bravo", "wager": 100, "prize": 20}])
        bare = entries_from_array([{"name": "alpha"}, {"name": "bravo"}])
        assert score_leaderboard_quality(full) > score_leaderboard_quality(bare)
