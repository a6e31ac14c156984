"""
Tests for mempool ranking and block-style layout.
"""

from __future__ import annotations

import pytest

from nodepilot.mempool import SizeClass, layout, pack, parse_raw_mempool, rank, size_class
from nodepilot.models import PendingEntry


def entry(txid: str, fee: int, size: int) -> PendingEntry:
    return PendingEntry(txid=txid, fee=fee, size=size)


class TestRank:
    def test_orders_by_fee_density(self):
        entries = [entry("a", 1000, 500), entry("b", 5000, 250), entry("c", 300, 300)]
        assert [e.txid for e in rank(entries)] == ["b", "a", "c"]

    def test_ties_keep_input_order(self):
        # id1: 1000/250 = 4.0, id2: 2000/500 = 4.0
        entries = [entry("id1", 1000, 250), entry("id2", 2000, 500)]
        assert [e.txid for e in rank(entries)] == ["id1", "id2"]
        assert [e.txid for e in rank(list(reversed(entries)))] == ["id2", "id1"]

    def test_caps_to_display_limit(self):
        entries = [entry(f"tx{i}", i + 1, 100) for i in range(500)]
        ranked = rank(entries)
        assert len(ranked) == 50
        assert ranked[0].txid == "tx499"
        assert ranked[-1].txid == "tx450"

    def test_custom_limit(self):
        entries = [entry(f"tx{i}", 100, 100) for i in range(10)]
        assert len(rank(entries, limit=3)) == 3
        assert len(rank(entries, limit=None)) == 10

    def test_zero_size_entry_sorts_last(self):
        entries = [entry("empty", 500, 0), entry("normal", 100, 100)]
        assert [e.txid for e in rank(entries)] == ["normal", "empty"]


class TestSizeClass:
    @pytest.mark.parametrize(
        "size,expected",
        [
            (1, SizeClass.SMALL),
            (249, SizeClass.SMALL),
            (250, SizeClass.MEDIUM),
            (999, SizeClass.MEDIUM),
            (1000, SizeClass.LARGE),
            (100_000, SizeClass.LARGE),
        ],
    )
    def test_thresholds(self, size, expected):
        assert size_class(size) == expected

    def test_sides_grow_with_class(self):
        assert SizeClass.SMALL.side < SizeClass.MEDIUM.side < SizeClass.LARGE.side


class TestPack:
    def test_first_row_rests_on_container_floor(self):
        packed = pack([entry("a", 100, 100), entry("b", 100, 100)], width=100, height=100)
        side = SizeClass.SMALL.side
        assert [p.x for p in packed] == [side / 2, side + side / 2]
        assert all(p.y == 100 - side / 2 for p in packed)

    def test_row_wraps_when_width_exceeded(self):
        side = SizeClass.SMALL.side
        entries = [entry(f"t{i}", 100, 100) for i in range(3)]
        packed = pack(entries, width=side * 2, height=100)

        assert packed[2].x == side / 2
        assert packed[2].y == 100 - side - side / 2

    def test_row_height_is_tallest_box(self):
        large = SizeClass.LARGE.side
        small = SizeClass.SMALL.side
        entries = [entry("big", 100, 2000), entry("tiny", 100, 100), entry("next", 100, 100)]
        packed = pack(entries, width=large + small, height=200)

        big, tiny, nxt = packed
        # Boxes of one row share its floor
        assert big.y + big.side / 2 == tiny.y + tiny.side / 2 == 200
        assert nxt.y == 200 - large - small / 2

    def test_oversized_entry_gets_its_own_row(self):
        packed = pack([entry("big", 100, 5000), entry("small", 100, 100)], width=10, height=100)
        assert packed[0].x == SizeClass.LARGE.side / 2
        assert packed[1].y < packed[0].y

    def test_overflow_goes_above_top_edge(self):
        entries = [entry(f"t{i}", 100, 2000) for i in range(10)]
        packed = pack(entries, width=SizeClass.LARGE.side, height=50)
        assert packed[-1].y < 0
        # Nothing shrinks on overflow
        assert all(p.side == SizeClass.LARGE.side for p in packed)

    def test_is_deterministic(self):
        entries = [entry(f"t{i}", 10 * i + 5, 100 + 97 * i) for i in range(40)]
        first = layout(entries, 300, 200)
        second = layout(list(entries), 300, 200)
        assert first == second

    @pytest.mark.parametrize("width,height", [(0, 100), (100, 0), (-5, 10)])
    def test_non_positive_container_rejected(self, width, height):
        with pytest.raises(ValueError):
            pack([entry("a", 1, 1)], width=width, height=height)

    def test_empty_input(self):
        assert pack([], width=100, height=100) == []


class TestLayout:
    def test_layout_ranks_then_packs(self):
        entries = [entry("low", 100, 100), entry("high", 10_000, 100)]
        packed = layout(entries, 100, 100)
        assert [p.entry.txid for p in packed] == ["high", "low"]

    def test_layout_respects_limit(self):
        entries = [entry(f"t{i}", 100, 100) for i in range(500)]
        assert len(layout(entries, 1000, 1000)) == 50


class TestParseRawMempool:
    def test_reads_fees_base_and_vsize(self):
        raw = {
            "aa": {"vsize": 141, "fees": {"base": 0.00001410}},
            "bb": {"size": 300, "fee": 0.00003000},
        }
        entries = parse_raw_mempool(raw)
        assert entries == [entry("aa", 1410, 141), entry("bb", 3000, 300)]

    def test_skips_malformed_items(self):
        raw = {
            "good": {"vsize": 200, "fees": {"base": 0.00002}},
            "nofee": {"vsize": 200},
            "notdict": 5,
            "badsize": {"fee": 0.0001, "vsize": "x"},
        }
        assert [e.txid for e in parse_raw_mempool(raw)] == ["good"]

    def test_non_object_result(self):
        assert parse_raw_mempool(["txid1", "txid2"]) == []
