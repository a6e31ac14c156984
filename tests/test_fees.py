"""
Tests for fee estimation, tier repair and fee-rate conversions.
"""

from __future__ import annotations

import pytest

from nodepilot.fees import (
    FeeEstimator,
    btc_per_kvb_to_sat_per_vb,
    parse_custom_fee_rate,
    repair_tiers,
    sat_per_vb_to_btc_per_kvb,
)
from nodepilot.models import FeeEstimate, FeeTier
from nodepilot.rpc.base import RpcNodeError, RpcTransportError


def smartfee(rates: dict[tuple[int, str], float | None]):
    """Handler answering estimatesmartfee from a (target, mode) table."""

    def handler(params, wallet):
        target, mode = params
        rate = rates.get((target, mode))
        if rate is None:
            return {"errors": ["Insufficient data or no feerate found"], "blocks": target}
        return {"feerate": rate, "blocks": target}

    return handler


FLOOR_HANDLERS = {
    "getmempoolinfo": {"size": 10, "mempoolminfee": 0.00001},
    "getnetworkinfo": {"connections": 8, "relayfee": 0.00001},
}


class TestConversions:
    def test_btc_per_kvb_to_sat_per_vb(self):
        assert btc_per_kvb_to_sat_per_vb(0.00001) == 1
        assert btc_per_kvb_to_sat_per_vb(0.00012) == 12

    def test_fractional_rate_rounds_up(self):
        assert btc_per_kvb_to_sat_per_vb(0.000012) == 2

    def test_sat_per_vb_to_btc_per_kvb(self):
        assert sat_per_vb_to_btc_per_kvb(14) == pytest.approx(0.00014)
        assert sat_per_vb_to_btc_per_kvb(1.5) == pytest.approx(0.000015)


class TestCustomFeeRate:
    @pytest.mark.parametrize("text,expected", [("5", 5.0), (" 2.5 ", 2.5), (12, 12.0)])
    def test_valid(self, text, expected):
        assert parse_custom_fee_rate(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "0", "-3", "nan", "inf", "100001"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_custom_fee_rate(text)


class TestRepairTiers:
    def test_already_ordered_is_untouched(self):
        raw = {FeeTier.ECONOMY: 3, FeeTier.STANDARD: 10, FeeTier.PRIORITY: 25}
        assert repair_tiers(raw, floor=1) == (3, 10, 25)

    def test_equal_tiers_are_separated(self):
        raw = {FeeTier.ECONOMY: 5, FeeTier.STANDARD: 5, FeeTier.PRIORITY: 5}
        assert repair_tiers(raw, floor=1) == (5, 6, 7)

    def test_inverted_tiers_are_repaired(self):
        raw = {FeeTier.ECONOMY: 30, FeeTier.STANDARD: 10, FeeTier.PRIORITY: 2}
        economy, standard, priority = repair_tiers(raw, floor=1)
        assert economy < standard < priority
        assert economy == 30

    def test_floor_lifts_every_tier(self):
        raw = {FeeTier.ECONOMY: 1, FeeTier.STANDARD: 2, FeeTier.PRIORITY: 3}
        economy, standard, priority = repair_tiers(raw, floor=4)
        assert economy >= 4
        assert economy < standard < priority

    def test_missing_tiers_derived_from_floor(self):
        economy, standard, priority = repair_tiers({}, floor=3)
        assert economy >= 3
        assert economy < standard < priority


class TestFeeEstimator:
    @pytest.mark.asyncio
    async def test_all_tiers_from_node(self, make_rpc):
        rpc = make_rpc(
            {
                "estimatesmartfee": smartfee(
                    {
                        (2, "CONSERVATIVE"): 0.00030,
                        (6, "CONSERVATIVE"): 0.00012,
                        (144, "CONSERVATIVE"): 0.00002,
                    }
                ),
                **FLOOR_HANDLERS,
            }
        )

        estimate = await FeeEstimator(rpc).estimate()

        assert estimate.is_live
        assert (estimate.economy, estimate.standard, estimate.priority) == (2, 12, 30)

    @pytest.mark.asyncio
    async def test_falls_back_to_economical_mode(self, make_rpc):
        rpc = make_rpc(
            {
                "estimatesmartfee": smartfee(
                    {
                        (2, "ECONOMICAL"): 0.00020,
                        (6, "CONSERVATIVE"): 0.00010,
                        (144, "ECONOMICAL"): 0.00003,
                    }
                ),
                **FLOOR_HANDLERS,
            }
        )

        estimate = await FeeEstimator(rpc).estimate()

        assert (estimate.economy, estimate.standard, estimate.priority) == (3, 10, 20)
        modes = [params[1] for method, params, _ in rpc.calls if method == "estimatesmartfee"]
        assert modes.count("ECONOMICAL") == 2

    @pytest.mark.asyncio
    async def test_single_tier_failure_keeps_ordering(self, make_rpc):
        def handler(params, wallet):
            target, mode = params
            if target == 6:
                raise RpcTransportError("timeout")
            return {"feerate": {2: 0.00008, 144: 0.00009}[target]}

        rpc = make_rpc({"estimatesmartfee": handler, **FLOOR_HANDLERS})

        estimate = await FeeEstimator(rpc).estimate()

        assert estimate.is_live
        assert estimate.economy < estimate.standard < estimate.priority
        assert estimate.economy >= 1

    @pytest.mark.asyncio
    async def test_only_floor_available(self, make_rpc):
        rpc = make_rpc(
            {
                "estimatesmartfee": RpcNodeError(-32603, "Fee estimation disabled"),
                "getmempoolinfo": {"size": 0, "mempoolminfee": 0.00003},
                "getnetworkinfo": {"connections": 1, "relayfee": 0.00001},
            }
        )

        estimate = await FeeEstimator(rpc).estimate()

        assert estimate.is_live
        assert estimate.economy >= 3
        assert estimate.economy < estimate.standard < estimate.priority

    @pytest.mark.asyncio
    async def test_unreachable_node_yields_static_defaults(self, make_rpc):
        rpc = make_rpc(
            {
                "estimatesmartfee": RpcTransportError("connection refused"),
                "getmempoolinfo": RpcTransportError("connection refused"),
                "getnetworkinfo": RpcTransportError("connection refused"),
            }
        )

        estimate = await FeeEstimator(rpc).estimate()

        assert not estimate.is_live
        assert (estimate.economy, estimate.standard, estimate.priority) == (5, 14, 20)

    @pytest.mark.asyncio
    async def test_malformed_estimate_is_treated_as_failure(self, make_rpc):
        rpc = make_rpc({"estimatesmartfee": "not an object", **FLOOR_HANDLERS})

        estimate = await FeeEstimator(rpc).estimate()

        assert estimate.is_live
        assert estimate.economy < estimate.standard < estimate.priority


class TestFeeEstimate:
    def test_out_of_order_rejected(self):
        with pytest.raises(ValueError, match="out of order"):
            FeeEstimate(economy=10, standard=5, priority=20)

    def test_rate_for(self):
        estimate = FeeEstimate(economy=1, standard=2, priority=3)
        assert estimate.rate_for(FeeTier.ECONOMY) == 1
        assert estimate.rate_for(FeeTier.STANDARD) == 2
        assert estimate.rate_for(FeeTier.PRIORITY) == 3
