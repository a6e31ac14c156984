"""
Fee estimation with a per-tier mode fallback chain and an ordering repair pass.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Any

from loguru import logger

from nodepilot import constants
from nodepilot.fanout import CallResult, FanOutCoordinator, RpcCall
from nodepilot.models import FeeEstimate, FeeTier
from nodepilot.rpc.base import RpcError, RpcTransport
from nodepilot.rpc.schemas import MempoolInfo, NetworkInfo, SmartFeeEstimate, parse_result

TIER_TARGETS: dict[FeeTier, int] = {
    FeeTier.PRIORITY: constants.PRIORITY_TARGET_BLOCKS,
    FeeTier.STANDARD: constants.STANDARD_TARGET_BLOCKS,
    FeeTier.ECONOMY: constants.ECONOMY_TARGET_BLOCKS,
}


def static_default_estimate() -> FeeEstimate:
    return FeeEstimate(
        economy=constants.STATIC_ECONOMY_RATE,
        standard=constants.STATIC_STANDARD_RATE,
        priority=constants.STATIC_PRIORITY_RATE,
        is_live=False,
    )


def btc_per_kvb_to_sat_per_vb(rate: float) -> int:
    """Convert a node fee rate (BTC/kvB) to whole sat/vB, rounding up."""
    sats = Decimal(str(rate)) * constants.SATS_PER_BTC / 1000
    return int(sats.to_integral_value(rounding=ROUND_CEILING))


def sat_per_vb_to_btc_per_kvb(rate: float) -> float:
    """Convert sat/vB to the BTC/kvB unit expected by ``settxfee``."""
    btc = Decimal(str(rate)) * 1000 / constants.SATS_PER_BTC
    return float(btc.quantize(Decimal("0.00000001"), rounding=ROUND_CEILING))


def parse_custom_fee_rate(text: str | float) -> float:
    """
    Validate a user-entered fee rate in sat/vB.

    Raises:
        ValueError: If the value is not a finite positive number within bounds
    """
    try:
        rate = float(Decimal(str(text).strip()))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid fee rate: {text!r}") from e
    if not math.isfinite(rate) or rate <= 0:
        raise ValueError(f"Fee rate must be a positive number, got {text!r}")
    if rate > constants.MAX_CUSTOM_FEE_RATE:
        raise ValueError(
            f"Fee rate {rate} sat/vB exceeds maximum {constants.MAX_CUSTOM_FEE_RATE}"
        )
    return rate


def repair_tiers(
    raw: dict[FeeTier, int | None], floor: int
) -> tuple[int, int, int]:
    """
    Fill unset tiers and enforce economy < standard < priority.

    Unset tiers are derived from a neighbour (or the floor when nothing is
    known), every tier is raised to at least the floor, then each tier is
    nudged to exceed the one below it by at least 1 sat/vB.
    """
    economy = raw.get(FeeTier.ECONOMY)
    standard = raw.get(FeeTier.STANDARD)
    priority = raw.get(FeeTier.PRIORITY)

    if standard is None:
        if economy is not None:
            standard = economy * 2
        elif priority is not None:
            standard = priority // 2
        else:
            standard = floor * 2
    if economy is None:
        economy = standard // 2
    if priority is None:
        priority = standard * 2

    economy = max(economy, floor)
    standard = max(standard, floor, economy + 1)
    priority = max(priority, floor, standard + 1)
    return economy, standard, priority


class FeeEstimator:
    """
    Derives the three fee tiers from ``estimatesmartfee``.

    ``estimate()`` never raises: when the node is unreachable the static
    default tiers are returned.
    """

    def __init__(
        self,
        rpc: RpcTransport,
        coordinator: FanOutCoordinator | None = None,
        modes: Sequence[str] = constants.ESTIMATE_MODES,
        default_floor: int = constants.DEFAULT_FEE_FLOOR,
    ) -> None:
        self.rpc = rpc
        self.coordinator = coordinator or FanOutCoordinator(rpc)
        self.modes = tuple(modes)
        self.default_floor = default_floor

    async def _estimate_tier(self, tier: FeeTier) -> int | None:
        target = TIER_TARGETS[tier]
        for mode in self.modes:
            try:
                result = await self.rpc.call("estimatesmartfee", [target, mode])
                estimate = parse_result(SmartFeeEstimate, result, "estimatesmartfee")
            except RpcError as e:
                logger.debug(f"estimatesmartfee {target} {mode} failed: {e}")
                continue
            if estimate.feerate is not None and estimate.feerate > 0:
                rate = btc_per_kvb_to_sat_per_vb(estimate.feerate)
                logger.debug(f"Estimated {tier.value} fee ({target} blocks, {mode}): {rate} sat/vB")
                return rate
            logger.debug(f"No {mode} estimate for {target} blocks: {estimate.errors}")
        return None

    @staticmethod
    def _combine_floor(results: list[CallResult[Any]]) -> int | None:
        mempool_result, network_result = results
        signals: list[float] = []
        if mempool_result.ok:
            try:
                info = parse_result(MempoolInfo, mempool_result.value, "getmempoolinfo")
                if info.mempoolminfee:
                    signals.append(info.mempoolminfee)
            except RpcError as e:
                logger.debug(f"Ignoring mempool floor signal: {e}")
        if network_result.ok:
            try:
                net = parse_result(NetworkInfo, network_result.value, "getnetworkinfo")
                if net.relayfee:
                    signals.append(net.relayfee)
            except RpcError as e:
                logger.debug(f"Ignoring relay floor signal: {e}")
        if not signals:
            return None
        return max(btc_per_kvb_to_sat_per_vb(s) for s in signals)

    async def _fetch_floor(self) -> int | None:
        return await self.coordinator.join_calls(
            [RpcCall("getmempoolinfo"), RpcCall("getnetworkinfo")], self._combine_floor
        )

    async def estimate(self) -> FeeEstimate:
        tiers = list(TIER_TARGETS)
        results = await self.coordinator.gather([self._estimate_tier(t) for t in tiers])
        raw: dict[FeeTier, int | None] = {
            tier: result.unwrap_or(None) for tier, result in zip(tiers, results, strict=True)
        }

        floor_signal = await self._fetch_floor()

        if floor_signal is None and all(v is None for v in raw.values()):
            logger.warning("Fee estimation unavailable, using static default tiers")
            return static_default_estimate()

        floor = max(floor_signal or self.default_floor, 1)
        missing = [t.value for t, v in raw.items() if v is None]
        if missing:
            logger.info(f"Fee tiers {missing} unavailable, deriving from neighbours/floor")

        economy, standard, priority = repair_tiers(raw, floor)
        estimate = FeeEstimate(
            economy=economy,
            standard=standard,
            priority=priority,
            timestamp=datetime.now(UTC),
            is_live=True,
        )
        logger.debug(
            f"Fee tiers: economy={economy} standard={standard} priority={priority} "
            f"(floor {floor} sat/vB)"
        )
        return estimate
