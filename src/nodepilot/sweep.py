"""
Multi-account sweep: consolidate every account's funds into one destination.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import UTC, datetime

from loguru import logger

from nodepilot import constants
from nodepilot.fanout import CallResult, FanOutCoordinator
from nodepilot.fees import sat_per_vb_to_btc_per_kvb
from nodepilot.models import SweepOutcome, SweepResult
from nodepilot.rpc.base import RpcDecodeError, RpcError, RpcNodeError, RpcTransport
from nodepilot.rpc.schemas import SendAllResult, parse_result

NOTHING_TO_SWEEP = "nothing to sweep"


class SweepOrchestrator:
    """
    Sweeps all source accounts into a destination account.

    Each source first tries ``sendall``; if the node lacks it or the call
    fails, the balance is read and sent with ``sendtoaddress`` (fee subtracted
    from the amount). The destination address is obtained once before any
    source is touched.
    """

    def __init__(
        self,
        rpc: RpcTransport,
        coordinator: FanOutCoordinator | None = None,
        address_type: str = "bech32",
    ) -> None:
        self.rpc = rpc
        self.coordinator = coordinator or FanOutCoordinator(rpc)
        self.address_type = address_type

    async def activate(self, account: str) -> None:
        """Load an account's wallet on the node; a node-side refusal is ignored."""
        try:
            await self.rpc.call("loadwallet", [account])
            logger.debug(f"Loaded wallet {account}")
        except RpcNodeError as e:
            if e.code != constants.RPC_WALLET_ALREADY_LOADED:
                logger.debug(f"loadwallet {account}: {e.message}")

    async def _destination_address(self, destination: str) -> str:
        await self.activate(destination)
        address = await self.rpc.call(
            "getnewaddress", ["sweep", self.address_type], wallet=destination
        )
        if not isinstance(address, str) or not address:
            raise RpcDecodeError("getnewaddress: expected an address string")
        return address

    async def _send_all(self, account: str, address: str) -> str:
        result = await self.rpc.call("sendall", [[address]], wallet=account)
        sent = parse_result(SendAllResult, result, "sendall")
        if not sent.complete or not sent.txid:
            raise RpcDecodeError("sendall: transaction not complete")
        return sent.txid

    async def _send_balance(self, account: str, address: str) -> SweepOutcome:
        balance = await self.rpc.call("getbalance", [], wallet=account)
        if not isinstance(balance, int | float):
            raise RpcDecodeError("getbalance: expected a number")
        sats = int(round(balance * constants.SATS_PER_BTC))
        if sats == 0:
            return SweepOutcome(account=account, success=True, message=NOTHING_TO_SWEEP)
        amount = sats / constants.SATS_PER_BTC
        txid = await self.rpc.call(
            "sendtoaddress", [address, amount, "", "", True], wallet=account
        )
        if not isinstance(txid, str):
            raise RpcDecodeError("sendtoaddress: expected a txid string")
        return SweepOutcome(account=account, success=True, txid=txid, message=f"sent {amount:.8f}")

    async def _sweep_account(self, account: str, address: str, fee_rate: float) -> SweepOutcome:
        await self.activate(account)
        try:
            await self.rpc.call(
                "settxfee", [sat_per_vb_to_btc_per_kvb(fee_rate)], wallet=account
            )
        except RpcError as e:
            return SweepOutcome(account=account, success=False, message=f"failed to set fee: {e}")

        try:
            txid = await self._send_all(account, address)
            logger.info(f"Swept {account} with sendall: {txid}")
            return SweepOutcome(account=account, success=True, txid=txid, message="sent all")
        except RpcError as e:
            logger.debug(f"sendall unavailable for {account} ({e}), falling back")

        try:
            outcome = await self._send_balance(account, address)
        except RpcError as e:
            return SweepOutcome(account=account, success=False, message=str(e))
        logger.info(f"Swept {account}: {outcome.message}")
        return outcome

    @staticmethod
    def _outcomes(
        sources: list[str], results: list[CallResult[SweepOutcome]]
    ) -> tuple[SweepOutcome, ...]:
        outcomes: list[SweepOutcome] = []
        for account, result in zip(sources, results, strict=True):
            if result.ok and result.value is not None:
                outcomes.append(result.value)
            else:
                outcomes.append(
                    SweepOutcome(account=account, success=False, message=str(result.error))
                )
        return tuple(outcomes)

    async def sweep(
        self,
        destination: str,
        accounts: Sequence[str],
        fee_rate: float,
        known_accounts: Sequence[str] | None = None,
    ) -> SweepResult:
        """
        Consolidate every account except ``destination`` into it.

        Args:
            destination: Account receiving the funds
            accounts: Candidate source accounts (destination is always skipped)
            fee_rate: Fee rate in sat/vB applied to each source account
            known_accounts: Accounts the destination must belong to;
                defaults to ``accounts``

        Returns:
            SweepResult with one outcome per source, or a top-level error
        """
        known = list(known_accounts) if known_accounts is not None else list(accounts)
        if not destination:
            return SweepResult(destination=destination, error="no destination account selected")
        if destination not in known:
            return SweepResult(destination=destination, error=f"unknown account {destination!r}")
        if not math.isfinite(fee_rate) or fee_rate <= 0:
            return SweepResult(destination=destination, error=f"invalid fee rate {fee_rate}")

        sources = list(dict.fromkeys(a for a in accounts if a != destination))
        logger.info(f"Sweeping {len(sources)} account(s) into {destination} at {fee_rate} sat/vB")

        try:
            address = await self._destination_address(destination)
        except RpcError as e:
            logger.error(f"Sweep aborted, no destination address for {destination}: {e}")
            return SweepResult(destination=destination, error=f"destination address failed: {e}")

        outcomes = await self.coordinator.join(
            [self._sweep_account(account, address, fee_rate) for account in sources],
            lambda results: self._outcomes(sources, results),
        )
        failed = sum(1 for o in outcomes if not o.success)
        if failed:
            logger.warning(f"Sweep into {destination}: {failed}/{len(outcomes)} accounts failed")
        return SweepResult(
            destination=destination, outcomes=outcomes, timestamp=datetime.now(UTC)
        )
