"""
Node controller: the single owner of all control-plane state.

Every refresh issues its RPC calls (fanning out where several are needed),
waits for the join, and only then applies the result. Results are applied
only while the session that issued them is still connected, so nothing
mutates state after a disconnect.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from nodepilot import constants
from nodepilot.config import Settings
from nodepilot.fanout import CallResult, FanOutCoordinator, RpcCall
from nodepilot.fees import (
    FeeEstimator,
    parse_custom_fee_rate,
    sat_per_vb_to_btc_per_kvb,
    static_default_estimate,
)
from nodepilot.mempool import PackedEntry, layout, parse_raw_mempool
from nodepilot.models import (
    Account,
    Address,
    BlockDetail,
    BlockFeeStats,
    BlockInfo,
    FeeEstimate,
    FeeTier,
    MempoolSnapshot,
    NodeStatus,
    OpResult,
    PollTask,
    SweepResult,
    TransactionDetail,
    TransactionEntry,
    TransactionRecord,
)
from nodepilot.rpc.base import RpcDecodeError, RpcError, RpcNodeError, RpcTransport
from nodepilot.rpc.client import BitcoinRpcClient
from nodepilot.rpc.schemas import (
    BlockchainInfo,
    BlockStats,
    BlockSummary,
    MempoolInfo,
    NetworkInfo,
    UnspentOutput,
    VerboseBlock,
    WalletDir,
    WalletTransaction,
    WalletTransactionDetail,
    parse_result,
)
from nodepilot.scheduler import PollScheduler
from nodepilot.stores import (
    CredentialStore,
    HistoryStore,
    MemoryCredentialStore,
    MemoryHistoryStore,
)
from nodepilot.sweep import SweepOrchestrator

ModelT = TypeVar("ModelT", bound=BaseModel)

STALE = "stale response discarded"
NOT_CONNECTED = "not connected"


@dataclass(frozen=True)
class RefreshTicket:
    kind: str
    epoch: int
    sequence: int


def _parse_ok(result: CallResult[Any], model: type[ModelT], method: str) -> ModelT | None:
    if not result.ok:
        logger.debug(f"{method} failed: {result.error}")
        return None
    try:
        return parse_result(model, result.value, method)
    except RpcDecodeError as e:
        logger.debug(str(e))
        return None


def _btc_to_sats(amount: float) -> int:
    return int(round(amount * constants.SATS_PER_BTC))


class NodeController:
    """
    Connects to one node and keeps accounts, fees, mempool and status current.

    Collaborators (RPC transport, credential and history stores) are injected;
    defaults are built from ``settings`` when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        rpc: RpcTransport | None = None,
        credentials: CredentialStore | None = None,
        history: HistoryStore | None = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials or MemoryCredentialStore()
        self.history = history or MemoryHistoryStore()
        self.rpc_user = settings.rpc_user
        self.rpc_password = settings.rpc_password
        if not self.rpc_user or not self.rpc_password:
            stored = self.credentials.load_credentials()
            if stored:
                self.rpc_user, self.rpc_password = stored
        self.rpc = rpc or BitcoinRpcClient(
            rpc_url=settings.rpc_url,
            rpc_user=self.rpc_user,
            rpc_password=self.rpc_password,
            timeout=settings.rpc_timeout,
        )
        self.coordinator = FanOutCoordinator(self.rpc, settings.branch_timeout)
        self.fee_estimator = FeeEstimator(self.rpc, self.coordinator)
        self.sweeper = SweepOrchestrator(self.rpc, self.coordinator, settings.address_type)
        self.scheduler = PollScheduler(
            probe=self._probe,
            tasks=self._poll_tasks(),
            on_connected=self._on_connected,
            on_disconnected=self._reset_session_state,
        )

        self.status = NodeStatus()
        self.recent_blocks: list[BlockInfo] = []
        self.mempool = MempoolSnapshot()
        self.fee_estimate: FeeEstimate = static_default_estimate()
        self.accounts: dict[str, Account] = {}
        self.selected_account: str | None = None
        self.transactions: list[TransactionRecord] = []
        self.last_sweep: SweepResult | None = None
        self.status_text = "Not connected."
        self._sequences: dict[str, int] = {}

    # Connection

    def _poll_tasks(self) -> list[PollTask]:
        intervals = self.settings.get_poll_intervals()
        return [
            PollTask("blocks", intervals["blocks"], self.refresh_recent_blocks),
            PollTask("mempool", intervals["mempool"], self.refresh_mempool),
            PollTask("accounts", intervals["accounts"], self.refresh_account_data),
            PollTask("status", intervals["status"], self.refresh_status),
            PollTask("fees", intervals["fees"], self.refresh_fees),
        ]

    async def _probe(self) -> None:
        result = await self.rpc.call("getblockchaininfo")
        parse_result(BlockchainInfo, result, "getblockchaininfo")

    async def _on_connected(self) -> None:
        if self.rpc_user and self.rpc_password:
            try:
                self.credentials.save_credentials(self.rpc_user, self.rpc_password)
            except OSError as e:
                logger.warning(f"Could not save credentials: {e}")
        try:
            self.history.record_connection(self.settings.node_address)
        except OSError as e:
            logger.warning(f"Could not record connection history: {e}")
        self.status_text = "Successfully connected to your node."

    def _reset_session_state(self) -> None:
        self.status = NodeStatus()
        self.recent_blocks = []
        self.mempool = MempoolSnapshot()
        self.transactions = []
        self.status_text = "Disconnected from your node."

    @property
    def is_connected(self) -> bool:
        return self.scheduler.is_connected

    async def connect(self, poll: bool = True) -> OpResult:
        result = await self.scheduler.connect(poll)
        if not result.ok:
            self.status_text = f"Failed to connect to node: {result.error}"
        return result

    async def disconnect(self) -> OpResult:
        await self.scheduler.disconnect()
        return OpResult.success()

    async def purge(self) -> OpResult:
        """Disconnect and drop every piece of local state, credentials and history."""
        await self.disconnect()
        self.accounts = {}
        self.selected_account = None
        self.last_sweep = None
        self.fee_estimate = static_default_estimate()
        self.credentials.clear_credentials()
        self.history.clear_history()
        self.status_text = "All local data purged."
        logger.info("Purged local state")
        return OpResult.success()

    async def close(self) -> None:
        await self.scheduler.disconnect()
        await self.rpc.close()

    # Response sequencing

    def _issue(self, kind: str) -> RefreshTicket:
        sequence = self._sequences.get(kind, 0) + 1
        self._sequences[kind] = sequence
        return RefreshTicket(kind=kind, epoch=self.scheduler.epoch, sequence=sequence)

    def _accepts(self, ticket: RefreshTicket) -> bool:
        if not self.scheduler.is_current(ticket.epoch):
            logger.debug(f"Discarding {ticket.kind} response from a closed session")
            return False
        if (
            self.settings.reject_stale_responses
            and self._sequences.get(ticket.kind) != ticket.sequence
        ):
            logger.debug(f"Discarding stale {ticket.kind} response #{ticket.sequence}")
            return False
        return True

    def _report(self, epoch: int, text: str) -> None:
        if self.scheduler.is_current(epoch):
            self.status_text = text

    # Node-wide refreshes

    @staticmethod
    def _combine_status(results: list[CallResult[Any]]) -> NodeStatus:
        chain_result, network_result, mempool_result = results
        chain = _parse_ok(chain_result, BlockchainInfo, "getblockchaininfo")
        network = _parse_ok(network_result, NetworkInfo, "getnetworkinfo")
        mempool = _parse_ok(mempool_result, MempoolInfo, "getmempoolinfo")
        return NodeStatus(
            block_height=chain.blocks if chain else None,
            sync_progress=chain.verificationprogress if chain else None,
            peers=network.connections if network else None,
            mempool_size=mempool.size if mempool else None,
        )

    async def refresh_status(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("status")
        status = await self.coordinator.join_calls(
            [RpcCall("getblockchaininfo"), RpcCall("getnetworkinfo"), RpcCall("getmempoolinfo")],
            self._combine_status,
        )
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        self.status = status
        return OpResult.success(status)

    async def _fetch_block(self, height: int) -> BlockInfo:
        block_hash = await self.rpc.call("getblockhash", [height])
        raw = await self.rpc.call("getblock", [block_hash, 1])
        block = parse_result(BlockSummary, raw, "getblock")
        return BlockInfo(height=height, hash=block.hash, time=block.time)

    async def refresh_recent_blocks(self, count: int | None = None) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("blocks")
        try:
            tip = await self.rpc.call("getblockcount")
        except RpcError as e:
            logger.warning(f"Error fetching block count: {e}")
            return OpResult.failure(str(e))
        if not isinstance(tip, int):
            return OpResult.failure("getblockcount: expected an integer")

        count_wanted = count or self.settings.recent_block_count
        start = max(0, tip - (count_wanted - 1))
        blocks = await self.coordinator.join(
            [self._fetch_block(height) for height in range(start, tip + 1)],
            lambda results: [r.value for r in results if r.ok and r.value is not None],
        )
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        self.recent_blocks = sorted(blocks, key=lambda b: b.height, reverse=True)
        return OpResult.success(self.recent_blocks)

    @staticmethod
    def _combine_block_detail(results: list[CallResult[Any]]) -> OpResult:
        block_result, stats_result = results
        if not block_result.ok:
            return OpResult.failure(str(block_result.error))
        try:
            block = parse_result(VerboseBlock, block_result.value, "getblock")
        except RpcDecodeError as e:
            return OpResult.failure(str(e))
        stats = _parse_ok(stats_result, BlockStats, "getblockstats")
        fees = None
        if stats is not None:
            percentiles = stats.feerate_percentiles
            fees = BlockFeeStats(
                min_feerate=stats.minfeerate,
                max_feerate=stats.maxfeerate,
                median_feerate=percentiles[2] if len(percentiles) >= 3 else None,
                total_fee=stats.totalfee,
                subsidy=stats.subsidy,
            )
        return OpResult.success(
            BlockDetail(
                height=block.height,
                hash=block.hash,
                time=block.time,
                size=block.size,
                weight=block.weight,
                tx_count=block.tx_count,
                fees=fees,
            )
        )

    async def block_detail(self, block_hash: str) -> OpResult:
        """Size, weight and transaction count of one block, with its fee statistics."""
        block_hash = block_hash.strip()
        if not block_hash:
            return OpResult.failure("block hash is empty")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        result = await self.coordinator.join_calls(
            [RpcCall("getblock", [block_hash, 2]), RpcCall("getblockstats", [block_hash])],
            self._combine_block_detail,
        )
        if not result.ok:
            logger.warning(f"Error fetching block {block_hash}: {result.error}")
        return result

    async def refresh_mempool(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("mempool")
        try:
            raw = await self.rpc.call("getrawmempool", [True])
        except RpcError as e:
            logger.warning(f"Error fetching mempool: {e}")
            return OpResult.failure(str(e))
        entries = parse_raw_mempool(raw)
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        self.mempool = MempoolSnapshot(entries=tuple(entries), total_count=len(entries))
        return OpResult.success(self.mempool)

    async def refresh_fees(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("fees")
        estimate = await self.fee_estimator.estimate()
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        self.fee_estimate = estimate
        return OpResult.success(estimate)

    def layout_mempool(self, width: float, height: float) -> list[PackedEntry]:
        return layout(self.mempool.entries, width, height, self.settings.mempool_display_limit)

    # Accounts

    def _account(self, name: str | None) -> Account | None:
        name = name or self.selected_account
        if name is None:
            return None
        return self.accounts.get(name)

    async def refresh_accounts(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("accounts")
        try:
            wallet_dir = parse_result(
                WalletDir, await self.rpc.call("listwalletdir"), "listwalletdir"
            )
        except RpcError as e:
            logger.warning(f"Error listing wallets: {e}")
            return OpResult.failure(str(e))
        if not self._accepts(ticket):
            return OpResult.failure(STALE)

        for entry in wallet_dir.wallets:
            if entry.name not in self.accounts:
                self.accounts[entry.name] = Account(
                    name=entry.name, address_type=self.settings.address_type
                )
                logger.info(f"Discovered account {entry.name!r}")
        if self.selected_account is None and self.accounts:
            self.selected_account = next(iter(self.accounts))
        return OpResult.success(list(self.accounts))

    async def refresh_balances(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        ticket = self._issue("balances")
        names = list(self.accounts)

        def combine(results: list[CallResult[Any]]) -> dict[str, int]:
            balances = {}
            for name, result in zip(names, results, strict=True):
                if result.ok and isinstance(result.value, int | float):
                    balances[name] = _btc_to_sats(result.value)
                elif not result.ok:
                    logger.debug(f"getbalance for {name} failed: {result.error}")
            return balances

        balances = await self.coordinator.join_calls(
            [RpcCall("getbalance", wallet=name) for name in names], combine
        )
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        for name, sats in balances.items():
            if name in self.accounts:
                self.accounts[name].balance = sats
        return OpResult.success(balances)

    async def refresh_transactions(self) -> OpResult:
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        account = self._account(None)
        if account is None:
            return OpResult.failure("no account selected")
        ticket = self._issue("transactions")
        try:
            raw = await self.rpc.call(
                "listtransactions", ["*", constants.TRANSACTION_HISTORY_LIMIT], wallet=account.name
            )
        except RpcError as e:
            self._report(ticket.epoch, f"Error fetching transactions: {e}")
            return OpResult.failure(str(e))
        if not isinstance(raw, list):
            return OpResult.failure("listtransactions: expected a list")

        records = []
        for item in raw:
            try:
                tx = WalletTransaction.model_validate(item)
            except ValueError:
                continue
            records.append(
                TransactionRecord(
                    txid=tx.txid,
                    amount=tx.amount,
                    confirmations=tx.confirmations,
                    account=account.name,
                )
            )
        if not self._accepts(ticket):
            return OpResult.failure(STALE)
        self.transactions = list(reversed(records))
        return OpResult.success(self.transactions)

    async def transaction_detail(self, txid: str, name: str | None = None) -> OpResult:
        txid = txid.strip()
        if not txid:
            return OpResult.failure("transaction id is empty")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        account = self._account(name)
        if account is None:
            return OpResult.failure("no account selected")
        try:
            raw = await self.rpc.call("gettransaction", [txid], wallet=account.name)
            tx = parse_result(WalletTransactionDetail, raw, "gettransaction")
        except RpcError as e:
            logger.warning(f"Error fetching transaction {txid}: {e}")
            return OpResult.failure(str(e))
        return OpResult.success(
            TransactionDetail(
                txid=tx.txid,
                account=account.name,
                amount=tx.amount,
                confirmations=tx.confirmations,
                fee=tx.fee,
                block_hash=tx.blockhash,
                block_height=tx.blockheight,
                time=tx.time,
                entries=tuple(
                    TransactionEntry(
                        category=entry.category,
                        amount=entry.amount,
                        address=entry.address,
                        label=entry.label,
                    )
                    for entry in tx.details
                ),
            )
        )

    async def _addresses_for_label(self, account: str, label: str) -> list[Address]:
        result = await self.rpc.call("getaddressesbylabel", [label], wallet=account)
        if not isinstance(result, dict):
            raise RpcDecodeError("getaddressesbylabel: expected an object")
        return [Address(address=address, label=label or None) for address in result]

    async def _address_balances(self, account: str) -> dict[str, int]:
        raw = await self.rpc.call("listunspent", [0, 9999999], wallet=account)
        if not isinstance(raw, list):
            raise RpcDecodeError("listunspent: expected a list")
        balances: dict[str, int] = {}
        for item in raw:
            utxo = parse_result(UnspentOutput, item, "listunspent")
            if utxo.address:
                balances[utxo.address] = balances.get(utxo.address, 0) + _btc_to_sats(utxo.amount)
        return balances

    async def refresh_addresses(self, name: str | None = None) -> OpResult:
        """Re-enumerate an account's addresses by label and attach per-address balances."""
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        account = self._account(name)
        if account is None:
            return OpResult.failure("no account selected")
        ticket = self._issue(f"addresses:{account.name}")
        try:
            labels = await self.rpc.call("listlabels", wallet=account.name)
        except RpcError as e:
            logger.warning(f"Error fetching labels for {account.name}: {e}")
            return OpResult.failure(str(e))
        if not isinstance(labels, list) or not labels:
            labels = [""]

        branches = [self._addresses_for_label(account.name, str(label)) for label in labels]
        results = await self.coordinator.gather(
            [*branches, self._address_balances(account.name)]
        )
        if not self._accepts(ticket):
            return OpResult.failure(STALE)

        incoming: list[Address] = []
        for result in results[:-1]:
            incoming.extend(result.unwrap_or([]))
        added = account.merge_addresses(incoming)

        balance_result = results[-1]
        if balance_result.ok and balance_result.value is not None:
            for entry in account.addresses:
                entry.balance = balance_result.value.get(entry.address, 0)
                if entry.balance > 0:
                    entry.used = True
        if added:
            logger.debug(f"Account {account.name}: {added} new addresses")
        return OpResult.success(account.addresses)

    async def refresh_account_data(self) -> None:
        await self.refresh_accounts()
        await self.refresh_transactions()
        await self.refresh_balances()
        await self.refresh_addresses()

    async def create_account(self, name: str) -> OpResult:
        name = name.strip()
        if not name:
            return OpResult.failure("account name is empty")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        epoch = self.scheduler.epoch
        try:
            await self.rpc.call("createwallet", [name])
        except RpcError as e:
            self._report(epoch, f"Error creating wallet: {e}")
            return OpResult.failure(str(e))
        logger.info(f"Created new wallet: {name}")
        if self.scheduler.is_current(epoch):
            self.accounts.setdefault(
                name, Account(name=name, address_type=self.settings.address_type)
            )
            self.selected_account = name
            self.status_text = f"Created new wallet: {name}"
        return OpResult.success(name)

    async def select_account(self, name: str) -> OpResult:
        if name not in self.accounts:
            return OpResult.failure(f"unknown account {name!r}")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        epoch = self.scheduler.epoch
        try:
            await self.rpc.call("loadwallet", [name])
        except RpcNodeError as e:
            if e.code != constants.RPC_WALLET_ALREADY_LOADED:
                self._report(epoch, f"Error loading wallet: {e.message}")
                return OpResult.failure(e.message)
        except RpcError as e:
            self._report(epoch, f"Error loading wallet: {e}")
            return OpResult.failure(str(e))
        if self.scheduler.is_current(epoch):
            self.selected_account = name
            self.status_text = f"Loaded wallet: {name}"
        return OpResult.success(name)

    async def generate_address(self, name: str | None = None) -> OpResult:
        """
        Ask the node for a fresh address and add it to the account.

        The node may hand back an address the account already holds; that is
        retried a few times. If the session ends while waiting, the address
        the node produced is returned but not added locally.
        """
        if name is None and self.selected_account is None and self.accounts:
            self.selected_account = next(iter(self.accounts))
        account = self._account(name)
        if account is None:
            return OpResult.failure("No wallet available. Please create or load a wallet.")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)

        epoch = self.scheduler.epoch
        for attempt in range(constants.ADDRESS_ATTEMPTS):
            try:
                address = await self.rpc.call(
                    "getnewaddress", ["", account.address_type], wallet=account.name
                )
            except RpcError as e:
                self._report(epoch, f"Error generating address: {e}")
                return OpResult.failure(str(e))
            if not isinstance(address, str):
                return OpResult.failure("getnewaddress: expected an address string")
            if not self.scheduler.is_current(epoch):
                logger.debug(f"Session closed before address {address} could be recorded")
                return OpResult.success(address)
            if account.add_address(Address(address=address, balance=0)):
                self.status_text = f"New address generated: {address}"
                return OpResult.success(address)
            logger.debug(f"Node returned known address {address} (attempt {attempt + 1})")

        message = "Failed to generate a unique address after several attempts."
        self._report(epoch, message)
        return OpResult.failure(message)

    async def set_address_label(self, name: str, address: str, label: str) -> OpResult:
        account = self.accounts.get(name)
        if account is None:
            return OpResult.failure(f"unknown account {name!r}")
        entry = account.get_address(address)
        if entry is None:
            return OpResult.failure(f"address {address} not in account {name!r}")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        epoch = self.scheduler.epoch
        try:
            await self.rpc.call("setlabel", [address, label], wallet=name)
        except RpcError as e:
            return OpResult.failure(str(e))
        if self.scheduler.is_current(epoch):
            entry.label = label or None
        return OpResult.success(entry)

    # Spending

    def resolve_fee_rate(
        self, fee_tier: FeeTier | None = FeeTier.STANDARD, custom_rate: str | float | None = None
    ) -> float:
        """
        Fee rate (sat/vB) for a tier, or a validated custom rate.

        Raises:
            ValueError: If the custom rate is invalid
        """
        if custom_rate is not None:
            return parse_custom_fee_rate(custom_rate)
        return float(self.fee_estimate.rate_for(fee_tier or FeeTier.STANDARD))

    async def send(
        self,
        recipient: str,
        amount: str,
        fee_tier: FeeTier | None = FeeTier.STANDARD,
        custom_rate: str | float | None = None,
    ) -> OpResult:
        recipient = recipient.strip()
        amount_text = amount.strip()
        if not recipient or not amount_text or not self.is_connected:
            return OpResult.failure("Recipient or amount is empty, or node not connected.")
        account = self._account(None)
        if account is None:
            return OpResult.failure("No wallet selected.")
        try:
            amount_btc = Decimal(amount_text)
        except InvalidOperation:
            return OpResult.failure("Invalid amount.")
        if not amount_btc.is_finite() or amount_btc <= 0:
            return OpResult.failure("Invalid amount.")
        if account.balance is not None and _btc_to_sats(float(amount_btc)) > account.balance:
            return OpResult.failure("Insufficient balance.")
        try:
            fee_rate = self.resolve_fee_rate(fee_tier, custom_rate)
        except ValueError as e:
            return OpResult.failure(f"Invalid custom fee rate: {e}")

        epoch = self.scheduler.epoch
        try:
            await self.rpc.call(
                "settxfee", [sat_per_vb_to_btc_per_kvb(fee_rate)], wallet=account.name
            )
        except RpcError as e:
            message = f"Failed to set fee: {e}"
            self._report(epoch, message)
            return OpResult.failure(message)
        try:
            txid = await self.rpc.call(
                "sendtoaddress", [recipient, float(amount_btc)], wallet=account.name
            )
        except RpcError as e:
            self._report(epoch, f"Error sending: {e}")
            return OpResult.failure(str(e))
        if not isinstance(txid, str):
            message = f"Unexpected response: {txid!r}"
            self._report(epoch, message)
            return OpResult.failure(message)

        logger.info(f"Sent {amount_btc} to {recipient} from {account.name}: {txid}")
        if not self.scheduler.is_current(epoch):
            return OpResult.success(txid)
        self.transactions.insert(
            0,
            TransactionRecord(
                txid=txid, amount=float(amount_btc), confirmations=0, account=account.name
            ),
        )
        own = account.get_address(recipient)
        if own is not None:
            own.used = True
        self.status_text = f"Sent. Transaction ID: {txid}"
        return OpResult.success(txid)

    async def sweep(
        self,
        destination: str | None = None,
        fee_tier: FeeTier | None = FeeTier.STANDARD,
        custom_rate: str | float | None = None,
    ) -> OpResult:
        """Consolidate every other account into ``destination`` (default: selected)."""
        destination = destination or self.selected_account
        if not destination:
            return OpResult.failure("no destination account selected")
        if not self.is_connected:
            return OpResult.failure(NOT_CONNECTED)
        try:
            fee_rate = self.resolve_fee_rate(fee_tier, custom_rate)
        except ValueError as e:
            return OpResult.failure(f"Invalid custom fee rate: {e}")

        epoch = self.scheduler.epoch
        names = list(self.accounts)
        result = await self.sweeper.sweep(destination, names, fee_rate, known_accounts=names)
        if self.scheduler.is_current(epoch):
            self.last_sweep = result
            self.status_text = "\n".join(result.lines())
        return OpResult(ok=result.ok, value=result, error=result.error)

    # Terminal

    async def execute_rpc(
        self, method: str, params: list[Any] | None = None, wallet: str | None = None
    ) -> OpResult:
        method = method.strip()
        if not method:
            return OpResult.failure("empty command")
        epoch = self.scheduler.epoch
        try:
            result = await self.rpc.call(method, params or [], wallet=wallet)
        except RpcError as e:
            self._report(epoch, f"Error executing command: {e}")
            return OpResult.failure(str(e))
        self._report(epoch, "Response: " + json.dumps(result, indent=2, default=str))
        return OpResult.success(result)
