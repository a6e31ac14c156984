"""
Control-plane data models.

Accounts and addresses are mutable and owned by the node controller. Everything
else is an immutable value produced from a snapshot of node responses.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from nodepilot.constants import UNKNOWN


@dataclass
class Address:
    address: str
    label: str | None = None
    balance: int | None = None  # satoshis
    used: bool = False


@dataclass
class Account:
    """A node-side wallet and the addresses known for it."""

    name: str
    address_type: str = "bech32"
    addresses: list[Address] = field(default_factory=list)
    balance: int | None = None  # satoshis, None until the first refresh

    def has_address(self, address: str) -> bool:
        return any(a.address == address for a in self.addresses)

    def get_address(self, address: str) -> Address | None:
        for entry in self.addresses:
            if entry.address == address:
                return entry
        return None

    def add_address(self, address: Address) -> bool:
        """Append an address unless it is already known. Returns True if added."""
        if self.has_address(address.address):
            return False
        self.addresses.append(address)
        return True

    def merge_addresses(self, incoming: Iterable[Address]) -> int:
        """
        Merge a refreshed address list into this account.

        Known addresses are updated in place, unknown ones appended. Nothing is
        removed. Returns the number of addresses added.
        """
        added = 0
        for entry in incoming:
            existing = self.get_address(entry.address)
            if existing is None:
                self.addresses.append(entry)
                added += 1
                continue
            if entry.label is not None:
                existing.label = entry.label
            if entry.balance is not None:
                existing.balance = entry.balance
            existing.used = existing.used or entry.used
        return added


@dataclass(frozen=True)
class PendingEntry:
    txid: str
    fee: int  # satoshis
    size: int  # vbytes

    @property
    def fee_density(self) -> float:
        if self.size <= 0:
            return 0.0
        return self.fee / self.size


class FeeTier(str, Enum):
    ECONOMY = "economy"
    STANDARD = "standard"
    PRIORITY = "priority"


@dataclass(frozen=True)
class FeeEstimate:
    """Three ordered fee tiers in sat/vB."""

    economy: int
    standard: int
    priority: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    is_live: bool = False

    def __post_init__(self) -> None:
        if not (self.economy <= self.standard <= self.priority):
            raise ValueError(
                f"Fee tiers out of order: economy={self.economy} "
                f"standard={self.standard} priority={self.priority}"
            )

    def rate_for(self, tier: FeeTier) -> int:
        if tier == FeeTier.ECONOMY:
            return self.economy
        if tier == FeeTier.STANDARD:
            return self.standard
        return self.priority


@dataclass(frozen=True)
class SweepOutcome:
    account: str
    success: bool
    txid: str | None = None
    message: str = ""

    def describe(self) -> str:
        if self.success and self.txid:
            return f"{self.account}: swept ({self.txid})"
        if self.success:
            return f"{self.account}: {self.message}"
        return f"{self.account}: failed - {self.message}"


@dataclass(frozen=True)
class SweepResult:
    destination: str
    outcomes: tuple[SweepOutcome, ...] = ()
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ok(self) -> bool:
        return self.error is None

    def lines(self) -> list[str]:
        if self.error:
            return [f"Sweep to {self.destination} aborted: {self.error}"]
        return [outcome.describe() for outcome in self.outcomes]


@dataclass(frozen=True)
class NodeStatus:
    block_height: int | None = None
    mempool_size: int | None = None
    peers: int | None = None
    sync_progress: float | None = None  # 0.0 - 1.0

    def display(self) -> dict[str, str]:
        return {
            "block_height": UNKNOWN if self.block_height is None else str(self.block_height),
            "mempool_size": UNKNOWN if self.mempool_size is None else str(self.mempool_size),
            "peers": UNKNOWN if self.peers is None else str(self.peers),
            "sync_status": UNKNOWN
            if self.sync_progress is None
            else f"{self.sync_progress * 100:.2f}%",
        }


@dataclass(frozen=True)
class BlockInfo:
    height: int
    hash: str
    time: int

    @property
    def short_hash(self) -> str:
        return f"{self.hash[:2]}..{self.hash[-6:]}"


@dataclass(frozen=True)
class BlockFeeStats:
    """Fee statistics of one block. Rates in sat/vB, amounts in sats."""

    min_feerate: float | None = None
    max_feerate: float | None = None
    median_feerate: float | None = None
    total_fee: int | None = None
    subsidy: int | None = None

    @property
    def reward(self) -> int | None:
        if self.subsidy is None or self.total_fee is None:
            return None
        return self.subsidy + self.total_fee


@dataclass(frozen=True)
class BlockDetail:
    height: int
    hash: str
    time: int
    size: int | None = None  # bytes
    weight: int | None = None  # weight units
    tx_count: int | None = None
    fees: BlockFeeStats | None = None  # None when getblockstats failed


@dataclass(frozen=True)
class TransactionRecord:
    txid: str
    amount: float  # BTC
    confirmations: int
    account: str


@dataclass(frozen=True)
class TransactionEntry:
    category: str
    amount: float  # BTC
    address: str | None = None
    label: str | None = None


@dataclass(frozen=True)
class TransactionDetail:
    txid: str
    account: str
    amount: float  # BTC
    confirmations: int
    fee: float | None = None  # BTC, negative for sends
    block_hash: str | None = None
    block_height: int | None = None
    time: int | None = None
    entries: tuple[TransactionEntry, ...] = ()


@dataclass(frozen=True)
class MempoolSnapshot:
    entries: tuple[PendingEntry, ...] = ()
    total_count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class PollTask:
    name: str
    interval: float
    callback: Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class OpResult:
    """Explicit success/failure value returned by every controller operation."""

    ok: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> OpResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> OpResult:
        return cls(ok=False, error=error)
